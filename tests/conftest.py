import os
import tempfile

import pytest

os.environ["APP_ENV"] = "development"
os.environ["DB_TYPE"] = "sqlite"
os.environ["SQLITE_PATH"] = os.path.join(tempfile.gettempdir(), "stock_ledger_unused.db")
os.environ["JWT_ACCESS_SECRET_KEY"] = "test-secret-key"
os.environ["ENABLE_SCHEDULER"] = "false"

from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.core.db import Base, enable_sqlite_foreign_keys  # noqa: E402
from app.schemas.auth.actor_schemas import Actor  # noqa: E402
from app.schemas.inventory.item_schemas import ItemCreate  # noqa: E402
from app.schemas.inventory.warehouse_schemas import WarehouseCreate  # noqa: E402
from app.services.inventory.item_service import create_item  # noqa: E402
from app.services.inventory.warehouse_service import create_warehouse  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path, anyio_backend):
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        poolclass=NullPool,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    event.listen(eng.sync_engine, "connect", enable_sqlite_foreign_keys)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db(session_factory, anyio_backend):
    async with session_factory() as session:
        yield session


@pytest.fixture
def admin():
    return Actor(id="admin-1", role="admin")


@pytest.fixture
def make_item(db, admin):
    async def _make(name="Bolt", **fields):
        return await create_item(db, ItemCreate(name=name, **fields), admin)
    return _make


@pytest.fixture
def make_warehouse(db, admin):
    async def _make(code, name=None, **fields):
        return await create_warehouse(
            db,
            WarehouseCreate(code=code, name=name or f"Warehouse {code}", **fields),
            admin,
        )
    return _make


@pytest.fixture
async def bolt(make_item):
    return await make_item("Bolt", min_stock=10)


@pytest.fixture
async def w1(make_warehouse):
    return await make_warehouse("W1")


@pytest.fixture
async def w2(make_warehouse):
    return await make_warehouse("W2")
