import hashlib
import json

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.models.inventory.idempotency_models import LedgerIdempotencyKey
from app.schemas.auth.actor_schemas import Actor
from app.utils.logger import get_logger

logger = get_logger(__name__)

MOVEMENT_SCOPE = "movement"
TRANSFER_SCOPE = "transfer"


def hash_payload(payload: dict) -> str:
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


async def find_replay(
    db: AsyncSession,
    *,
    scope: str,
    key: str,
    payload_hash: str,
) -> LedgerIdempotencyKey | None:
    """Return the stored key when this write was already applied.

    Must run under the ledger lock of the write, so a concurrent duplicate
    sees the key committed by the first one.
    """
    record = await db.scalar(
        select(LedgerIdempotencyKey).where(
            LedgerIdempotencyKey.scope == scope,
            LedgerIdempotencyKey.key == key,
        )
    )
    if record is None:
        return None

    if record.payload_hash != payload_hash:
        logger.warning(
            "Idempotency key reused with a different payload",
            extra={"scope": scope, "key": key},
        )
        raise AppException(
            409,
            "Idempotency key was already used for a different request",
            ErrorCode.IDEMPOTENCY_KEY_REUSED,
            details={"scope": scope, "key": key},
        )

    logger.info("Idempotent replay", extra={"scope": scope, "key": key})
    return record


def remember(
    db: AsyncSession,
    *,
    scope: str,
    key: str,
    payload_hash: str,
    actor: Actor,
    movement_id: int | None = None,
    transfer_id: str | None = None,
) -> None:
    db.add(
        LedgerIdempotencyKey(
            scope=scope,
            key=key,
            payload_hash=payload_hash,
            movement_id=movement_id,
            transfer_id=transfer_id,
            created_by=actor.id,
        )
    )
