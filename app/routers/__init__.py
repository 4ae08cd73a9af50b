# app/routers/__init__.py

from .inventory.item_router import router as item_router
from .inventory.stock_router import router as stock_router
from .inventory.movement_router import router as movement_router
from .inventory.transfer_router import router as transfer_router
from .inventory.warehouse_router import router as warehouse_router


__all__ = [
"item_router",
"stock_router",
"movement_router",
"transfer_router",
"warehouse_router",
]
