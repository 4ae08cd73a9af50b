# Inventory
from app.models.inventory.item_models import InventoryItem
from app.models.inventory.warehouse_models import Warehouse
from app.models.inventory.stock_movement_models import StockMovement
from app.models.inventory.ledger_head_models import StockLedgerHead
from app.models.inventory.idempotency_models import LedgerIdempotencyKey

# Support
from app.models.support.activity_models import ActivityLog
