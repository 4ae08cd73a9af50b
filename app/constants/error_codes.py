from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # ---------------- LEDGER ----------------
    STOCK_NEGATIVE_NOT_ALLOWED = "STOCK_NEGATIVE_NOT_ALLOWED"
    SAME_WAREHOUSE_NOT_ALLOWED = "SAME_WAREHOUSE_NOT_ALLOWED"
    STOCK_UNAVAILABLE = "STOCK_UNAVAILABLE"
    IDEMPOTENCY_KEY_REUSED = "IDEMPOTENCY_KEY_REUSED"

    # ---------------- REGISTRIES ----------------
    DUPLICATE_CODE = "DUPLICATE_CODE"
    ITEM_HAS_MOVES = "ITEM_HAS_MOVES"
    NO_TARGET_WAREHOUSE = "NO_TARGET_WAREHOUSE"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    STATE_CONFLICT = "STATE_CONFLICT"
