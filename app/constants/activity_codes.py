from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- ITEMS ----------------
    CREATE_ITEM = "CREATE_ITEM"
    UPDATE_ITEM = "UPDATE_ITEM"
    DEACTIVATE_ITEM = "DEACTIVATE_ITEM"
    REACTIVATE_ITEM = "REACTIVATE_ITEM"
    PURGE_ITEM = "PURGE_ITEM"

    # ---------------- WAREHOUSES ----------------
    CREATE_WAREHOUSE = "CREATE_WAREHOUSE"
    UPDATE_WAREHOUSE = "UPDATE_WAREHOUSE"
    DEACTIVATE_WAREHOUSE = "DEACTIVATE_WAREHOUSE"
    REACTIVATE_WAREHOUSE = "REACTIVATE_WAREHOUSE"
    PURGE_WAREHOUSE = "PURGE_WAREHOUSE"

    # ---------------- LEDGER ----------------
    STOCK_MOVEMENT = "STOCK_MOVEMENT"
    STOCK_ADJUSTMENT = "STOCK_ADJUSTMENT"
    STOCK_TRANSFER = "STOCK_TRANSFER"
    RETIREMENT_RECONCILIATION = "RETIREMENT_RECONCILIATION"
