from app.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- ITEMS ----------------
    ActivityCode.CREATE_ITEM:
        "{actor_role} ({actor_id}) created item {target_name}",

    ActivityCode.UPDATE_ITEM:
        "{actor_role} ({actor_id}) updated item {target_name}: {changes}",

    ActivityCode.DEACTIVATE_ITEM:
        "{actor_role} ({actor_id}) deactivated item {target_name}",

    ActivityCode.REACTIVATE_ITEM:
        "{actor_role} ({actor_id}) reactivated item {target_name}",

    ActivityCode.PURGE_ITEM:
        "{actor_role} ({actor_id}) permanently deleted item {target_name}",

    # ---------------- WAREHOUSES ----------------
    ActivityCode.CREATE_WAREHOUSE:
        "{actor_role} ({actor_id}) created warehouse {target_name}",

    ActivityCode.UPDATE_WAREHOUSE:
        "{actor_role} ({actor_id}) updated warehouse {target_name}: {changes}",

    ActivityCode.DEACTIVATE_WAREHOUSE:
        "{actor_role} ({actor_id}) deactivated warehouse {target_name}",

    ActivityCode.REACTIVATE_WAREHOUSE:
        "{actor_role} ({actor_id}) reactivated warehouse {target_name}",

    ActivityCode.PURGE_WAREHOUSE:
        "{actor_role} ({actor_id}) retired warehouse {target_name} "
        "into {target_warehouse} ({moved} movements reassigned)",

    # ---------------- LEDGER ----------------
    ActivityCode.STOCK_MOVEMENT:
        "{actor_role} ({actor_id}) recorded {movement_type} of {quantity} units "
        "for item {item_id} at warehouse {warehouse_id}",

    ActivityCode.STOCK_ADJUSTMENT:
        "{actor_role} ({actor_id}) set stock of item {item_id} at warehouse "
        "{warehouse_id} to {target} (delta {delta})",

    ActivityCode.STOCK_TRANSFER:
        "{actor_role} ({actor_id}) transferred {quantity} units of item {item_id} "
        "from warehouse {from_warehouse_id} to {to_warehouse_id} (ref: {transfer_id})",

    ActivityCode.RETIREMENT_RECONCILIATION:
        "{actor_role} ({actor_id}) reconciled item {item_id} at warehouse "
        "{warehouse_id} to {target} after retirement merge",
}
