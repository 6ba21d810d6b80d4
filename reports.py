"""Report totals over work orders and production records. Read-only, recomputed per request."""

from catalog import ACTIVITY_TYPES
from ledger import STATUS_OPEN, STATUS_RFU
from money import format_currency

# units the report view labels each activity's quantity with
ACTIVITY_UNITS = {
    "Hauling": "Ton",
    "Overburden": "BCM",
    "BrokenBlasting": "BCM",
    "Loading": "BCM",
    "Stockpile": "Ton",
}


def total_maintenance_cost(work_orders):
    """Material spend on RFU work orders. Open work orders do not count yet."""
    return sum(wo.material_cost for wo in work_orders if wo.status == STATUS_RFU)


def total_by_activity(records, activity_type):
    return sum(rec.quantity for rec in records if rec.activity_type == activity_type)


def total_production_cost(records):
    return sum(rec.estimated_cost for rec in records)


def summary(work_orders, records):
    work_orders = list(work_orders)
    records = list(records)
    maintenance = total_maintenance_cost(work_orders)
    production_cost = total_production_cost(records)
    return {
        "open_work_orders": sum(1 for wo in work_orders if wo.status == STATUS_OPEN),
        "rfu_work_orders": sum(1 for wo in work_orders if wo.status == STATUS_RFU),
        "total_maintenance_cost": maintenance,
        "total_maintenance_cost_text": format_currency(maintenance),
        "production": [
            {"activity_type": activity,
             "quantity": total_by_activity(records, activity),
             "unit": ACTIVITY_UNITS[activity]}
            for activity in ACTIVITY_TYPES
        ],
        "total_production_cost": production_cost,
        "total_production_cost_text": format_currency(production_cost),
    }
