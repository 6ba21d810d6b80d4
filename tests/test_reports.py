from catalog import ProductionRecord
from conftest import sample_fields, sample_material
from reports import summary, total_by_activity, total_production_cost


def record(activity, quantity, cost=0, record_id="1"):
    return ProductionRecord(id=record_id, date="2024-05-01", unit="BSS-75", activity_type=activity,
                            quantity=quantity, duration_hours=1, estimated_cost=cost)


def test_totals_by_activity():
    records = [record("Hauling", 100), record("Hauling", 50.5), record("Loading", 30)]
    assert total_by_activity(records, "Hauling") == 150.5
    assert total_by_activity(records, "Stockpile") == 0


def test_production_cost():
    assert total_production_cost([record("Hauling", 1, 100000), record("Loading", 1, 250000)]) == 350000


def test_empty_summary():
    result = summary([], [])
    assert result["open_work_orders"] == 0
    assert result["total_maintenance_cost_text"] == "Rp 0"
    assert [p["activity_type"] for p in result["production"]] == [
        "Hauling", "Overburden", "BrokenBlasting", "Loading", "Stockpile"]


def test_summary(ledger):
    closed = ledger.create(sample_fields())
    ledger.close(closed.wo_number, "10:00", "Fixed", [], [sample_material(unit_price=1250000, quantity=1)])
    ledger.create(sample_fields())
    result = summary(ledger, [record("Overburden", 800, 300000)])

    assert result["open_work_orders"] == 1
    assert result["rfu_work_orders"] == 1
    assert result["total_maintenance_cost"] == 1250000
    assert result["total_maintenance_cost_text"] == "Rp 1.250.000"
    overburden = next(p for p in result["production"] if p["activity_type"] == "Overburden")
    assert overburden == {"activity_type": "Overburden", "quantity": 800, "unit": "BCM"}
    assert result["total_production_cost_text"] == "Rp 300.000"
