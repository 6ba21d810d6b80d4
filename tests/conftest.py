import pytest

from errors import NetworkError
from ledger import WorkOrderLedger
from numbering import NumberingSequence
from store import MemoryStore
from suggestions import SuggestionRegistry


def sample_fields(**overrides):
    fields = {
        "date": "2024-05-01",
        "unit": "BSS-75",
        "unit_type": "DUMP TRUCK",
        "start_time": "08:00",
        "component": "Engine",
        "sub_component": "Radiator",
        "description": "Overheating on haul road",
        "work_status": "InProgress",
    }
    fields.update(overrides)
    return fields


def sample_material(**overrides):
    material = {
        "material": "Oil Filter",
        "part_no": "OF-100",
        "quantity": 2,
        "unit_of_measure": "pcs",
        "unit_price": 100,
        "material_status": "Installed",
    }
    material.update(overrides)
    return material


def offline_fetch(url):
    raise NetworkError(f"offline: {url}")


@pytest.fixture
def registry():
    return SuggestionRegistry()


@pytest.fixture
def sequence():
    return NumberingSequence()


@pytest.fixture
def ledger(sequence, registry):
    return WorkOrderLedger(sequence, registry)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def client(tmp_path):
    import plantops

    plantops.rate_limit_store.clear()
    plantops.init_state(db_path=tmp_path / "plantops.db", units_url="http://units.invalid/unit.json",
                        fetch=offline_fetch)
    plantops.app.config['TESTING'] = True
    with plantops.app.test_client() as client:
        yield client
    plantops._state = None
