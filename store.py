"""
Persisted application state.

Every collection lives under its own key as a JSON document in a single
``app_state`` table, and is loaded and saved independently. A collection that
cannot be read is logged and starts empty; the rest of the state still loads.
"""

import json
import logging
import sqlite3
import urllib.error
import urllib.request
from dataclasses import replace

from catalog import DEFAULT_UNITS, ProductionLog, ProductionRecord, SparePart, SparePartCatalog, Unit, UnitRoster
from errors import NetworkError, PlantOpsError, StorageError
from ledger import WorkOrder, WorkOrderLedger
from numbering import WO_PREFIX, NumberingSequence
from suggestions import SuggestionRegistry

logger = logging.getLogger(__name__)

KEYS = {
    "work_orders": "plantops.work_orders",
    "sequence": "plantops.wo_counter",
    "suggestions": "plantops.suggestions",
    "spare_parts": "plantops.spare_parts",
    "production": "plantops.production",
    "units": "plantops.units",
}
SECRET_KEY = "plantops.secret_key"

FETCH_TIMEOUT = 5


class SqliteStore:
    """Key/value JSON documents in one SQLite file."""

    def __init__(self, path):
        self.path = str(path)
        conn = self._connect()
        try:
            conn.execute("""CREATE TABLE IF NOT EXISTS app_state
                            (key TEXT PRIMARY KEY, value TEXT,
                             updated_at TEXT DEFAULT (datetime('now')))""")
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot initialise state store {self.path}: {e}") from e
        finally:
            conn.close()

    def _connect(self):
        try:
            conn = sqlite3.connect(self.path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open state store {self.path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    def _read(self, key):
        conn = self._connect()
        try:
            return conn.execute("SELECT value FROM app_state WHERE key=?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot read {key}: {e}") from e
        finally:
            conn.close()

    def exists(self, key):
        return self._read(key) is not None

    def load(self, key, default=None):
        row = self._read(key)
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError as e:
            raise StorageError(f"Stored value for {key} is not valid JSON") from e

    def save(self, key, value):
        conn = self._connect()
        try:
            conn.execute("INSERT OR REPLACE INTO app_state (key,value,updated_at) VALUES (?,?,datetime('now'))",
                         (key, json.dumps(value)))
            conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StorageError(f"Cannot save {key}: {e}") from e
        finally:
            conn.close()


class MemoryStore:
    """Same contract as SqliteStore, kept in a dict. Values are stored as JSON text."""

    def __init__(self, data=None):
        self._data = {key: json.dumps(value) for key, value in (data or {}).items()}

    def exists(self, key):
        return key in self._data

    def load(self, key, default=None):
        if key not in self._data:
            return default
        try:
            return json.loads(self._data[key])
        except ValueError as e:
            raise StorageError(f"Stored value for {key} is not valid JSON") from e

    def save(self, key, value):
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot save {key}: {e}") from e


# ── LOADING ───────────────────────────────────────────────────────────────────

def load_collection(store, key, parse):
    """Load a JSON list and parse each item; any failure gives an empty list."""
    try:
        raw = store.load(key, [])
        if not isinstance(raw, list):
            raise StorageError(f"Stored value for {key} is not a list")
        return [parse(item) for item in raw]
    except (PlantOpsError, KeyError, TypeError, ValueError, AttributeError) as e:
        logger.error("Failed to load %s, starting empty: %s", key, e)
        return []


def load_suggestions(store):
    try:
        raw = store.load(KEYS["suggestions"], {})
        if not isinstance(raw, dict):
            raise StorageError("Stored suggestions are not an object")
        return SuggestionRegistry(raw)
    except PlantOpsError as e:
        logger.error("Failed to load suggestions, starting empty: %s", e)
        return SuggestionRegistry()


def _highest_wo_number(work_orders):
    highest = 0
    for wo in work_orders:
        digits = wo.wo_number[len(WO_PREFIX):] if wo.wo_number.startswith(WO_PREFIX) else ""
        if digits.isdigit():
            highest = max(highest, int(digits))
    return highest


def load_sequence(store, work_orders):
    """
    The stored counter, but never behind a number already in the ledger, so a
    lost or damaged counter cannot hand out a number twice.
    """
    try:
        value = store.load(KEYS["sequence"], 1)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise StorageError(f"Stored counter {value!r} is not a positive integer")
    except PlantOpsError as e:
        logger.error("Failed to load work order counter: %s", e)
        value = 1
    return NumberingSequence(max(value, _highest_wo_number(work_orders) + 1))


def fetch_units(url, timeout=FETCH_TIMEOUT):
    """Download the initial unit roster (a JSON list)."""
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            data = json.loads(resp.read().decode())
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise NetworkError(f"Could not fetch unit roster from {url}: {e}") from e
    if not isinstance(data, list):
        raise NetworkError(f"Unit roster from {url} is not a list")
    return [Unit.from_dict(item) for item in data if isinstance(item, dict)]


def bootstrap_units(store, url, fetch=fetch_units):
    """
    Persisted roster if there is one; otherwise the remote roster, or the
    built-in three units when that fails. The result is saved so the fetch
    happens only once.
    """
    units = load_collection(store, KEYS["units"], Unit.from_dict)
    if units:
        return units
    try:
        units = fetch(url) if url else []
    except NetworkError as e:
        logger.warning("%s; using default units", e)
        units = []
    if not units:
        units = [replace(u) for u in DEFAULT_UNITS]
    try:
        store.save(KEYS["units"], [u.to_dict() for u in units])
    except StorageError as e:
        logger.error("Could not persist the unit roster: %s", e)
    return units


# ── APPLICATION STATE ─────────────────────────────────────────────────────────

class AppState:
    """Everything one client works on, plus the store it is saved to."""

    def __init__(self, store, ledger, units, spare_parts, production):
        self.store = store
        self.ledger = ledger
        self.units = units
        self.spare_parts = spare_parts
        self.production = production

    @property
    def sequence(self):
        return self.ledger.sequence

    @property
    def suggestions(self):
        return self.ledger.suggestions

    @classmethod
    def load(cls, store, units_url=None, fetch=fetch_units):
        work_orders = load_collection(store, KEYS["work_orders"], WorkOrder.from_dict)
        ledger = WorkOrderLedger(load_sequence(store, work_orders), load_suggestions(store), work_orders)
        units = UnitRoster(bootstrap_units(store, units_url, fetch))
        spare_parts = SparePartCatalog(load_collection(store, KEYS["spare_parts"], SparePart.from_dict))
        production = ProductionLog(units, load_collection(store, KEYS["production"], ProductionRecord.from_dict))
        logger.info("Loaded %d work order(s), %d unit(s), %d spare part(s), %d production record(s)",
                    len(ledger), len(units), len(spare_parts), len(production))
        return cls(store, ledger, units, spare_parts, production)

    def dump(self, name):
        if name == "work_orders":
            return self.ledger.to_list()
        if name == "sequence":
            return self.sequence.value
        if name == "suggestions":
            return self.suggestions.to_dict()
        if name == "spare_parts":
            return self.spare_parts.to_list()
        if name == "production":
            return self.production.to_list()
        if name == "units":
            return self.units.to_list()
        raise KeyError(name)

    def save(self, *names):
        """Write the named collections (all of them when none are named)."""
        for name in names or tuple(KEYS):
            self.store.save(KEYS[name], self.dump(name))
