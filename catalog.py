"""
Reference collections: the unit roster, the spare part catalog and the
production log.

These are plain keyed collections. The only derived value is a production
record's estimated cost, fixed when the record is created from the unit's
hourly rate at that moment.
"""

import math
import time
from dataclasses import dataclass
from typing import Optional

from errors import NotFoundError, ValidationError

SHIFTS = ("Morning", "Afternoon", "Night")
ACTIVITY_TYPES = ("Hauling", "Overburden", "BrokenBlasting", "Loading", "Stockpile")


def _text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _amount(value, label):
    if value is None or isinstance(value, bool) or not str(value).strip():
        raise ValidationError(f"{label} is required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number, got {value!r}")
    if not math.isfinite(number) or number < 0:
        raise ValidationError(f"{label} must be zero or more")
    return int(number) if number.is_integer() else number


# ── UNITS ─────────────────────────────────────────────────────────────────────

@dataclass
class Unit:
    code: str
    type: str
    display_name: Optional[str] = None
    cost_per_operational_hour: float = 0

    def __post_init__(self):
        if not self.display_name:
            self.display_name = self.code

    def to_dict(self):
        return {
            "code": self.code,
            "display_name": self.display_name,
            "type": self.type,
            "cost_per_operational_hour": self.cost_per_operational_hour,
        }

    @classmethod
    def from_dict(cls, data):
        # also accepts the remote roster shape: {unit, unit_code, type, costPerOperationalHour}
        code = data.get("code") or data.get("unit_code") or data.get("unit") or ""
        cost = data.get("cost_per_operational_hour", data.get("costPerOperationalHour")) or 0
        return cls(
            code=str(code),
            type=data.get("type") or "",
            display_name=data.get("display_name") or data.get("unit") or None,
            cost_per_operational_hour=cost,
        )


DEFAULT_UNITS = [
    Unit(code="BSS-75", type="DUMP TRUCK", cost_per_operational_hour=100000),
    Unit(code="EX7-43", type="A2B", cost_per_operational_hour=150000),
    Unit(code="LT-01", type="SUPPORT", cost_per_operational_hour=50000),
]


class UnitRoster:
    def __init__(self, units=None):
        self._units = list(units or [])

    def __iter__(self):
        return iter(list(self._units))

    def __len__(self):
        return len(self._units)

    def to_list(self):
        return [u.to_dict() for u in self._units]

    def get(self, code):
        for unit in self._units:
            if unit.code == code:
                return unit
        return None

    def add(self, code, type, cost_per_operational_hour=0, display_name=None):
        code, type = _text(code), _text(type)
        if not code or not type:
            raise ValidationError("Unit code and unit type are required")
        if self.get(code):
            raise ValidationError(f"Unit {code} already exists")
        if cost_per_operational_hour in (None, ""):
            cost_per_operational_hour = 0
        cost = _amount(cost_per_operational_hour, "Cost per operational hour")
        unit = Unit(code=code, type=type, display_name=_text(display_name),
                    cost_per_operational_hour=cost)
        self._units.append(unit)
        return unit

    def delete(self, code):
        """Remove a unit. Work orders and production records keep the code they recorded."""
        unit = self.get(code)
        if unit is None:
            raise NotFoundError(f"Unit {code} not found")
        self._units.remove(unit)
        return unit


# ── SPARE PARTS ───────────────────────────────────────────────────────────────

@dataclass
class SparePart:
    part_no: str
    name: str
    unit_price: float = 0
    unit_of_measure: str = "pcs"

    def to_dict(self):
        return {
            "part_no": self.part_no,
            "name": self.name,
            "unit_price": self.unit_price,
            "unit_of_measure": self.unit_of_measure,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            part_no=data.get("part_no", ""),
            name=data.get("name", ""),
            unit_price=data.get("unit_price") or 0,
            unit_of_measure=data.get("unit_of_measure") or "pcs",
        )


class SparePartCatalog:
    def __init__(self, parts=None):
        self._parts = list(parts or [])

    def __iter__(self):
        return iter(list(self._parts))

    def __len__(self):
        return len(self._parts)

    def to_list(self):
        return [p.to_dict() for p in self._parts]

    def get(self, part_no):
        for part in self._parts:
            if part.part_no == part_no:
                return part
        return None

    def add(self, part_no, name, unit_price, unit_of_measure="pcs"):
        part_no, name = _text(part_no), _text(name)
        if not part_no or not name:
            raise ValidationError("Part number, name and unit price are required")
        if self.get(part_no):
            raise ValidationError(f"Part number {part_no} is already in the catalog")
        part = SparePart(part_no=part_no, name=name,
                         unit_price=_amount(unit_price, "Unit price"),
                         unit_of_measure=_text(unit_of_measure) or "pcs")
        self._parts.append(part)
        return part

    def delete(self, part_no):
        part = self.get(part_no)
        if part is None:
            raise NotFoundError(f"Spare part {part_no} not found")
        self._parts.remove(part)
        return part


# ── PRODUCTION ────────────────────────────────────────────────────────────────

@dataclass
class ProductionRecord:
    id: str
    date: str
    unit: str
    activity_type: str
    quantity: float
    duration_hours: float
    shift: str = "Morning"
    unit_type: str = "N/A"
    operator: Optional[str] = None
    estimated_cost: float = 0

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date,
            "unit": self.unit,
            "unit_type": self.unit_type,
            "shift": self.shift,
            "activity_type": self.activity_type,
            "quantity": self.quantity,
            "duration_hours": self.duration_hours,
            "operator": self.operator,
            "estimated_cost": self.estimated_cost,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data["id"]),
            date=data.get("date", ""),
            unit=data.get("unit", ""),
            unit_type=data.get("unit_type") or "N/A",
            shift=data.get("shift") or "Morning",
            activity_type=data.get("activity_type", ""),
            quantity=data.get("quantity") or 0,
            duration_hours=data.get("duration_hours") or 0,
            operator=_text(data.get("operator")),
            estimated_cost=data.get("estimated_cost") or 0,
        )


class ProductionLog:
    """Shift production entries, costed against the unit roster at entry time."""

    def __init__(self, roster, records=None, clock=time.time):
        self.roster = roster
        self._records = list(records or [])
        self._clock = clock

    def __iter__(self):
        return iter(list(self._records))

    def __len__(self):
        return len(self._records)

    def to_list(self):
        return [r.to_dict() for r in self._records]

    def get(self, record_id):
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def _next_id(self):
        stamp = int(self._clock() * 1000)
        while self.get(str(stamp)):
            stamp += 1
        return str(stamp)

    def add(self, fields):
        unit_code = _text(fields.get("unit"))
        date = _text(fields.get("date"))
        activity = _text(fields.get("activity_type"))
        if not unit_code or not date or not activity:
            raise ValidationError("Unit, date and activity type are required")
        if activity not in ACTIVITY_TYPES:
            raise ValidationError(f"Unknown activity type {activity!r}")
        shift = _text(fields.get("shift")) or "Morning"
        if shift not in SHIFTS:
            raise ValidationError(f"Unknown shift {shift!r}")
        quantity = _amount(fields.get("quantity"), "Quantity")
        duration = _amount(fields.get("duration_hours"), "Duration")

        unit = self.roster.get(unit_code)
        rate = unit.cost_per_operational_hour if unit else 0
        record = ProductionRecord(
            id=self._next_id(),
            date=date,
            unit=unit_code,
            unit_type=unit.type if unit else "N/A",
            shift=shift,
            activity_type=activity,
            quantity=quantity,
            duration_hours=duration,
            operator=_text(fields.get("operator")),
            estimated_cost=duration * rate if rate else 0,
        )
        self._records.append(record)
        return record

    def delete(self, record_id):
        record = self.get(record_id)
        if record is None:
            raise NotFoundError(f"Production record {record_id} not found")
        self._records.remove(record)
        return record
