"""
Work order ledger.

Holds the breakdown records and everything that changes them: creation, the
manpower and material sub-ledgers, closing a work order as Ready For Use (RFU),
admin edits and deletion. Derived fields (duration, status, line totals) are
recomputed here on every mutation so callers never set them directly.

Status rule: a work order is RFU exactly when it has both an end time and a
work description. ``close`` forces RFU, ``edit`` re-derives it.
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from errors import NotFoundError, ValidationError
from money import compute_duration_minutes, parse_clock, parse_currency

logger = logging.getLogger(__name__)

STATUS_OPEN = "OPEN"
STATUS_RFU = "RFU"
STATUSES = (STATUS_OPEN, STATUS_RFU)

WORK_STATUSES = ("InProgress", "Pending")
MATERIAL_STATUSES = ("Installed", "PendingRequest", "NotNeeded")

REQUIRED_FIELDS = ("date", "unit", "start_time", "component", "sub_component",
                   "description", "work_status")
DESCRIPTIVE_FIELDS = REQUIRED_FIELDS + ("unit_type",)
PATCHABLE_FIELDS = DESCRIPTIVE_FIELDS + ("end_time", "work_description", "manpower", "materials")


def _text(value):
    """Strip a form value; blank becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _quantity(value):
    if isinstance(value, bool):
        raise ValidationError("Quantity must be a whole number")
    if value is None or value == "":
        return 0
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Quantity must be a whole number, got {value!r}")


@dataclass
class MaterialUsage:
    """One spare part line consumed against a work order."""
    material: str
    quantity: int
    unit_of_measure: str
    unit_price: float = 0
    total_price: float = 0
    part_no: Optional[str] = None
    material_status: str = "Installed"

    def to_dict(self):
        return {
            "material": self.material,
            "part_no": self.part_no,
            "quantity": self.quantity,
            "unit_of_measure": self.unit_of_measure,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "material_status": self.material_status,
        }

    @classmethod
    def from_dict(cls, data):
        unit_price = parse_currency(data.get("unit_price", 0))
        quantity = _quantity(data.get("quantity", 0))
        total_price = data.get("total_price")
        if total_price is None:
            total_price = unit_price * quantity
        return cls(
            material=data.get("material", ""),
            quantity=quantity,
            unit_of_measure=data.get("unit_of_measure", ""),
            unit_price=unit_price,
            total_price=total_price,
            part_no=_text(data.get("part_no")),
            material_status=data.get("material_status") or "Installed",
        )


def build_material(usage):
    """
    Validate a material line (a dict or MaterialUsage) and price it.

    ``total_price`` is always ``unit_price * quantity`` of the line itself;
    later changes to the spare part catalog never touch it.
    """
    if isinstance(usage, MaterialUsage):
        usage = usage.to_dict()
    if not isinstance(usage, dict):
        raise ValidationError(f"Spare part entry must be an object, got {usage!r}")
    material = _text(usage.get("material"))
    unit_of_measure = _text(usage.get("unit_of_measure"))
    quantity = _quantity(usage.get("quantity", 0))
    if not material or quantity <= 0 or not unit_of_measure:
        raise ValidationError("Spare part, quantity and unit of measure are required")
    unit_price = parse_currency(usage.get("unit_price", 0))
    if unit_price < 0:
        raise ValidationError("Unit price cannot be negative")
    material_status = usage.get("material_status") or "Installed"
    if material_status not in MATERIAL_STATUSES:
        raise ValidationError(f"Unknown material status {material_status!r}")
    return MaterialUsage(
        material=material,
        quantity=quantity,
        unit_of_measure=unit_of_measure,
        unit_price=unit_price,
        total_price=unit_price * quantity,
        part_no=_text(usage.get("part_no")),
        material_status=material_status,
    )


def check_manpower_name(existing, name):
    """Return the stripped name if it can join ``existing``."""
    if name is not None and not isinstance(name, str):
        raise ValidationError(f"Manpower name must be text, got {name!r}")
    name = _text(name)
    if not name:
        raise ValidationError("Manpower name cannot be empty")
    if name in existing:
        raise ValidationError(f"Manpower {name!r} is already added")
    return name


def _entries(values, label):
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        raise ValidationError(f"{label} must be a list, got {type(values).__name__}")
    return list(values)


def build_manpower(names):
    checked = []
    for name in _entries(names, "Manpower"):
        checked.append(check_manpower_name(checked, name))
    return checked


def build_materials(usages):
    return [build_material(m) for m in _entries(usages, "Materials")]


@dataclass
class WorkOrder:
    """A breakdown incident from report to Ready For Use."""
    wo_number: str
    date: str
    unit: str
    start_time: str
    component: str
    sub_component: str
    description: str
    work_status: str
    unit_type: Optional[str] = None
    status: str = STATUS_OPEN
    end_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    work_description: Optional[str] = None
    manpower: List[str] = field(default_factory=list)
    materials: List[MaterialUsage] = field(default_factory=list)

    @property
    def material_cost(self):
        return sum(m.total_price for m in self.materials)

    def to_dict(self):
        return {
            "wo_number": self.wo_number,
            "date": self.date,
            "unit": self.unit,
            "unit_type": self.unit_type,
            "start_time": self.start_time,
            "component": self.component,
            "sub_component": self.sub_component,
            "description": self.description,
            "work_status": self.work_status,
            "status": self.status,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
            "work_description": self.work_description,
            "manpower": list(self.manpower),
            "materials": [m.to_dict() for m in self.materials],
        }

    @classmethod
    def from_dict(cls, data):
        status = data.get("status") or STATUS_OPEN
        return cls(
            wo_number=data["wo_number"],
            date=data.get("date", ""),
            unit=data.get("unit", ""),
            unit_type=_text(data.get("unit_type")),
            start_time=data.get("start_time", ""),
            component=data.get("component", ""),
            sub_component=data.get("sub_component", ""),
            description=data.get("description", ""),
            work_status=data.get("work_status", ""),
            status=status if status in STATUSES else STATUS_OPEN,
            end_time=_text(data.get("end_time")),
            duration_minutes=data.get("duration_minutes"),
            work_description=_text(data.get("work_description")),
            manpower=list(data.get("manpower") or []),
            materials=[MaterialUsage.from_dict(m) for m in data.get("materials") or []],
        )


def _check_descriptive(values):
    missing = [name for name in REQUIRED_FIELDS if not values.get(name)]
    if missing:
        raise ValidationError("Missing required field(s): " + ", ".join(missing))
    parse_clock(values["start_time"])
    if values["work_status"] not in WORK_STATUSES:
        raise ValidationError(f"Unknown work status {values['work_status']!r}")


def derive_status(order):
    """Re-derive OPEN/RFU after an edit."""
    complete = bool(order.end_time and order.work_description)
    if order.status == STATUS_RFU and not complete:
        return STATUS_OPEN
    if complete and order.status != STATUS_RFU:
        return STATUS_RFU
    return order.status


class WorkOrderLedger:
    """
    All work orders, most recent first.

    The ledger owns no storage; the application state saves ``to_list()``
    after each mutation.
    """

    def __init__(self, sequence, suggestions, work_orders=None):
        self.sequence = sequence
        self.suggestions = suggestions
        self._orders = list(work_orders or [])

    def __len__(self):
        return len(self._orders)

    def __iter__(self):
        return iter(list(self._orders))

    def to_list(self):
        return [o.to_dict() for o in self._orders]

    def _index(self, wo_number):
        for i, order in enumerate(self._orders):
            if order.wo_number == wo_number:
                return i
        raise NotFoundError(f"Work order {wo_number} not found")

    def get(self, wo_number):
        return self._orders[self._index(wo_number)]

    def open_orders(self):
        return [o for o in self._orders if o.status == STATUS_OPEN]

    def closed_orders(self):
        return [o for o in self._orders if o.status == STATUS_RFU]

    # ── lifecycle ──

    def create(self, fields):
        values = {name: _text(fields.get(name)) for name in DESCRIPTIVE_FIELDS}
        _check_descriptive(values)
        order = WorkOrder(wo_number=self.sequence.peek_next(), **values)
        self._orders.insert(0, order)
        self.sequence.advance()
        self.suggestions.add("component", order.component)
        self.suggestions.add("sub_component", order.sub_component)
        logger.info("Created work order %s for unit %s", order.wo_number, order.unit)
        return order

    def close(self, wo_number, end_time, work_description, manpower, materials):
        order = self.get(wo_number)
        end_time = _text(end_time)
        work_description = _text(work_description)
        if not end_time:
            raise ValidationError("End time is required to close a work order")
        if not work_description:
            raise ValidationError("Work description is required to close a work order")
        duration = compute_duration_minutes(order.start_time, end_time)
        final_manpower = build_manpower(manpower)
        final_materials = build_materials(materials)

        order.end_time = end_time
        order.work_description = work_description
        order.manpower = final_manpower
        order.materials = final_materials
        order.duration_minutes = duration
        order.status = STATUS_RFU
        self._remember_sub_ledgers(order)
        logger.info("Closed work order %s (RFU) after %s min", wo_number, duration)
        return order

    def edit(self, wo_number, patch):
        """
        Apply an admin edit. The caller is responsible for the edit gate.

        The patch is validated against a copy, so a rejected edit leaves the
        record as it was.
        """
        index = self._index(wo_number)
        unknown = sorted(set(patch) - set(PATCHABLE_FIELDS))
        if unknown:
            raise ValidationError("Fields cannot be edited: " + ", ".join(unknown))
        order = copy.deepcopy(self._orders[index])
        for name in DESCRIPTIVE_FIELDS:
            if name in patch:
                setattr(order, name, _text(patch[name]))
        _check_descriptive({name: getattr(order, name) for name in DESCRIPTIVE_FIELDS})
        if "end_time" in patch:
            order.end_time = _text(patch["end_time"])
            if order.end_time:
                parse_clock(order.end_time)
        if "work_description" in patch:
            order.work_description = _text(patch["work_description"])
        if "manpower" in patch:
            order.manpower = build_manpower(patch["manpower"])
        if "materials" in patch:
            order.materials = build_materials(patch["materials"])

        order.duration_minutes = compute_duration_minutes(order.start_time, order.end_time)
        previous = order.status
        order.status = derive_status(order)
        self._orders[index] = order

        self._remember_sub_ledgers(order)
        self.suggestions.add("component", order.component)
        self.suggestions.add("sub_component", order.sub_component)
        if previous != order.status:
            logger.info("Work order %s moved %s -> %s on edit", wo_number, previous, order.status)
        return order

    def delete(self, wo_number):
        """Remove a work order for good. Confirmation is the caller's job."""
        order = self._orders.pop(self._index(wo_number))
        logger.info("Deleted work order %s", wo_number)
        return order

    # ── sub-ledgers ──

    def add_manpower(self, wo_number, name):
        order = self.get(wo_number)
        name = check_manpower_name(order.manpower, name)
        order.manpower.append(name)
        self.suggestions.add("manpower", name)
        return order

    def remove_manpower(self, wo_number, index):
        order = self.get(wo_number)
        return order.manpower.pop(_position(order.manpower, index))

    def add_material(self, wo_number, usage):
        order = self.get(wo_number)
        line = build_material(usage)
        order.materials.append(line)
        self.suggestions.add("material", line.material)
        return line

    def remove_material(self, wo_number, index):
        order = self.get(wo_number)
        return order.materials.pop(_position(order.materials, index))

    def stage(self, wo_number):
        return CloseSession(self, wo_number)

    def _remember_sub_ledgers(self, order):
        self.suggestions.add_many("manpower", order.manpower)
        self.suggestions.add_many("material", [m.material for m in order.materials])


def _position(items, index):
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(items):
        raise IndexError(f"Index {index!r} out of range for {len(items)} item(s)")
    return index


class CloseSession:
    """
    Staging buffer behind the close dialog.

    Starts from a copy of the work order's manpower and material lists; edits
    touch only the copy until ``commit``. Dropping the session discards them.
    """

    def __init__(self, ledger, wo_number):
        order = ledger.get(wo_number)
        self._ledger = ledger
        self.wo_number = wo_number
        self.manpower = list(order.manpower)
        self.materials = [replace(m) for m in order.materials]

    def add_manpower(self, name):
        name = check_manpower_name(self.manpower, name)
        self.manpower.append(name)
        self._ledger.suggestions.add("manpower", name)
        return name

    def remove_manpower(self, index):
        return self.manpower.pop(_position(self.manpower, index))

    def add_material(self, usage):
        line = build_material(usage)
        self.materials.append(line)
        self._ledger.suggestions.add("material", line.material)
        return line

    def remove_material(self, index):
        return self.materials.pop(_position(self.materials, index))

    def commit(self, end_time, work_description):
        return self._ledger.close(self.wo_number, end_time, work_description,
                                  self.manpower, self.materials)
