"""Work order spreadsheet export."""

import io
import logging

import openpyxl
from openpyxl.utils import get_column_letter

from errors import ValidationError
from money import format_currency

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "Work_Orders_Export.xlsx"
SHEET_TITLE = "Work Orders"

COLUMNS = [
    "WO No", "Date", "Unit", "Type", "Component", "Sub Component", "Breakdown Info",
    "Start Time", "End Time", "Duration (min)", "Work Status", "Work Description (RFU)",
    "Manpower", "Spare Part Detail", "WO Status",
]


def describe_material(line):
    return (f"{line.material} (PartNo: {line.part_no or '-'}, Qty: {line.quantity or '-'}, "
            f"UoM: {line.unit_of_measure or '-'}, Price: {format_currency(line.unit_price)}, "
            f"Total: {format_currency(line.total_price)}, Status: {line.material_status or '-'})")


def work_order_row(wo):
    return [
        wo.wo_number, wo.date, wo.unit, wo.unit_type, wo.component, wo.sub_component,
        wo.description, wo.start_time, wo.end_time, wo.duration_minutes, wo.work_status,
        wo.work_description,
        ", ".join(wo.manpower),
        "; ".join(describe_material(m) for m in wo.materials),
        wo.status,
    ]


def export_work_orders(work_orders):
    """Flatten the ledger into an .xlsx workbook and return its bytes."""
    rows = [work_order_row(wo) for wo in work_orders]
    if not rows:
        raise ValidationError("No data to export")

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    sheet.append(COLUMNS)
    for row in rows:
        sheet.append(row)
    for col, header in enumerate(COLUMNS, start=1):
        width = max(len(header), *(len(str(r[col - 1] or "")) for r in rows))
        sheet.column_dimensions[get_column_letter(col)].width = min(width + 2, 60)

    buffer = io.BytesIO()
    workbook.save(buffer)
    logger.info("Exported %d work order(s)", len(rows))
    return buffer.getvalue()
