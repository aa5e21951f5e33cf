from datetime import datetime
from io import BytesIO
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from erp.models.inventory_movement import InventoryMovement

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

INVENTORY_COLUMNS = (
    ("Product ID", "product_id"),
    ("Product", "product_name"),
    ("Quantity", "quantity"),
    ("Reorder Level", "reorder_level"),
    ("Low Stock", "is_low_stock"),
    ("Last Updated", "last_updated"),
)

MOVEMENT_COLUMNS = (
    ("Date", "date"),
    ("Product ID", "product_id"),
    ("Product", "product_name"),
    ("Type", "type"),
    ("Amount", "amount"),
    ("Previous Qty", "previous_quantity"),
    ("New Qty", "new_quantity"),
    ("Reason", "reason"),
    ("Reference", "reference"),
    ("Notes", "notes"),
    ("Recorded At", "created_at"),
)


def _cell_value(value):
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        # Excel cannot store tz-aware datetimes.
        return value.replace(tzinfo=None)
    return value


def _write_sheet(worksheet, columns, rows) -> None:
    worksheet.append([title for title, _ in columns])
    for cell in worksheet[1]:
        cell.font = Font(bold=True)
    worksheet.freeze_panes = "A2"

    widths = [len(title) for title, _ in columns]
    for row in rows:
        values = [_cell_value(row.get(key)) for _, key in columns]
        worksheet.append(values)
        for index, value in enumerate(values):
            if value is not None:
                widths[index] = max(widths[index], min(len(str(value)), 60))

    for index, width in enumerate(widths, start=1):
        worksheet.column_dimensions[get_column_letter(index)].width = width + 2


def _movement_row(movement: InventoryMovement) -> dict:
    return {key: getattr(movement, key) for _, key in MOVEMENT_COLUMNS}


def build_inventory_workbook(
    summary: Iterable[dict],
    movements: Iterable[InventoryMovement],
) -> bytes:
    workbook = Workbook()
    inventory_sheet = workbook.active
    inventory_sheet.title = "Inventory"
    _write_sheet(inventory_sheet, INVENTORY_COLUMNS, summary)

    movement_sheet = workbook.create_sheet("Movements")
    _write_sheet(movement_sheet, MOVEMENT_COLUMNS, [_movement_row(m) for m in movements])

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


__all__ = ["XLSX_MEDIA_TYPE", "build_inventory_workbook"]
