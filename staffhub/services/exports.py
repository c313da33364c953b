from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from io import BytesIO

from openpyxl import Workbook
from openpyxl.cell.cell import Cell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from staffhub.schemas import GeofenceLocationRead

LOCATION_HEADERS = [
    "Name",
    "Address",
    "Coordinates",
    "Radius",
    "Assigned Employees",
    "Created",
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="1D4ED8")
META_LABEL_FILL = PatternFill(fill_type="solid", fgColor="EAF1FD")
META_VALUE_FILL = PatternFill(fill_type="solid", fgColor="F8FBFF")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F5F8FE")
WARNING_FILL = PatternFill(fill_type="solid", fgColor="FFF3CD")

HEADER_FONT = Font(bold=True, color="FFFFFF")
BOLD_FONT = Font(bold=True, color="0F172A")
TITLE_FONT = Font(bold=True, color="1D4ED8", size=14)
MUTED_FONT = Font(color="334155")

THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)


def format_coordinates(latitude: float, longitude: float) -> str:
    return f"{latitude:.6f}, {longitude:.6f}"


def format_radius(radius: int) -> str:
    return f"{radius}m"


def format_created(value: datetime | None) -> str:
    if value is None:
        return "-"
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d")


def format_assigned(location: GeofenceLocationRead) -> str:
    if location.assigned_employees is None:
        return "unavailable"
    if location.employee_details:
        return ", ".join(f"{item.name} ({item.employee_id})" for item in location.employee_details)
    return str(len(location.assigned_employees))


def format_location_row(location: GeofenceLocationRead) -> dict[str, str]:
    return {
        "name": location.name,
        "address": location.address,
        "coordinates": format_coordinates(location.latitude, location.longitude),
        "radius": format_radius(location.radius),
        "assigned": format_assigned(location),
        "created": format_created(location.created_at),
    }


def _paint(
    cell: Cell,
    *,
    font: Font | None = None,
    fill: PatternFill | None = None,
    alignment: Alignment | None = None,
) -> None:
    cell.border = THIN_BORDER
    if font is not None:
        cell.font = font
    if fill is not None:
        cell.fill = fill
    if alignment is not None:
        cell.alignment = alignment


def _write_banner(ws: Worksheet, title: str, facts: list[tuple[str, object]]) -> None:
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(LOCATION_HEADERS))
    banner = ws.cell(row=1, column=1, value=title)
    banner.font = TITLE_FONT
    banner.alignment = Alignment(horizontal="left", vertical="center")

    for label, value in facts:
        ws.append([label, value])
        _paint(ws.cell(row=ws.max_row, column=1), font=BOLD_FONT, fill=META_LABEL_FILL)
        _paint(ws.cell(row=ws.max_row, column=2), font=MUTED_FONT, fill=META_VALUE_FILL)


def _write_table(ws: Worksheet, rows: list[list[str]]) -> int:
    ws.append(LOCATION_HEADERS)
    header_row = ws.max_row
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[header_row]:
        _paint(cell, font=HEADER_FONT, fill=HEADER_FILL, alignment=header_alignment)
    ws.freeze_panes = f"A{header_row + 1}"
    if not rows:
        return header_row

    assigned_col = LOCATION_HEADERS.index("Assigned Employees") + 1
    for offset, values in enumerate(rows):
        ws.append(values)
        for cell in ws[ws.max_row]:
            _paint(
                cell,
                fill=ZEBRA_FILL if offset % 2 else None,
                alignment=Alignment(vertical="top", wrap_text=cell.column == assigned_col),
            )
            if cell.column == assigned_col and cell.value == "unavailable":
                cell.fill = WARNING_FILL

    ws.auto_filter.ref = f"A{header_row}:{get_column_letter(len(LOCATION_HEADERS))}{ws.max_row}"
    return header_row


def _fit_columns(ws: Worksheet, *, skip_rows: int) -> None:
    # The merged banner row would otherwise stretch the first column.
    for column in ws.iter_cols(min_row=skip_rows + 1, max_row=ws.max_row):
        widest = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(widest + 2, 45)


def build_locations_xlsx_bytes(
    locations: Sequence[GeofenceLocationRead],
    *,
    query: str | None = None,
) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Locations"

    _write_banner(
        ws,
        "Geofence Locations",
        [
            ("Generated (UTC)", datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")),
            ("Search", (query or "").strip() or "-"),
            ("Location Count", len(locations)),
        ],
    )
    ws.append([])
    columns = ("name", "address", "coordinates", "radius", "assigned", "created")
    _write_table(ws, [[row[key] for key in columns] for row in map(format_location_row, locations)])
    _fit_columns(ws, skip_rows=1)

    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()
