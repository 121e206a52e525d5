# Overview: Inventory CSV export and CSV/Excel import.

"""
Inventory spreadsheet exchange.

Column order is fixed: id,nombre,descripcion,precio_base,cantidad,imagen,fecha_creacion
(fecha_creacion is written on export and ignored on import).

Import is all-or-nothing: rows whose id matches an existing item update it,
every other row creates a new item. The first invalid row aborts the whole
import and is reported by its 1-based data row number.
"""

from __future__ import annotations

import csv
import io

from werkzeug.datastructures import FileStorage

from ..extensions import db
from ..models import InventoryItem
from ..money_utils import format_amount
from ..time_utils import to_utc_z
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_inventory_item,
    validate_payload,
)
from .concurrency import run_with_retry
from .inventory_service import _create_item_inner, _update_item_inner, get_item


CSV_COLUMNS = ["id", "nombre", "descripcion", "precio_base", "cantidad", "imagen", "fecha_creacion"]

INVENTORY_IMPORT_POLICY = ModelValidationPolicy(
    writable_fields={"nombre", "descripcion", "precio_base", "cantidad", "imagen"},
    required_on_create={"nombre"},
    aliases={
        "nombre": "name",
        "descripcion": "description",
        "precio_base": "base_cost_cents",
        "cantidad": "stock_count",
        "imagen": "image",
    },
    money_fields={"precio_base"},
    ignored_fields={"id", "fecha_creacion"},
)


def export_inventory_csv() -> str:
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for item in db.session.query(InventoryItem).order_by(InventoryItem.id.asc()).all():
        writer.writerow([
            item.id,
            item.name,
            item.description or "",
            format_amount(item.base_cost_cents),
            item.stock_count,
            item.image or "",
            to_utc_z(item.created_at) or "",
        ])
    return out.getvalue()


def _normalize_row(row: dict) -> dict:
    cleaned = {}
    for key, value in row.items():
        if key is None:
            continue
        name = str(key).strip().lower()
        if not name:
            continue
        if isinstance(value, str):
            value = value.strip()
        cleaned[name] = value
    return cleaned


def read_rows(upload: FileStorage) -> list[dict]:
    """Parse a .csv or .xlsx upload into dict rows keyed by header."""
    filename = upload.filename or ""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if ext == "csv":
        try:
            text = upload.stream.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV file must be UTF-8 encoded")
        reader = csv.DictReader(io.StringIO(text))
        if not reader.fieldnames or "nombre" not in [f.strip().lower() for f in reader.fieldnames]:
            raise ValidationError("CSV header must include: " + ",".join(CSV_COLUMNS[:6]))
        return [_normalize_row(row) for row in reader]

    if ext in {"xlsx", "xlsm"}:
        from openpyxl import load_workbook

        wb = load_workbook(upload.stream, data_only=True, read_only=True)
        sheet = wb.active
        data = list(sheet.values)
        if not data:
            return []
        headers = [str(h).strip().lower() if h is not None else "" for h in data[0]]
        if "nombre" not in headers:
            raise ValidationError("Sheet header must include: " + ",".join(CSV_COLUMNS[:6]))
        return [
            _normalize_row({headers[i]: row[i] for i in range(min(len(headers), len(row)))})
            for row in data[1:]
            if any(cell not in (None, "") for cell in row)
        ]

    raise ValidationError("Unsupported file format (use .csv or .xlsx)")


def _existing_item_id(raw) -> int | None:
    if raw in (None, ""):
        return None
    try:
        item_id = int(str(raw).strip())
    except ValueError:
        raise ValidationError("id must be an integer")
    try:
        get_item(item_id, lock=True)
    except NotFoundError:
        return None
    return item_id


def import_inventory_rows(rows: list[dict]) -> dict:
    if not rows:
        raise ValidationError("Import file has no rows")

    def _op():
        created = 0
        updated = 0
        for number, row in enumerate(rows, start=1):
            try:
                item_id = _existing_item_id(row.get("id"))
                patch = validate_payload(
                    model=InventoryItem,
                    payload=row,
                    policy=INVENTORY_IMPORT_POLICY,
                    partial=item_id is not None,
                )
                enforce_rules_inventory_item(patch)
            except ValidationError as e:
                raise ValidationError(f"Row {number}: {e}", details={"fila": number, **e.details})

            if item_id is None:
                _create_item_inner(patch)
                created += 1
            else:
                _update_item_inner(get_item(item_id), patch, note=f"Import row {number}")
                updated += 1

        db.session.commit()
        return {"creados": created, "actualizados": updated}

    return run_with_retry(_op)
