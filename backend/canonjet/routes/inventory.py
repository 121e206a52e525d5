# Overview: Flask API routes for inventory items, stock movements and spreadsheet exchange.

# backend/canonjet/routes/inventory.py
"""
Inventory routes.

POST/PUT accept multipart form data (the mobile app uploads the product
photo together with the fields); PUT also accepts JSON when no new image is
sent. Money travels as decimal amounts and is stored as integer cents.
"""
from flask import Blueprint, Response, current_app, request

from ..models import InventoryItem
from ..services import inventory_service
from ..services.image_store import delete_image, save_image
from ..services.inventory_io_service import (
    export_inventory_csv,
    import_inventory_rows,
    read_rows,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_inventory_item,
    validate_payload,
)

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"nombre", "descripcion", "precio_base", "cantidad"},
    required_on_create={"nombre", "precio_base", "cantidad"},
    aliases={
        "nombre": "name",
        "descripcion": "description",
        "precio_base": "base_cost_cents",
        "cantidad": "stock_count",
    },
    money_fields={"precio_base"},
    ignored_fields={"id", "imagen", "imagen_actual", "fecha_creacion"},
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventario")


def _request_fields() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@inventory_bp.get("")
def list_items():
    return {"productos": [item.to_dict() for item in inventory_service.list_items()]}


@inventory_bp.get("/<int:item_id>")
def get_item(item_id: int):
    return inventory_service.get_item(item_id).to_dict()


@inventory_bp.get("/<int:item_id>/movimientos")
def list_movements(item_id: int):
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))
    movements = inventory_service.list_movements(item_id, limit=limit)
    return {"id_producto": item_id, "movimientos": [m.to_dict() for m in movements]}


@inventory_bp.post("")
def create_item():
    """Create an item. Multipart with fields nombre, descripcion, precio_base, cantidad and file imagen."""
    upload = request.files.get("imagen")
    if upload is None or not upload.filename:
        raise ValidationError("imagen is required")

    patch = validate_payload(
        model=InventoryItem, payload=_request_fields(), policy=INVENTORY_ITEM_POLICY, partial=False
    )
    enforce_rules_inventory_item(patch)

    patch["image"] = save_image(upload)
    try:
        item = inventory_service.create_item(patch)
    except Exception:
        delete_image(patch["image"])
        raise

    current_app.logger.info("Inventory item %s created", item.id)
    return {"id": item.id, "producto": item.to_dict()}, 201


@inventory_bp.put("/<int:item_id>")
def update_item(item_id: int):
    """
    Update an item.

    A new imagen file replaces the stored one; otherwise imagen_actual (when
    sent) is kept as the image name.
    """
    fields = _request_fields()
    patch = validate_payload(
        model=InventoryItem, payload=fields, policy=INVENTORY_ITEM_POLICY, partial=True
    )
    enforce_rules_inventory_item(patch)

    previous_image = inventory_service.get_item(item_id).image

    upload = request.files.get("imagen")
    if upload is not None and upload.filename:
        patch["image"] = save_image(upload)
    elif fields.get("imagen_actual"):
        patch["image"] = str(fields["imagen_actual"]).strip()

    try:
        item = inventory_service.update_item(item_id, patch)
    except Exception:
        if upload is not None and upload.filename:
            delete_image(patch["image"])
        raise

    if previous_image and item.image != previous_image:
        delete_image(previous_image)

    return item.to_dict()


@inventory_bp.delete("/<int:item_id>")
def delete_item(item_id: int):
    image = inventory_service.delete_item(item_id)
    delete_image(image)
    current_app.logger.info("Inventory item %s deleted", item_id)
    return {"mensaje": "Producto eliminado", "id": item_id}


# =============================================================================
# SPREADSHEET EXCHANGE
# =============================================================================

@inventory_bp.get("/export")
def export_items():
    return Response(
        export_inventory_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=inventario.csv"},
    )


@inventory_bp.post("/import")
def import_items():
    """Import a .csv or .xlsx file sent as multipart field `archivo` (or `file`)."""
    upload = request.files.get("archivo") or request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("archivo is required")

    result = import_inventory_rows(read_rows(upload))
    current_app.logger.info(
        "Inventory import: %s created, %s updated", result["creados"], result["actualizados"]
    )
    return result, 201
