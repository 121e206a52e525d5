# Overview: Flask API routes for pedidos (orders); parses input and returns JSON responses.

# backend/canonjet/routes/orders.py
"""
Order routes.

Lifecycle endpoints:
- POST /api/pedidos                     gestor creates a pending order
- PUT  /api/pedidos/<id>/asignar        empresa approves and assigns a courier
- PUT  /api/pedidos/<id>/rechazar       empresa rejects
- POST /api/pedidos/<id>/entregar       repartidor reports delivered quantities
"""
from flask import Blueprint, request

from ..models import Order, ORDER_STATUSES
from ..services import order_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_order_header,
    parse_positive_int,
    validate_payload,
)

ORDER_HEADER_POLICY = ModelValidationPolicy(
    writable_fields={
        "id_gestor",
        "nombre_gestor",
        "nombre_cliente",
        "numero_cliente",
        "direccion",
        "tipo_pedido",
        "horario",
        "precio_mensajeria",
    },
    required_on_create={"id_gestor", "tipo_pedido"},
    aliases={
        "id_gestor": "manager_id",
        "nombre_gestor": "manager_name",
        "nombre_cliente": "customer_name",
        "numero_cliente": "customer_phone",
        "direccion": "address",
        "tipo_pedido": "order_kind",
        "horario": "schedule",
        "precio_mensajeria": "delivery_fee_cents",
    },
    money_fields={"precio_mensajeria"},
    ignored_fields={"productos"},
)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/pedidos")


def _orders_payload(orders) -> dict:
    return {"pedidos": [o.to_dict() for o in orders]}


@orders_bp.post("")
def create_order():
    """
    Create a pending order.

    Body:
    {
      "id_gestor": 1, "nombre_gestor": "...", "nombre_cliente": "...",
      "numero_cliente": "...", "direccion": "...", "tipo_pedido": "local|domicilio",
      "horario": "...", "precio_mensajeria": 5.00,
      "productos": [{"id_producto": 1, "cantidad": 2, "precio_vendido": 10.00}]
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    lines = order_service.parse_order_lines(data.get("productos"))
    header = validate_payload(model=Order, payload=data, policy=ORDER_HEADER_POLICY, partial=False)
    enforce_rules_order_header(header)

    order = order_service.create_order(
        manager_id=header["manager_id"],
        order_kind=header["order_kind"],
        lines=lines,
        manager_name=header.get("manager_name"),
        customer_name=header.get("customer_name"),
        customer_phone=header.get("customer_phone"),
        address=header.get("address"),
        schedule=header.get("schedule"),
        delivery_fee_cents=header.get("delivery_fee_cents") or 0,
    )
    return {"mensaje": "Pedido creado", "id": order.id, "pedido": order.to_dict()}, 201


@orders_bp.get("")
def list_orders():
    """All orders, newest first. Optional ?estado= filter."""
    status = request.args.get("estado")
    if status and status not in ORDER_STATUSES:
        raise ValidationError(f"estado must be one of: {', '.join(sorted(ORDER_STATUSES))}")
    return _orders_payload(order_service.list_orders(status))


@orders_bp.get("/gestor/<int:manager_id>")
def list_manager_orders(manager_id: int):
    return _orders_payload(order_service.list_orders_for_manager(manager_id))


@orders_bp.get("/repartidor/<int:courier_id>")
def list_courier_orders(courier_id: int):
    return _orders_payload(order_service.list_orders_for_courier(courier_id))


@orders_bp.get("/<int:order_id>")
def get_order(order_id: int):
    """Header plus lines with product name and image."""
    return order_service.get_order_detail(order_id)


@orders_bp.put("/<int:order_id>/asignar")
def assign_order(order_id: int):
    data = request.get_json(silent=True) or {}
    courier_id = parse_positive_int(data.get("id_repartidor"), "id_repartidor")

    order = order_service.approve_order(order_id, courier_id)
    return {"mensaje": "Pedido aprobado", "pedido": order.to_dict()}


@orders_bp.put("/<int:order_id>/rechazar")
def reject_order(order_id: int):
    order = order_service.reject_order(order_id)
    return {"mensaje": "Pedido rechazado", "pedido": order.to_dict()}


@orders_bp.post("/<int:order_id>/entregar")
def deliver_order(order_id: int):
    """
    Body: {"productos_entregados": [{"detalle_id": 7, "cantidad_entregada": 2}, ...]}
    ("items" is accepted as the list name too.)
    """
    data = request.get_json(silent=True) or {}
    raw = data.get("productos_entregados")
    if raw is None:
        raw = data.get("items")

    items = order_service.parse_delivery_items(raw)
    order = order_service.deliver_order(order_id, items)
    return {"mensaje": "Pedido entregado", "pedido": order.to_dict()}
