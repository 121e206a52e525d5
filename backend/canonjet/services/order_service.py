# Overview: Order lifecycle state machine, its inventory side effects, and order reads.

"""
Order Service - pedido lifecycle

LIFECYCLE:
    pendiente --approve/assign--> aprobado --deliver--> entregado
    pendiente --reject----------> rechazado
rechazado and entregado are terminal. Every transition checks the current
status first and raises InvalidTransition without touching anything else.

INVENTORY SIDE EFFECTS (same DB transaction as the status change):
- create:  every line reserves its quantity (stock_count -= cantidad)
- reject:  every line releases its reservation (stock_count += cantidad_pedida)
- deliver: every line returns its shortfall (cantidad_pedida - cantidad_entregada)

TRANSACTIONS:
- Each operation is one all-or-nothing transaction run through run_with_retry.
  A failing line aborts the whole operation and is named in the error details.
- Order carries a version_id: two concurrent transitions on the same order
  cannot both commit. The loser is retried and then fails the status guard.

NOTIFICATIONS:
- Published only after commit, through notification_service (best effort).

TOTALS:
- grand_total = line_items_total + delivery_fee is computed once at creation.
- delivered_total (sum of cantidad_entregada * precio_vendido) is recorded at
  delivery; grand_total is left as the at-creation estimate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import (
    InventoryItem,
    Order,
    OrderLine,
    User,
    ROLE_COURIER,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_REJECTED,
    ORDER_STATUS_DELIVERED,
    MOVEMENT_RESERVE,
    MOVEMENT_RETURN,
    MOVEMENT_RELEASE,
)
from ..money_utils import MAX_AMOUNT_CENTS
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    MAX_QUANTITY,
    parse_amount,
    parse_non_negative_int,
    parse_positive_int,
)
from . import notification_service
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import decrement_stock_inner, increment_stock_inner


class EmptyOrderError(ValidationError):
    """Raised when an order is submitted without products."""


class EmptyDeliveryError(ValidationError):
    """Raised when a delivery is reported without items."""


class InvalidTransition(ConflictError):
    """Raised when a transition is not legal from the order's current status."""


# =============================================================================
# STATE MACHINE
# =============================================================================

ALLOWED_TRANSITIONS = {
    ORDER_STATUS_PENDING: {ORDER_STATUS_APPROVED, ORDER_STATUS_REJECTED},
    ORDER_STATUS_APPROVED: {ORDER_STATUS_DELIVERED},
    ORDER_STATUS_REJECTED: set(),
    ORDER_STATUS_DELIVERED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def _guard_transition(order: Order, target: str) -> None:
    if not can_transition(order.status, target):
        raise InvalidTransition(
            f"Order {order.id} cannot go from {order.status} to {target}",
            details={"id_pedido": order.id, "estado_actual": order.status, "estado_destino": target},
        )


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int
    unit_price_cents: int


@dataclass(frozen=True)
class DeliveryItem:
    line_id: int
    quantity_delivered: int


def parse_order_lines(raw: Any) -> list[LineRequest]:
    """productos: [{id_producto, cantidad, precio_vendido}] -> LineRequest list."""
    if raw is None or (isinstance(raw, list) and len(raw) == 0):
        raise EmptyOrderError("Order has no products")
    if not isinstance(raw, list):
        raise ValidationError("productos must be a list")

    lines = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"productos[{index}] must be an object", details={"indice": index})
        try:
            lines.append(LineRequest(
                product_id=parse_positive_int(entry.get("id_producto"), "id_producto"),
                quantity=parse_positive_int(entry.get("cantidad"), "cantidad", maximum=MAX_QUANTITY),
                unit_price_cents=parse_amount(entry.get("precio_vendido"), "precio_vendido"),
            ))
        except ValidationError as e:
            raise ValidationError(f"productos[{index}]: {e}", details={"indice": index})
    return lines


def parse_delivery_items(raw: Any) -> list[DeliveryItem]:
    """productos_entregados / items: [{detalle_id, cantidad_entregada}] -> DeliveryItem list."""
    if raw is None or (isinstance(raw, list) and len(raw) == 0):
        raise EmptyDeliveryError("Delivery has no items")
    if not isinstance(raw, list):
        raise ValidationError("productos_entregados must be a list")

    items = []
    seen: set[int] = set()
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{index}] must be an object", details={"indice": index})
        try:
            item = DeliveryItem(
                line_id=parse_positive_int(entry.get("detalle_id"), "detalle_id"),
                quantity_delivered=parse_non_negative_int(
                    entry.get("cantidad_entregada"), "cantidad_entregada", maximum=MAX_QUANTITY
                ),
            )
        except ValidationError as e:
            raise ValidationError(f"items[{index}]: {e}", details={"indice": index})
        if item.line_id in seen:
            raise ValidationError(
                f"items[{index}]: detalle_id {item.line_id} is repeated",
                details={"indice": index, "detalle_id": item.line_id},
            )
        seen.add(item.line_id)
        items.append(item)
    return items


def _get_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"id_pedido": order_id})
    return order


def _return_stock(order: Order, line: OrderLine, quantity: int, kind: str, note: str) -> None:
    """Credit stock back for one line; an item deleted since is skipped."""
    exists = db.session.query(InventoryItem.id).filter_by(id=line.product_id).first()
    if exists is None:
        current_app.logger.warning(
            "Order %s line %s: item %s no longer exists, %s units not returned",
            order.id, line.id, line.product_id, quantity,
        )
        return
    increment_stock_inner(
        item_id=line.product_id,
        quantity=quantity,
        kind=kind,
        order_id=order.id,
        order_line_id=line.id,
        note=note,
    )


# =============================================================================
# CREATE (-> pendiente)
# =============================================================================

def create_order(
    *,
    manager_id: int,
    order_kind: str,
    lines: list[LineRequest],
    manager_name: str | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    address: str | None = None,
    schedule: str | None = None,
    delivery_fee_cents: int = 0,
) -> Order:
    """
    Create a pending order and reserve its stock.

    Header, lines (with base cost snapshot and margin) and the stock
    decrement of every line commit together or not at all. Stock may go
    negative unless ALLOW_NEGATIVE_STOCK is off.
    """
    if not lines:
        raise EmptyOrderError("Order has no products")

    line_items_total = sum(req.quantity * req.unit_price_cents for req in lines)
    grand_total = line_items_total + (delivery_fee_cents or 0)
    if grand_total > MAX_AMOUNT_CENTS:
        raise ValidationError(
            f"total_general cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}",
            details={"total_general": grand_total / 100},
        )

    def _op():
        manager = db.session.query(User).filter_by(id=manager_id).first()
        if manager is None:
            raise NotFoundError(f"Manager {manager_id} not found", details={"id_gestor": manager_id})

        order = Order(
            manager_id=manager.id,
            manager_name=manager_name or manager.username,
            customer_name=customer_name,
            customer_phone=customer_phone,
            address=address,
            order_kind=order_kind,
            schedule=schedule,
            delivery_fee_cents=delivery_fee_cents or 0,
            status=ORDER_STATUS_PENDING,
            line_items_total_cents=line_items_total,
            grand_total_cents=grand_total,
            courier_id=None,
            created_at=utcnow(),
        )
        db.session.add(order)
        db.session.flush()

        for index, req in enumerate(lines):
            item = lock_for_update(db.session.query(InventoryItem).filter_by(id=req.product_id)).first()
            if item is None:
                raise NotFoundError(
                    f"productos[{index}]: inventory item {req.product_id} not found",
                    details={"indice": index, "id_producto": req.product_id},
                )

            line = OrderLine(
                order=order,
                product_id=item.id,
                quantity_requested=req.quantity,
                quantity_delivered=0,
                unit_cost_cents=item.base_cost_cents,
                unit_price_cents=req.unit_price_cents,
                margin_cents=req.unit_price_cents - item.base_cost_cents,
            )
            db.session.add(line)
            db.session.flush()

            try:
                decrement_stock_inner(
                    item_id=item.id,
                    quantity=req.quantity,
                    kind=MOVEMENT_RESERVE,
                    order_id=order.id,
                    order_line_id=line.id,
                    note=f"Order {order.id}",
                )
            except ConflictError as e:
                raise type(e)(f"productos[{index}]: {e}", details={"indice": index, **e.details})

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s created by manager %s (%s lines)", order.id, manager_id, len(lines))

    notification_service.notify_order_created(order.id, order.manager_name)
    return order


# =============================================================================
# APPROVE / ASSIGN (pendiente -> aprobado)
# =============================================================================

def approve_order(order_id: int, courier_id: int) -> Order:
    """Approve a pending order and assign it to a courier."""
    def _op():
        order = _get_order_locked(order_id)
        _guard_transition(order, ORDER_STATUS_APPROVED)

        courier = db.session.query(User).filter_by(id=courier_id).first()
        if courier is None:
            raise NotFoundError(f"Courier {courier_id} not found", details={"id_repartidor": courier_id})
        if courier.role != ROLE_COURIER:
            raise ValidationError(
                f"User {courier_id} is not a {ROLE_COURIER}",
                details={"id_repartidor": courier_id, "rol": courier.role},
            )

        order.status = ORDER_STATUS_APPROVED
        order.courier_id = courier.id
        order.courier_name = courier.username
        order.approved_at = utcnow()

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s approved, courier %s", order.id, courier_id)

    notification_service.notify_order_approved(order.id, order.manager_id, order.courier_id)
    return order


# =============================================================================
# REJECT (pendiente -> rechazado)
# =============================================================================

def reject_order(order_id: int) -> Order:
    """Reject a pending order and release the stock it reserved."""
    def _op():
        order = _get_order_locked(order_id)
        _guard_transition(order, ORDER_STATUS_REJECTED)

        for line in order.lines:
            _return_stock(order, line, line.quantity_requested, MOVEMENT_RELEASE, f"Order {order.id} rejected")

        order.status = ORDER_STATUS_REJECTED
        order.rejected_at = utcnow()

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s rejected", order.id)

    notification_service.notify_order_rejected(order.id, order.manager_id)
    return order


# =============================================================================
# DELIVER (aprobado -> entregado)
# =============================================================================

def deliver_order(order_id: int, items: list[DeliveryItem]) -> Order:
    """
    Record delivered quantities and return unsold stock.

    Lines not listed count as delivered 0 (their whole quantity returns).
    Delivered quantities above the requested one are refused unless
    ALLOW_OVER_DELIVERY is on; when allowed, the overage moves no stock.
    """
    if not items:
        raise EmptyDeliveryError("Delivery has no items")

    allow_over = bool(current_app.config.get("ALLOW_OVER_DELIVERY", False))

    def _op():
        order = _get_order_locked(order_id)
        _guard_transition(order, ORDER_STATUS_DELIVERED)

        lines_by_id = {line.id: line for line in order.lines}
        delivered: dict[int, int] = {}
        for index, item in enumerate(items):
            line = lines_by_id.get(item.line_id)
            if line is None:
                raise NotFoundError(
                    f"items[{index}]: order line {item.line_id} does not belong to order {order.id}",
                    details={"indice": index, "detalle_id": item.line_id},
                )
            if item.quantity_delivered > line.quantity_requested and not allow_over:
                raise ValidationError(
                    f"items[{index}]: cantidad_entregada {item.quantity_delivered} exceeds "
                    f"cantidad_pedida {line.quantity_requested}",
                    details={
                        "indice": index,
                        "detalle_id": line.id,
                        "cantidad_pedida": line.quantity_requested,
                        "cantidad_entregada": item.quantity_delivered,
                    },
                )
            delivered[line.id] = item.quantity_delivered

        delivered_total = 0
        for line in order.lines:
            quantity = delivered.get(line.id, 0)
            line.quantity_delivered = quantity
            shortfall = line.quantity_requested - quantity
            if shortfall > 0:
                _return_stock(order, line, shortfall, MOVEMENT_RETURN, f"Order {order.id} delivery shortfall")
            delivered_total += quantity * line.unit_price_cents

        order.status = ORDER_STATUS_DELIVERED
        order.delivered_at = utcnow()
        order.delivered_total_cents = delivered_total

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s delivered", order.id)

    notification_service.notify_order_delivered(order.id, order.manager_id)
    return order


# =============================================================================
# ORDER READS
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"id_pedido": order_id})
    return order


def _newest_first(query):
    return query.order_by(Order.created_at.desc(), Order.id.desc())


def list_orders(status: str | None = None) -> list[Order]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return _newest_first(query).all()


def list_orders_for_manager(manager_id: int) -> list[Order]:
    return _newest_first(db.session.query(Order).filter(Order.manager_id == manager_id)).all()


def list_orders_for_courier(courier_id: int) -> list[Order]:
    return _newest_first(db.session.query(Order).filter(Order.courier_id == courier_id)).all()


def get_order_detail(order_id: int) -> dict:
    """
    Header plus lines joined with their inventory item.

    Left join: a line whose item was deleted keeps its snapshot data and
    reports a null product name/image.
    """
    order = get_order(order_id)
    rows = (
        db.session.query(OrderLine, InventoryItem.name, InventoryItem.image)
        .outerjoin(InventoryItem, InventoryItem.id == OrderLine.product_id)
        .filter(OrderLine.order_id == order.id)
        .order_by(OrderLine.id.asc())
        .all()
    )
    details = []
    for line, name, image in rows:
        entry = line.to_dict()
        entry["producto_nombre"] = name
        entry["producto_imagen"] = image
        details.append(entry)
    return {"pedido": order.to_dict(), "detalles": details}
