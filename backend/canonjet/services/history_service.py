# Overview: Read-only daily rollups over delivered orders.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import (
    InventoryItem,
    Order,
    OrderLine,
    User,
    ORDER_STATUS_DELIVERED,
    ORDER_KIND_LOCAL,
    ORDER_KIND_DELIVERY,
)
from ..money_utils import cents_to_amount
from ..time_utils import day_bounds, parse_day
from ..validation import ValidationError


class HistoryError(ValidationError):
    """Raised for malformed history queries."""


def parse_history_day(value: str | None) -> date:
    day = parse_day(value)
    if day is None:
        raise HistoryError("fecha must be a date in YYYY-MM-DD format", details={"fecha": value})
    return day


def _delivered_on(query, day: date):
    """
    Delivered orders whose delivery falls on `day` (UTC).

    Orders delivered before delivered_at was recorded fall back to their
    creation time.
    """
    start, end = day_bounds(day)
    delivered_time = func.coalesce(Order.delivered_at, Order.created_at)
    return query.filter(
        Order.status == ORDER_STATUS_DELIVERED,
        delivered_time >= start,
        delivered_time < end,
    )


def _by_creation(query):
    return query.order_by(Order.created_at.desc(), Order.id.desc())


def delivered_orders_by_kind(kind: str, day: date) -> list[Order]:
    if kind not in (ORDER_KIND_LOCAL, ORDER_KIND_DELIVERY):
        raise HistoryError(f"Unknown order kind: {kind}")
    query = _delivered_on(db.session.query(Order), day).filter(Order.order_kind == kind)
    return _by_creation(query).all()


def delivered_orders_for_manager(manager_id: int, day: date) -> list[Order]:
    query = _delivered_on(db.session.query(Order), day).filter(Order.manager_id == manager_id)
    return _by_creation(query).all()


def delivered_orders_for_courier(courier_id: int, day: date) -> list[Order]:
    query = _delivered_on(db.session.query(Order), day).filter(Order.courier_id == courier_id)
    delivered_time = func.coalesce(Order.delivered_at, Order.created_at)
    return query.order_by(delivered_time.desc(), Order.id.desc()).all()


def daily_summary(day: date) -> dict:
    """
    Two rollups over the lines of orders delivered on `day`:

    gestores: per manager, revenue (sum of cantidad_entregada * precio_vendido)
              and profit (sum of ganancia * cantidad_entregada), with the
              manager's contact info when the user still exists.
    productos: per (manager, product), total cantidad_entregada.
    """
    revenue = func.coalesce(func.sum(OrderLine.quantity_delivered * OrderLine.unit_price_cents), 0)
    profit = func.coalesce(func.sum(OrderLine.margin_cents * OrderLine.quantity_delivered), 0)

    manager_rows = (
        _delivered_on(
            db.session.query(
                Order.manager_id.label("manager_id"),
                func.max(Order.manager_name).label("manager_name"),
                func.max(User.phone).label("phone"),
                func.max(User.payment_card).label("payment_card"),
                revenue.label("revenue_cents"),
                profit.label("profit_cents"),
            )
            .join(OrderLine, OrderLine.order_id == Order.id)
            .outerjoin(User, User.id == Order.manager_id),
            day,
        )
        .group_by(Order.manager_id)
        .order_by(Order.manager_id.asc())
        .all()
    )

    product_rows = (
        _delivered_on(
            db.session.query(
                Order.manager_id.label("manager_id"),
                OrderLine.product_id.label("product_id"),
                func.max(InventoryItem.name).label("product_name"),
                func.coalesce(func.sum(OrderLine.quantity_delivered), 0).label("total"),
            )
            .join(OrderLine, OrderLine.order_id == Order.id)
            .outerjoin(InventoryItem, InventoryItem.id == OrderLine.product_id),
            day,
        )
        .group_by(Order.manager_id, OrderLine.product_id)
        .order_by(Order.manager_id.asc(), OrderLine.product_id.asc())
        .all()
    )

    return {
        "fecha": day.isoformat(),
        "gestores": [
            {
                "id_gestor": row.manager_id,
                "nombre_gestor": row.manager_name,
                "telefono": row.phone,
                "tarjeta": row.payment_card,
                "vendido": cents_to_amount(int(row.revenue_cents or 0)),
                "ganancia": cents_to_amount(int(row.profit_cents or 0)),
            }
            for row in manager_rows
        ],
        "productos": [
            {
                "id_gestor": row.manager_id,
                "id_producto": row.product_id,
                "producto": row.product_name,
                "total": int(row.total or 0),
            }
            for row in product_rows
        ],
    }
