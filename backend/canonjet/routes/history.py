# Overview: Flask API routes for delivered-order history and the daily rollup.

# backend/canonjet/routes/history.py
from flask import Blueprint

from ..models import ORDER_KIND_LOCAL, ORDER_KIND_DELIVERY
from ..services import history_service

history_bp = Blueprint("history", __name__, url_prefix="/api/historial")


def _orders_payload(day, orders) -> dict:
    return {"fecha": day.isoformat(), "pedidos": [o.to_dict() for o in orders]}


@history_bp.get("/local/dia/<fecha>")
def local_orders_of_day(fecha: str):
    day = history_service.parse_history_day(fecha)
    return _orders_payload(day, history_service.delivered_orders_by_kind(ORDER_KIND_LOCAL, day))


@history_bp.get("/domicilio/dia/<fecha>")
def delivery_orders_of_day(fecha: str):
    day = history_service.parse_history_day(fecha)
    return _orders_payload(day, history_service.delivered_orders_by_kind(ORDER_KIND_DELIVERY, day))


@history_bp.get("/gestor/<int:manager_id>/<fecha>")
def manager_orders_of_day(manager_id: int, fecha: str):
    day = history_service.parse_history_day(fecha)
    return _orders_payload(day, history_service.delivered_orders_for_manager(manager_id, day))


@history_bp.get("/repartidor/<int:courier_id>/<fecha>")
def courier_orders_of_day(courier_id: int, fecha: str):
    day = history_service.parse_history_day(fecha)
    return _orders_payload(day, history_service.delivered_orders_for_courier(courier_id, day))


@history_bp.get("/resumen/<fecha>")
def summary_of_day(fecha: str):
    """Per-manager revenue/profit and per-manager product totals for one day."""
    day = history_service.parse_history_day(fecha)
    return history_service.daily_summary(day)
