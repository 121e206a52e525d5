# Overview: Pytest coverage for concurrent order creation and racing transitions.

"""
Concurrency Tests

Many request threads reserving the same item must never lose a stock
update, and racing transitions on one order must leave exactly one winner.
Runs against a file-backed SQLite database so every thread gets its own
connection.
"""

import threading

import pytest

from canonjet import create_app
from canonjet.extensions import db
from canonjet.models import (
    Order,
    StockMovement,
    ROLE_COURIER,
    ROLE_MANAGER,
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_REJECTED,
    MOVEMENT_RELEASE,
    MOVEMENT_RESERVE,
    MOVEMENT_RETURN,
)
from canonjet.services import inventory_service, order_service
from canonjet.services.inventory_service import InsufficientStockError
from canonjet.services.order_service import DeliveryItem, InvalidTransition, LineRequest

from conftest import TEST_CONFIG, make_item, make_user


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        **TEST_CONFIG,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'contention.sqlite3'}",
        "PUSH_ENABLED": False,
        "DB_LOCK_TIMEOUT_SECONDS": 10,
        "TX_RETRY_ATTEMPTS": 6,
        "TX_RETRY_BACKOFF_SECONDS": 0.02,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.engine.dispose()


def _run_concurrently(app, calls):
    """Start every call at once, each on its own thread and app context."""
    results = []
    lock = threading.Lock()
    start = threading.Barrier(len(calls))

    def worker(name, call):
        with app.app_context():
            start.wait()
            try:
                call()
                outcome = (name, "ok")
            except InsufficientStockError:
                outcome = (name, "insufficient")
            except InvalidTransition:
                outcome = (name, "invalid")
            except Exception as e:
                outcome = (name, repr(e))
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=call) for call in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def _run_orders(app, manager_id, item_id, count):
    def create():
        order_service.create_order(
            manager_id=manager_id,
            order_kind="local",
            lines=[LineRequest(product_id=item_id, quantity=1, unit_price_cents=1000)],
        )

    return [outcome for _, outcome in _run_concurrently(app, [("create", create)] * count)]


def _pending_order(quantity=3):
    manager = make_user("gestor", ROLE_MANAGER)
    courier = make_user("repartidor", ROLE_COURIER)
    item = make_item(stock_count=10)
    order = order_service.create_order(
        manager_id=manager.id,
        order_kind="local",
        lines=[LineRequest(product_id=item.id, quantity=quantity, unit_price_cents=1000)],
    )
    return order.id, order.lines[0].id, item.id, courier.id


class TestConcurrentReservations:
    def test_no_lost_updates(self, file_app):
        manager = make_user("gestor", ROLE_MANAGER)
        item = make_item(stock_count=10)
        manager_id, item_id = manager.id, item.id

        results = _run_orders(file_app, manager_id, item_id, 10)

        assert [r for r in results if r != "ok"] == []
        assert inventory_service.get_stock(item_id)["stock_count"] == 0
        assert db.session.query(Order).count() == 10
        assert db.session.query(StockMovement).filter_by(kind=MOVEMENT_RESERVE).count() == 10

    def test_floor_holds_when_negative_stock_disabled(self, file_app):
        file_app.config["ALLOW_NEGATIVE_STOCK"] = False
        manager = make_user("gestor", ROLE_MANAGER)
        item = make_item(stock_count=5)
        manager_id, item_id = manager.id, item.id

        results = _run_orders(file_app, manager_id, item_id, 8)

        assert results.count("ok") == 5
        assert results.count("insufficient") == 3
        assert inventory_service.get_stock(item_id)["stock_count"] == 0
        assert db.session.query(Order).count() == 5


class TestRacingTransitions:
    def test_single_delivery_wins(self, file_app):
        order_id, line_id, item_id, courier_id = _pending_order(quantity=3)
        order_service.approve_order(order_id, courier_id)

        def deliver():
            order_service.deliver_order(order_id, [DeliveryItem(line_id, 2)])

        results = [outcome for _, outcome in _run_concurrently(file_app, [("deliver", deliver)] * 6)]

        assert results.count("ok") == 1
        assert results.count("invalid") == 5
        # 10 - 3 reserved + 1 returned shortfall
        assert inventory_service.get_stock(item_id)["stock_count"] == 8
        assert db.session.query(StockMovement).filter_by(kind=MOVEMENT_RETURN).count() == 1

        db.session.expire_all()
        order = order_service.get_order(order_id)
        assert order.status == ORDER_STATUS_DELIVERED
        assert order.lines[0].quantity_delivered == 2

    def test_reject_and_approve_have_one_winner(self, file_app):
        order_id, _, item_id, courier_id = _pending_order(quantity=3)

        results = dict(_run_concurrently(file_app, [
            ("approve", lambda: order_service.approve_order(order_id, courier_id)),
            ("reject", lambda: order_service.reject_order(order_id)),
        ]))

        assert sorted(results.values()) == ["invalid", "ok"]
        db.session.expire_all()
        order = order_service.get_order(order_id)
        releases = db.session.query(StockMovement).filter_by(kind=MOVEMENT_RELEASE).count()
        stock = inventory_service.get_stock(item_id)["stock_count"]
        if results["approve"] == "ok":
            assert order.status == ORDER_STATUS_APPROVED
            assert order.courier_id == courier_id
            assert (stock, releases) == (7, 0)
        else:
            assert order.status == ORDER_STATUS_REJECTED
            assert order.courier_id is None
            assert (stock, releases) == (10, 1)
