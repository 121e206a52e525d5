# Overview: Pytest coverage for push notifications on order transitions.

"""
Push Notification Tests

Notifications go out after commit and are best effort: a failing push
service never changes the outcome of a transition.
"""

import threading

import pytest
import requests

from canonjet.models import ROLE_COMPANY, ORDER_STATUS_APPROVED
from canonjet.services import order_service
from canonjet.services.notification_service import (
    ExpoPushSender,
    PushDeliveryError,
    PushDispatcher,
    PushMessage,
)
from canonjet.services.order_service import DeliveryItem, LineRequest

from conftest import make_user, stock_of


def _order(manager, item):
    return order_service.create_order(
        manager_id=manager.id,
        order_kind="local",
        lines=[LineRequest(product_id=item.id, quantity=3, unit_price_cents=1000)],
    )


class TestOrderEvents:
    def test_created_notifies_company_users(self, push_sender, manager, company, courier, item):
        make_user("empresa_sin_token", ROLE_COMPANY)

        order = _order(manager, item)

        assert push_sender.tokens() == ["ExponentPushToken[empresa]"]
        message = push_sender.messages[0]
        assert message.data == {"pedido_id": order.id, "evento": "pedido_creado"}
        assert "gestor" in message.body

    def test_approved_notifies_manager_and_courier(self, push_sender, manager, courier, item):
        order = _order(manager, item)
        push_sender.messages.clear()

        order_service.approve_order(order.id, courier.id)

        assert sorted(push_sender.tokens()) == [
            "ExponentPushToken[gestor]",
            "ExponentPushToken[repartidor]",
        ]
        assert sorted(push_sender.events()) == ["pedido_aprobado", "pedido_asignado"]

    def test_rejected_notifies_manager(self, push_sender, manager, item):
        order = _order(manager, item)
        push_sender.messages.clear()

        order_service.reject_order(order.id)

        assert push_sender.tokens() == ["ExponentPushToken[gestor]"]
        assert push_sender.events() == ["pedido_rechazado"]

    def test_delivered_notifies_manager_and_company(self, push_sender, manager, company, courier, item):
        order = _order(manager, item)
        order_service.approve_order(order.id, courier.id)
        push_sender.messages.clear()

        order_service.deliver_order(order.id, [DeliveryItem(order.lines[0].id, 3)])

        assert sorted(push_sender.tokens()) == [
            "ExponentPushToken[empresa]",
            "ExponentPushToken[gestor]",
        ]
        assert set(push_sender.events()) == {"pedido_entregado"}

    def test_delivered_company_manager_notified_once(self, push_sender, company, courier, item):
        make_user("empresa2", ROLE_COMPANY, push_token="ExponentPushToken[empresa2]")
        order = _order(company, item)
        order_service.approve_order(order.id, courier.id)
        push_sender.messages.clear()

        order_service.deliver_order(order.id, [DeliveryItem(order.lines[0].id, 3)])

        assert sorted(push_sender.tokens()) == [
            "ExponentPushToken[empresa2]",
            "ExponentPushToken[empresa]",
        ]

    def test_users_without_tokens_are_skipped(self, push_sender, db_session, item):
        manager = make_user("sin_token", "gestor")
        _order(manager, item)
        assert push_sender.messages == []

    def test_failed_push_does_not_affect_transition(self, push_sender, manager, courier, item):
        order = _order(manager, item)
        push_sender.fail_with = PushDeliveryError("push service down")

        approved = order_service.approve_order(order.id, courier.id)

        assert approved.status == ORDER_STATUS_APPROVED
        assert stock_of(item.id) == 7

    def test_unexpected_sender_error_is_swallowed(self, push_sender, manager, company, item):
        push_sender.fail_with = RuntimeError("boom")
        order = _order(manager, item)
        assert order.id is not None

    def test_nothing_sent_when_disabled(self, app, push_sender, manager, company, item):
        dispatcher = app.extensions["push"]
        dispatcher.enabled = False
        try:
            _order(manager, item)
        finally:
            dispatcher.enabled = True
        assert push_sender.messages == []


class TestPushDispatcher:
    def test_worker_thread_delivers_queued_messages(self):
        delivered = []
        seen_threads = set()

        def sender(message):
            seen_threads.add(threading.current_thread().name)
            delivered.append(message.token)

        dispatcher = PushDispatcher(sender)
        try:
            accepted = dispatcher.publish([
                PushMessage(token="a", title="t", body="b"),
                PushMessage(token="b", title="t", body="b"),
            ])
            dispatcher.join()
        finally:
            dispatcher.stop()

        assert accepted == 2
        assert delivered == ["a", "b"]
        assert seen_threads == {"push-dispatcher"}

    def test_worker_survives_sender_failures(self):
        delivered = []

        def sender(message):
            if message.token == "bad":
                raise PushDeliveryError("rejected")
            delivered.append(message.token)

        dispatcher = PushDispatcher(sender)
        try:
            dispatcher.publish([PushMessage("bad", "t", "b"), PushMessage("good", "t", "b")])
            dispatcher.join()
        finally:
            dispatcher.stop()

        assert delivered == ["good"]

    def test_disabled_dispatcher_accepts_nothing(self):
        dispatcher = PushDispatcher(lambda m: None, enabled=False)
        assert dispatcher.publish([PushMessage("a", "t", "b")]) == 0


class _FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class TestExpoPushSender:
    def test_posts_expo_payload(self, monkeypatch):
        calls = []

        def fake_post(url, json=None, headers=None, timeout=None):
            calls.append((url, json, timeout))
            return _FakeResponse(200, {"data": {"status": "ok", "id": "x"}})

        monkeypatch.setattr(requests, "post", fake_post)

        sender = ExpoPushSender("https://push.example/send", timeout=3)
        sender(PushMessage("tok", "Hola", "Mundo", {"pedido_id": 1}))

        url, payload, timeout = calls[0]
        assert url == "https://push.example/send"
        assert timeout == 3
        assert payload["to"] == "tok"
        assert payload["title"] == "Hola"
        assert payload["data"] == {"pedido_id": 1}

    def test_http_error(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **k: _FakeResponse(500, text="down"))
        with pytest.raises(PushDeliveryError):
            ExpoPushSender("https://push.example/send")(PushMessage("tok", "t", "b"))

    def test_ticket_error(self, monkeypatch):
        monkeypatch.setattr(
            requests,
            "post",
            lambda *a, **k: _FakeResponse(200, {"data": {"status": "error", "message": "DeviceNotRegistered"}}),
        )
        with pytest.raises(PushDeliveryError):
            ExpoPushSender("https://push.example/send")(PushMessage("tok", "t", "b"))

    def test_network_error(self, monkeypatch):
        def fail(*a, **k):
            raise requests.exceptions.ConnectionError("unreachable")

        monkeypatch.setattr(requests, "post", fail)
        with pytest.raises(PushDeliveryError):
            ExpoPushSender("https://push.example/send")(PushMessage("tok", "t", "b"))
