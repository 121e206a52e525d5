# Overview: Best-effort push notifications for order transitions.

"""
Push notification dispatcher.

Order transitions publish messages here only after their transaction has
committed. Messages go onto an in-process queue drained by a daemon worker
thread, so the request never waits on the push service. Every failure is
logged and dropped: a notification problem never reaches the caller and never
undoes a transition.
"""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass, field
from threading import Lock, Thread
from typing import Callable, Iterable, Optional

import requests
from flask import Flask, current_app

from ..extensions import db
from ..models import User, ROLE_COMPANY

logger = logging.getLogger(__name__)


@dataclass
class PushMessage:
    token: str
    title: str
    body: str
    data: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "to": self.token,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "sound": "default",
        }


class PushDeliveryError(Exception):
    """The push service refused or failed a message."""


class ExpoPushSender:
    """Sends one message to the Expo push HTTP API."""

    def __init__(self, url: str, timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def __call__(self, message: PushMessage) -> None:
        try:
            response = requests.post(
                self.url,
                json=message.to_payload(),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PushDeliveryError(f"Push request failed: {e}") from e

        if response.status_code != 200:
            raise PushDeliveryError(f"Push API error: {response.status_code} - {response.text[:200]}")

        try:
            ticket = (response.json() or {}).get("data") or {}
        except ValueError:
            return
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            raise PushDeliveryError(f"Push rejected: {ticket.get('message')}")


class PushDispatcher:
    """
    Fire-and-forget queue in front of a sender.

    synchronous=True delivers inline (tests, CLI); otherwise a worker thread is
    started on first publish.
    """

    def __init__(
        self,
        sender: Callable[[PushMessage], None],
        *,
        enabled: bool = True,
        synchronous: bool = False,
        max_queue: int = 1000,
    ):
        self.sender = sender
        self.enabled = enabled
        self.synchronous = synchronous
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue)
        self._worker: Optional[Thread] = None
        self._lock = Lock()

    def publish(self, messages: Iterable[PushMessage]) -> int:
        """Hand messages to the dispatcher. Returns how many were accepted."""
        if not self.enabled:
            return 0
        accepted = 0
        for message in messages:
            if self.synchronous:
                self._deliver(message)
                accepted += 1
                continue
            self._ensure_worker()
            try:
                self._queue.put_nowait(message)
                accepted += 1
            except queue.Full:
                logger.warning("Push queue full, dropping message for %s", message.token)
        return accepted

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = Thread(target=self._run, name="push-dispatcher", daemon=True)
            self._worker.start()

    def _run(self) -> None:
        while True:
            message = self._queue.get()
            try:
                if message is None:
                    return
                self._deliver(message)
            finally:
                self._queue.task_done()

    def _deliver(self, message: PushMessage) -> None:
        try:
            self.sender(message)
        except PushDeliveryError as e:
            logger.warning("Push delivery failed: %s", e)
        except Exception:
            logger.exception("Unexpected push delivery failure")

    def join(self) -> None:
        """Block until every queued message has been handled."""
        self._queue.join()

    def stop(self, timeout: float = 5) -> None:
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is not None and worker.is_alive():
            self._queue.put(None)
            worker.join(timeout)


def init_push(app: Flask) -> PushDispatcher:
    dispatcher = PushDispatcher(
        ExpoPushSender(app.config["PUSH_API_URL"], timeout=app.config["PUSH_TIMEOUT_SECONDS"]),
        enabled=app.config["PUSH_ENABLED"],
        synchronous=app.config["PUSH_SYNC"],
    )
    app.extensions["push"] = dispatcher
    return dispatcher


def get_dispatcher() -> PushDispatcher:
    return current_app.extensions["push"]


# =============================================================================
# ORDER EVENTS
# =============================================================================

def _messages_for(users: Iterable[User], title: str, body: str, data: dict) -> list[PushMessage]:
    return [
        PushMessage(token=u.push_token, title=title, body=body, data=dict(data))
        for u in users
        if u is not None and u.push_token
    ]


def _user(user_id: int | None) -> User | None:
    if user_id is None:
        return None
    return db.session.query(User).filter_by(id=user_id).first()


def _company_users() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.role == ROLE_COMPANY, User.push_token.isnot(None))
        .all()
    )


def _publish(build: Callable[[], list[PushMessage]], event: str, order_id: int) -> None:
    """Resolve recipients and publish; any failure is logged, never raised."""
    try:
        messages = build()
        get_dispatcher().publish(messages)
    except Exception:
        current_app.logger.exception("Failed to publish %s notification for order %s", event, order_id)


def notify_order_created(order_id: int, manager_name: str | None) -> None:
    data = {"pedido_id": order_id, "evento": "pedido_creado"}
    _publish(
        lambda: _messages_for(
            _company_users(),
            "Nuevo pedido",
            f"{manager_name or 'Un gestor'} creó el pedido #{order_id}",
            data,
        ),
        "order-created",
        order_id,
    )


def notify_order_approved(order_id: int, manager_id: int, courier_id: int) -> None:
    def build():
        messages = _messages_for(
            [_user(manager_id)],
            "Pedido aprobado",
            f"Tu pedido #{order_id} fue aprobado",
            {"pedido_id": order_id, "evento": "pedido_aprobado"},
        )
        messages += _messages_for(
            [_user(courier_id)],
            "Nuevo pedido asignado",
            f"Se te asignó el pedido #{order_id}",
            {"pedido_id": order_id, "evento": "pedido_asignado"},
        )
        return messages

    _publish(build, "order-approved", order_id)


def notify_order_rejected(order_id: int, manager_id: int) -> None:
    _publish(
        lambda: _messages_for(
            [_user(manager_id)],
            "Pedido rechazado",
            f"Tu pedido #{order_id} fue rechazado",
            {"pedido_id": order_id, "evento": "pedido_rechazado"},
        ),
        "order-rejected",
        order_id,
    )


def notify_order_delivered(order_id: int, manager_id: int) -> None:
    def build():
        data = {"pedido_id": order_id, "evento": "pedido_entregado"}
        recipients = [_user(manager_id)]
        # A manager who is also an empresa user gets a single message
        recipients += [u for u in _company_users() if u.id != manager_id]
        return _messages_for(recipients, "Pedido entregado", f"El pedido #{order_id} fue entregado", data)

    _publish(build, "order-delivered", order_id)
