"""
Pytest fixtures for CanonJet backend tests.

Provides the app on an in-memory database, a test client, a recording push
sender and factories for users and inventory items.
"""

import pytest

from canonjet import create_app
from canonjet.extensions import db
from canonjet.models import User, ROLE_MANAGER, ROLE_COMPANY, ROLE_COURIER
from canonjet.services import inventory_service
from canonjet.services.notification_service import PushDeliveryError
from canonjet.services.user_service import hash_password


class RecordingSender:
    """Push sender double: records messages, or fails when told to."""

    def __init__(self):
        self.messages = []
        self.fail_with = None

    def __call__(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.messages.append(message)

    def tokens(self):
        return [m.token for m in self.messages]

    def events(self):
        return [m.data.get("evento") for m in self.messages]


TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "PUSH_ENABLED": True,
    "PUSH_SYNC": True,
    "BCRYPT_ROUNDS": 4,
    "TX_RETRY_BACKOFF_SECONDS": 0,
}


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        **TEST_CONFIG,
        "IMAGES_DIR": str(tmp_path_factory.mktemp("images")),
    })
    app.extensions["push"].sender = RecordingSender()

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def push_sender(app):
    sender = app.extensions["push"].sender
    sender.messages.clear()
    sender.fail_with = None
    yield sender
    sender.fail_with = None


def make_user(username, role, push_token=None, password="123"):
    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        phone="55501234",
        payment_card="4111",
        push_token=push_token,
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_item(name="Cuchillo", base_cost_cents=600, stock_count=10):
    return inventory_service.create_item({
        "name": name,
        "base_cost_cents": base_cost_cents,
        "stock_count": stock_count,
    })


def stock_of(item_id):
    return inventory_service.get_stock(item_id)["stock_count"]


@pytest.fixture(scope='function')
def manager(db_session):
    return make_user("gestor", ROLE_MANAGER, push_token="ExponentPushToken[gestor]")


@pytest.fixture(scope='function')
def company(db_session):
    return make_user("empresa", ROLE_COMPANY, push_token="ExponentPushToken[empresa]")


@pytest.fixture(scope='function')
def courier(db_session):
    return make_user("repartidor", ROLE_COURIER, push_token="ExponentPushToken[repartidor]")


@pytest.fixture(scope='function')
def item(db_session):
    """Item 'Cuchillo': base cost 6.00, 10 in stock."""
    return make_item()
