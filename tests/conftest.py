import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import pytest
from cablepay import create_app
from cablepay.errors import UpstreamFailure
from cablepay.extensions import db
from cablepay.models import Admin
from cablepay.services import signature, tokens

GATEWAY_SECRET = "test_razorpay_secret"


class FakeGateway:
    """Stands in for RazorpayGateway; records the orders it was asked for."""

    key_id = "rzp_test_key"
    secret = GATEWAY_SECRET

    def __init__(self):
        self.reset()

    def reset(self):
        self.orders = []
        self.fail = False

    def create_order(self, amount_minor, currency, receipt):
        if self.fail:
            raise UpstreamFailure("Failed to create payment order.")
        order = {"id": f"order_test_{len(self.orders) + 1}", "amount": amount_minor, "currency": currency}
        self.orders.append({**order, "receipt": receipt})
        return order


class FakeNotifier:
    def __init__(self):
        self.reset()

    def reset(self):
        self.sent = []
        self.fail = False

    def send(self, mobile, message):
        if self.fail:
            raise RuntimeError("sms provider down")
        self.sent.append((mobile, message))
        return {"success": True}


@pytest.fixture(scope="session")
def app():
    app = create_app(gateway=FakeGateway(), notifier=FakeNotifier())
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        RATELIMIT_ENABLED=False,
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def gateway(app):
    return app.extensions["cablepay"]["gateway"]


@pytest.fixture()
def notifier(app):
    return app.extensions["cablepay"]["notifier"]


@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    app.extensions["cablepay"]["gateway"].reset()
    app.extensions["cablepay"]["notifier"].reset()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()


@pytest.fixture()
def admin(app):
    with app.app_context():
        a = Admin(username="office", is_active=True)
        a.set_password("s3cret-pass")
        db.session.add(a)
        db.session.commit()
        return {"id": a.id, "username": a.username, "password": "s3cret-pass"}


@pytest.fixture()
def admin_token(app, admin):
    with app.app_context():
        return tokens.generate(admin["id"], admin["username"])


@pytest.fixture()
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


def callback_payload(order_id="order_test_1", payment_id="pay_test_1", secret=GATEWAY_SECRET, **overrides):
    """A signed checkout callback plus the recharge form fields."""
    body = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature.expected_signature(order_id, payment_id, secret),
        "stb_number": "STB9999",
        "name": "Ravi Kumar",
        "mobile": "9876543210",
        "village": "Karur",
        "street": "Main St",
        "has_amplifier": False,
        "amount_paid": 1150,
        "months_recharged": 6,
    }
    body.update(overrides)
    return body
