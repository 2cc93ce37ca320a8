from datetime import datetime, timedelta

import pytest

from cablepay.errors import DuplicatePayment, ForeignKeyViolation, ValidationError
from cablepay.extensions import db
from cablepay.models import Transaction
from cablepay.services.customers import CustomerRepository
from cablepay.services.transactions import TransactionRepository


def _customer(stb="STB001", **kw):
    rec = {"stb_number": stb, "name": "Ravi Kumar", "mobile": "9876543210", "village": "Karur"}
    rec.update(kw)
    return CustomerRepository(db.session).upsert(rec)


def _local(y, m, d, hh=12):
    return datetime(y, m, d, hh, 0).astimezone()


def test_stats_breakdown(app):
    with app.app_context():
        _customer("STB001")
        _customer("STB002")
        repo = TransactionRepository(db.session)
        for i, months in enumerate([1, 1, 6, 12, 3]):
            repo.insert("STB001" if i < 3 else "STB002", 100, months, f"pay_{i}")

        stats = repo.stats()
        assert stats["subscriptionBreakdown"] == {"oneMonth": 2, "sixMonth": 1, "oneYear": 1}
        assert stats["totalTransactions"] == 5
        assert stats["totalAmount"] == 500
        assert stats["thisMonthAmount"] == 500
        assert stats["uniquePayingCustomers"] == 2
        assert stats["totalCustomers"] == 2


def test_stats_this_month_excludes_older_rows(app):
    with app.app_context():
        _customer()
        repo = TransactionRepository(db.session)
        repo.insert("STB001", 230, 1, "pay_now")
        old = repo.insert("STB001", 1150, 6, "pay_old")
        old.date = _local(2020, 1, 15)
        db.session.commit()

        stats = repo.stats()
        assert stats["totalAmount"] == 1380
        assert stats["thisMonthAmount"] == 230


def test_insert_requires_existing_customer(app):
    with app.app_context():
        with pytest.raises(ForeignKeyViolation):
            TransactionRepository(db.session).insert("GHOST", 230, 1, "pay_1")
        assert db.session.query(Transaction).count() == 0


def test_duplicate_payment_id(app):
    with app.app_context():
        _customer()
        repo = TransactionRepository(db.session)
        repo.insert("STB001", 230, 1, "pay_1")
        with pytest.raises(DuplicatePayment):
            repo.insert("STB001", 230, 1, "pay_1")
        assert db.session.query(Transaction).count() == 1


def test_today_only_lists_todays_rows(app):
    with app.app_context():
        _customer()
        repo = TransactionRepository(db.session)
        repo.insert("STB001", 230, 1, "pay_today")
        yesterday = repo.insert("STB001", 230, 1, "pay_yesterday")
        yesterday.date = datetime.now().astimezone() - timedelta(days=2)
        db.session.commit()

        today = repo.list_today()
        assert [t.payment_id for t in today] == ["pay_today"]
        assert today[0].to_dict(customer_fields=("name",))["customer"] == {"name": "Ravi Kumar"}


def test_list_date_range_is_inclusive_of_to_date(app):
    with app.app_context():
        _customer()
        repo = TransactionRepository(db.session)
        for pid, day in (("pay_9", 9), ("pay_10", 10), ("pay_11", 11)):
            repo.insert("STB001", 230, 1, pid).date = _local(2024, 3, day)
        db.session.commit()

        rows = repo.list(from_date="2024-03-10", to_date="2024-03-10")
        assert [t.payment_id for t in rows] == ["pay_10"]

        rows = repo.list(from_date="2024-03-09", to_date="2024-03-10")
        assert [t.payment_id for t in rows] == ["pay_10", "pay_9"]

        with pytest.raises(ValidationError):
            repo.list(from_date="10/03/2024")


def test_list_search_spans_customer_fields(app):
    with app.app_context():
        _customer("STB001", name="Ravi Kumar")
        _customer("STB002", name="Priya Devi", mobile="9123456789")
        repo = TransactionRepository(db.session)
        repo.insert("STB001", 230, 1, "pay_a")
        repo.insert("STB002", 230, 1, "pay_b")

        assert [t.payment_id for t in repo.list(search="priya")] == ["pay_b"]
        assert [t.payment_id for t in repo.list(search="91234")] == ["pay_b"]
        assert [t.payment_id for t in repo.list(search="PAY_A")] == ["pay_a"]


def test_transaction_routes(app, client, auth_headers):
    with app.app_context():
        _customer()
        tx = TransactionRepository(db.session).insert("STB001", 230, 1, "pay_1", order_id="order_1")
        tx_id = tx.id

    listed = client.get("/api/transactions", headers=auth_headers).get_json()
    assert listed[0]["payment_id"] == "pay_1"
    assert listed[0]["customer"]["name"] == "Ravi Kumar"

    one = client.get(f"/api/transactions/{tx_id}", headers=auth_headers)
    assert one.get_json()["order_id"] == "order_1"
    assert client.get("/api/transactions/999999", headers=auth_headers).status_code == 404

    assert client.get("/api/transactions/today", headers=auth_headers).get_json()[0]["payment_id"] == "pay_1"
    assert client.get("/api/transactions/stats", headers=auth_headers).get_json()["totalTransactions"] == 1
    assert client.get("/api/transactions?from_date=bad", headers=auth_headers).status_code == 400
