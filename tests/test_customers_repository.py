import pytest

from cablepay.errors import Conflict, CustomerInactive, NotFound, ValidationError
from cablepay.extensions import db
from cablepay.models import Customer, STATUS_ACTIVE, STATUS_INACTIVE
from cablepay.services.customers import CustomerRepository, parse_bulk_row, parse_paid_customer
from cablepay.services.transactions import TransactionRepository


def _record(**kw):
    base = {
        "stb_number": "STB001",
        "name": "Ravi Kumar",
        "mobile": "9876543210",
        "village": "Hosur",
        "street": "Main St",
        "has_amplifier": False,
    }
    base.update(kw)
    return base


def test_upsert_is_idempotent_and_reactivates(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        first = repo.upsert(_record())
        repo.set_status(first.id, STATUS_INACTIVE)

        again = repo.upsert(_record(name="Ravi K"))
        assert again.id == first.id
        assert again.name == "Ravi K"
        assert again.status == STATUS_ACTIVE
        assert db.session.query(Customer).count() == 1


def test_bulk_upsert_reports_bad_rows(app):
    rows = [
        _record(stb_number="STB001"),
        _record(stb_number="STB002", name=""),
        _record(stb_number="STB003", has_amplifier="YES", status="inactive"),
    ]
    with app.app_context():
        result = CustomerRepository(db.session).bulk_upsert(rows)
        assert result["inserted"] == 2
        assert result["skipped"] == 1
        assert result["errors"] == [{
            "row": 2,
            "stb": "STB002",
            "reason": "Missing required fields (stb_number, name, mobile, village)",
        }]
        assert "2 upserted, 1 skipped" in result["message"]

        c3 = db.session.query(Customer).filter_by(stb_number="STB003").one()
        assert c3.has_amplifier is True
        assert c3.status == STATUS_INACTIVE


def test_bulk_upsert_limits(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        with pytest.raises(ValidationError):
            repo.bulk_upsert([])
        with pytest.raises(ValidationError):
            repo.bulk_upsert([_record(stb_number=f"S{i}") for i in range(3)], max_rows=2)


@pytest.mark.parametrize("raw,expected", [
    (True, True), ("true", True), (1, True), ("1", True), ("yes", True), ("YES", True),
    ("NO", False), ("", False), (None, False), (0, False),
])
def test_bulk_amplifier_flag(raw, expected):
    record, reason = parse_bulk_row(_record(has_amplifier=raw))
    assert reason is None
    assert record["has_amplifier"] is expected


def test_bulk_status_defaults_to_active():
    record, _ = parse_bulk_row(_record(status="suspended"))
    assert record["status"] == STATUS_ACTIVE


def test_paid_customer_keeps_legacy_stb_and_mobile():
    record, errors = parse_paid_customer(_record(stb_number=" STB.1001 ", mobile="98765-4321", has_amplifier=True))
    assert errors == {}
    assert record["stb_number"] == "STB.1001"
    assert record["mobile"] == "98765-4321"
    assert record["alternate_mobile"] is None

    _, errors = parse_paid_customer(_record(village="", mobile=None))
    assert set(errors) == {"mobile", "village"}


def test_check_active_distinguishes_missing_and_inactive(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        c = repo.upsert(_record())

        ok = repo.check_active("  STB001 ")
        assert ok == {"exists": True, "active": True, "stb_number": "STB001",
                      "name": "Ravi Kumar", "village": "Hosur"}

        with pytest.raises(NotFound) as missing:
            repo.check_active("NOPE")
        assert missing.value.extra == {"exists": False}

        repo.set_status(c.id, STATUS_INACTIVE)
        with pytest.raises(CustomerInactive) as inactive:
            repo.check_active("STB001")
        assert inactive.value.extra == {"exists": True, "active": False}


def test_insert_rejects_duplicates_and_missing_fields(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        repo.insert(_record())
        with pytest.raises(Conflict):
            repo.insert(_record(name="Someone Else"))
        with pytest.raises(ValidationError) as exc:
            repo.insert(_record(stb_number="STB002", village=""))
        assert "village" in exc.value.errors


def test_insert_requires_amplifier_details_when_configured(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        with pytest.raises(ValidationError) as exc:
            repo.insert(_record(has_amplifier=True), require_amplifier_details=True)
        assert set(exc.value.errors) == {"alternate_mobile", "full_address"}

        c = repo.insert(_record(has_amplifier=True, alternate_mobile="+91 90000 00001",
                                full_address="Door 5, Lake Road"), require_amplifier_details=True)
        assert c.alternate_mobile == "9000000001"


def test_update_rename_to_existing_stb_conflicts(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        repo.insert(_record(stb_number="STB001"))
        other = repo.insert(_record(stb_number="STB002"))
        with pytest.raises(Conflict):
            repo.update(other.id, {"stb_number": "STB001"})
        updated = repo.update(other.id, {"street": "Temple St"})
        assert updated.street == "Temple St"
        assert updated.stb_number == "STB002"


def test_stb_rename_carries_payments(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        c = repo.insert(_record(stb_number="STB001"))
        TransactionRepository(db.session).insert("STB001", 230, 1, "pay_1")

        repo.update(c.id, {"stb_number": "STB001-A"})
        txs = TransactionRepository(db.session).list(stb_number="STB001-A")
        assert [t.payment_id for t in txs] == ["pay_1"]


def test_set_status_rejects_unknown_value(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        c = repo.insert(_record())
        with pytest.raises(ValidationError):
            repo.set_status(c.id, "paused")


def test_delete_blocked_when_payments_exist(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        paid = repo.insert(_record(stb_number="STB001"))
        unpaid = repo.insert(_record(stb_number="STB002"))
        TransactionRepository(db.session).insert("STB001", 230, 1, "pay_1")

        with pytest.raises(Conflict):
            repo.delete(paid.id)
        repo.delete(unpaid.id)
        with pytest.raises(NotFound):
            repo.get(unpaid.id)


def test_list_search_and_filters(app):
    with app.app_context():
        repo = CustomerRepository(db.session)
        repo.insert(_record(stb_number="STB001", name="Ravi Kumar", village="Hosur"))
        repo.insert(_record(stb_number="STB002", name="Priya Devi", village="Karur", mobile="9123456789"))

        assert [c.stb_number for c in repo.list()] == ["STB002", "STB001"]
        assert [c.stb_number for c in repo.list(search="PRIYA")] == ["STB002"]
        assert [c.stb_number for c in repo.list(search="91234")] == ["STB002"]
        assert [c.stb_number for c in repo.list(village="Hosur")] == ["STB001"]
        assert repo.list(status=STATUS_INACTIVE) == []
