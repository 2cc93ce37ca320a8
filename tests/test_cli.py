import pytest

from cablepay.extensions import db
from cablepay.models import Admin, Customer
from cablepay.services.importer import read_rows
from cablepay.services.settings_store import SettingsRepository


@pytest.fixture()
def runner(app):
    return app.test_cli_runner()


def test_admin_create_and_set_password(app, runner):
    result = runner.invoke(args=["admin", "create", "--username", "boss", "--password", "first-pass"])
    assert result.exit_code == 0, result.output
    assert "Admin created" in result.output

    again = runner.invoke(args=["admin", "create", "--username", "BOSS", "--password", "x"])
    assert again.exit_code != 0

    result = runner.invoke(args=["admin", "set-password", "--username", "boss", "--password", "second-pass"])
    assert result.exit_code == 0
    with app.app_context():
        a = db.session.query(Admin).filter_by(username="boss").one()
        assert a.check_password("second-pass")


def test_settings_seed_is_idempotent(app, runner):
    assert "version 1" in runner.invoke(args=["settings", "seed"]).output
    assert "already present" in runner.invoke(args=["settings", "seed"]).output
    with app.app_context():
        _, version = SettingsRepository(db.session).load()
        assert version == 1


def test_read_rows_normalizes_headers(tmp_path):
    path = tmp_path / "boxes.csv"
    path.write_text(
        "STB Number,Name,Mobile,Village,Has Amplifier,Notes\n"
        "0012,Ravi Kumar,09876543210,Hosur,YES,ignored\n"
        ",Priya Devi,9123456789,Karur,NO,\n"
    )
    rows = read_rows(path)
    assert rows[0] == {
        "stb_number": "0012", "name": "Ravi Kumar", "mobile": "09876543210",
        "village": "Hosur", "has_amplifier": "YES",
    }
    assert rows[1]["stb_number"] == ""


def test_read_rows_requires_columns(tmp_path):
    path = tmp_path / "boxes.csv"
    path.write_text("stb_number,name\nSTB1,Ravi\n")
    with pytest.raises(ValueError):
        read_rows(path)


def test_customers_import(app, runner, tmp_path):
    path = tmp_path / "boxes.csv"
    path.write_text(
        "stb_number,name,mobile,village,has_amplifier\n"
        "STB1,Ravi Kumar,9876543210,Hosur,yes\n"
        "STB2,,9123456789,Karur,no\n"
        "STB3,Anbu,9000000001,Erode,\n"
    )
    result = runner.invoke(args=["customers", "import", str(path)])
    assert result.exit_code == 0, result.output
    assert "2 upserted, 1 skipped" in result.output

    with app.app_context():
        assert db.session.query(Customer).count() == 2
        assert db.session.query(Customer).filter_by(stb_number="STB1").one().has_amplifier is True
