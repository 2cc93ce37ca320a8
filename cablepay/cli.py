import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import func

from cablepay.errors import ValidationError
from cablepay.extensions import db
from cablepay.models import Admin
from cablepay.services.customers import CustomerRepository
from cablepay.services.importer import read_rows
from cablepay.services.settings_store import SettingsRepository, default_settings


def _find_admin(username: str):
    return db.session.query(Admin).filter(func.lower(Admin.username) == username.strip().lower()).one_or_none()


@click.group()
def admin():
    """Admin account management."""


@admin.command("create")
@click.option("--username", required=True)
@click.option("--password", required=True)
@with_appcontext
def admin_create(username, password):
    if _find_admin(username) is not None:
        raise click.ClickException("Admin already exists")

    a = Admin(username=username.strip(), is_active=True)
    a.set_password(password)
    db.session.add(a)
    db.session.commit()
    click.echo(f"Admin created id={a.id} username={a.username}")


@admin.command("set-password")
@click.option("--username", required=True)
@click.option("--password", required=True)
@with_appcontext
def admin_set_password(username, password):
    a = _find_admin(username)
    if a is None:
        raise click.ClickException("Admin not found")
    a.set_password(password)
    db.session.commit()
    click.echo(f"Password updated for {a.username}")


@click.group()
def customers():
    """Customer directory ops."""


@customers.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--max-rows", type=int, default=None, help="Override BULK_MAX_ROWS")
@with_appcontext
def customers_import(path, max_rows):
    try:
        rows = read_rows(path)
    except ValueError as exc:
        raise click.ClickException(str(exc))

    try:
        result = CustomerRepository(db.session).bulk_upsert(
            rows, max_rows=max_rows or current_app.config.get("BULK_MAX_ROWS", 1000)
        )
    except ValidationError as exc:
        raise click.ClickException(exc.message)

    click.echo(result["message"])
    for err in result["errors"]:
        click.echo(f"  row {err['row']} stb={err['stb']}: {err['reason']}", err=True)


@click.group()
def settings():
    """Pricing document ops."""


@settings.command("seed")
@click.option("--force", is_flag=True, help="Overwrite an existing document with the defaults")
@with_appcontext
def settings_seed(force):
    repo = SettingsRepository(db.session)
    _, version = repo.load()
    if version and not force:
        click.echo(f"Settings already present (version {version}); use --force to reset")
        return
    _, version = repo.save(default_settings())
    click.echo(f"Default settings written (version {version})")


def register_cli(app):
    app.cli.add_command(admin)
    app.cli.add_command(customers)
    app.cli.add_command(settings)
