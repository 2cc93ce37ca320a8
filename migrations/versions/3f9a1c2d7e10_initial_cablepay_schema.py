"""Initial schema: admins, customers, transactions, app_settings, payment_event_logs

Revision ID: 3f9a1c2d7e10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "3f9a1c2d7e10"
down_revision = None
branch_labels = None
depends_on = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade():
    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=80), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_admins_username", "admins", ["username"], unique=True)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("stb_number", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("mobile", sa.String(length=32), nullable=False),
        sa.Column("village", sa.String(length=120), nullable=False),
        sa.Column("street", sa.String(length=255), nullable=True),
        sa.Column("has_amplifier", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("alternate_mobile", sa.String(length=32), nullable=True),
        sa.Column("full_address", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'active'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("stb_number", name="uq_customers_stb_number"),
    )
    op.create_index("ix_customers_village_status", "customers", ["village", "status"], unique=False)
    op.create_index("ix_customers_mobile", "customers", ["mobile"], unique=False)
    # Expression index for case-insensitive name search
    op.execute("CREATE INDEX IF NOT EXISTS ix_customers_lower_name ON customers (lower(name));")

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("stb_number", sa.String(length=64), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False),
        sa.Column("months_recharged", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.String(length=64), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=True),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default=sa.text("'success'")),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["stb_number"], ["customers.stb_number"],
            name="fk_transactions_stb_number_customers",
            onupdate="CASCADE", ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("payment_id", name="uq_transactions_payment_id"),
    )
    op.create_index("ix_transactions_stb_number", "transactions", ["stb_number"], unique=False)
    op.create_index("ix_transactions_order_id", "transactions", ["order_id"], unique=False)
    op.create_index("ix_transactions_payment_status", "transactions", ["payment_status"], unique=False)
    op.create_index("ix_transactions_date", "transactions", ["date"], unique=False)

    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value", _json(), nullable=False),
        sa.Column("settings_version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("key", name="uq_app_settings_key"),
    )

    op.create_table(
        "payment_event_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(length=64), nullable=True),
        sa.Column("payment_id", sa.String(length=64), nullable=False),
        sa.Column("stb_number", sa.String(length=64), nullable=True),
        sa.Column("outcome", sa.String(length=32), nullable=False),
        sa.Column("stage", sa.String(length=32), nullable=True),
        sa.Column("notes", sa.String(length=255), nullable=True),
        sa.Column("payload", _json(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_payment_event_logs_order_id", "payment_event_logs", ["order_id"], unique=False)
    op.create_index("ix_payment_event_logs_payment_id", "payment_event_logs", ["payment_id"], unique=False)
    op.create_index("ix_payment_event_logs_stb_number", "payment_event_logs", ["stb_number"], unique=False)
    op.create_index("ix_payment_event_logs_outcome", "payment_event_logs", ["outcome"], unique=False)


def downgrade():
    op.drop_table("payment_event_logs")
    op.drop_table("app_settings")
    op.drop_table("transactions")
    op.execute("DROP INDEX IF EXISTS ix_customers_lower_name;")
    op.drop_table("customers")
    op.drop_table("admins")
