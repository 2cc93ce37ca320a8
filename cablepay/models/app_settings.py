from sqlalchemy import text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from cablepay.extensions import db

PAYMENT_FORM_KEY = "payment_form"


class AppSettings(db.Model):
    __tablename__ = "app_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True)
    value = db.Column(db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    settings_version = db.Column(db.Integer, nullable=False, default=1, server_default=text("1"))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return dict(
            key=self.key,
            settings=self.value or {},
            settings_version=self.settings_version,
            updated_at=self.updated_at.isoformat() if self.updated_at else None,
        )
