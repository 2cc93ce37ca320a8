from __future__ import annotations

from sqlalchemy import Index, text
from sqlalchemy.sql import func

from cablepay.extensions import db

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
CUSTOMER_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)


class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    stb_number = db.Column(db.String(64), nullable=False, unique=True)

    name = db.Column(db.String(255), nullable=False)
    mobile = db.Column(db.String(32), nullable=False)
    village = db.Column(db.String(120), nullable=False)
    street = db.Column(db.String(255), nullable=True)

    has_amplifier = db.Column(db.Boolean, nullable=False, default=False, server_default=text("false"))
    alternate_mobile = db.Column(db.String(32), nullable=True)
    full_address = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE, server_default=text("'active'"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_customers_village_status", village, status),
        Index("ix_customers_lower_name", func.lower(name)),
        Index("ix_customers_mobile", mobile),
    )

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stb_number": self.stb_number,
            "name": self.name,
            "mobile": self.mobile,
            "village": self.village,
            "street": self.street,
            "has_amplifier": bool(self.has_amplifier),
            "alternate_mobile": self.alternate_mobile,
            "full_address": self.full_address,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Customer id={self.id} stb={self.stb_number!r} status={self.status}>"
