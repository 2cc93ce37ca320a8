from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.orm import validates

from cablepay.extensions import db

PAYMENT_STATUS_SUCCESS = "success"


def _utcnow():
    return datetime.now(timezone.utc)


class Transaction(db.Model):
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    stb_number = db.Column(
        db.String(64),
        db.ForeignKey("customers.stb_number", onupdate="CASCADE", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount_paid = db.Column(db.Numeric(10, 2), nullable=False)
    months_recharged = db.Column(db.Integer, nullable=False)

    payment_id = db.Column(db.String(64), nullable=False, unique=True)
    order_id = db.Column(db.String(64), nullable=True, index=True)
    payment_status = db.Column(db.String(20), nullable=False, default=PAYMENT_STATUS_SUCCESS,
                               server_default=text("'success'"), index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    customer = db.relationship("Customer", lazy="joined")

    # Customer fields shown next to a payment in the admin views
    CUSTOMER_SNAPSHOT = ("name", "mobile", "village", "street", "has_amplifier",
                         "alternate_mobile", "full_address", "status")

    @validates("date")
    def _store_utc(self, key, value):
        # stored as UTC wall time; SQLite keeps no offset
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def to_dict(self, customer_fields=CUSTOMER_SNAPSHOT) -> dict:
        data = {
            "id": self.id,
            "stb_number": self.stb_number,
            "amount_paid": float(self.amount_paid) if self.amount_paid is not None else None,
            "months_recharged": self.months_recharged,
            "payment_id": self.payment_id,
            "order_id": self.order_id,
            "payment_status": self.payment_status,
            "date": self.date.isoformat() if self.date else None,
        }
        if customer_fields:
            c = self.customer
            data["customer"] = {f: getattr(c, f) for f in customer_fields} if c else None
        return data

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} stb={self.stb_number!r} payment_id={self.payment_id!r}>"
