from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from cablepay.extensions import db

OUTCOME_RECORDED = "recorded"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_RECORDING_FAILED = "recording_failed"


class PaymentEventLog(db.Model):
    """Audit trail of signature-verified payment callbacks."""
    __tablename__ = "payment_event_logs"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), nullable=True, index=True)
    payment_id = db.Column(db.String(64), nullable=False, index=True)
    stb_number = db.Column(db.String(64), nullable=True, index=True)  # no FK: must survive failed upserts
    outcome = db.Column(db.String(32), nullable=False, index=True)  # recorded|duplicate|recording_failed
    stage = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "stb_number": self.stb_number,
            "outcome": self.outcome,
            "stage": self.stage,
            "notes": self.notes,
            "payload": self.payload or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<PaymentEventLog id={self.id} payment_id={self.payment_id!r} outcome={self.outcome}>"
