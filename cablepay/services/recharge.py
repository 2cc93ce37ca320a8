r"""
Recharge orchestration: gateway order creation and the verified-callback
pipeline.

    created -> order_pending -> verified -> recorded -> notified
                             \-> signature_invalid       (nothing written)
                                          \-> recording_failed (partial writes possible)

Writes after verification happen in a fixed order, each committed on its
own: customer upsert, then transaction insert. The transaction row's foreign
key depends on the customer existing. If the insert fails after the upsert
succeeded, the customer stays active without a ledger row; that case is
written to ``payment_event_logs`` for manual reconciliation.
"""
from __future__ import annotations

import enum
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from cablepay.errors import (
    DuplicatePayment,
    ForeignKeyViolation,
    RecordingFailed,
    ServiceError,
    SignatureInvalid,
    ValidationError,
)
from cablepay.extensions import db
from cablepay.models import PaymentEventLog
from cablepay.models.payment_event import OUTCOME_DUPLICATE, OUTCOME_RECORDED, OUTCOME_RECORDING_FAILED
from cablepay.observability import log_event
from cablepay.services import pricing, signature
from cablepay.services.customers import CustomerRepository, parse_paid_customer
from cablepay.services.notifications import recharge_message
from cablepay.services.settings_store import SettingsRepository
from cablepay.services.transactions import TransactionRepository
from cablepay.utils.helpers import to_decimal, to_positive_int
from cablepay.utils.validators import coerce_bool

EXTENSION_KEY = "cablepay"

# Fields echoed into the audit log (never the signature)
_AUDIT_FIELDS = ("stb_number", "name", "mobile", "village", "has_amplifier", "amount_paid", "months_recharged")


class RechargeState(str, enum.Enum):
    CREATED = "created"
    ORDER_PENDING = "order_pending"
    VERIFIED = "verified"
    RECORDED = "recorded"
    NOTIFIED = "notified"
    SIGNATURE_INVALID = "signature_invalid"
    RECORDING_FAILED = "recording_failed"


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RechargeService:
    def __init__(self, *, session, gateway, notifier, enforce_server_pricing: bool = False,
                 currency: str = "INR"):
        self.session = session
        self.gateway = gateway
        self.notifier = notifier
        self.enforce_server_pricing = enforce_server_pricing
        self.currency = currency
        self.customers = CustomerRepository(session)
        self.transactions = TransactionRepository(session)
        self.settings = SettingsRepository(session)

    # ------------------------------------------------------------------
    # created -> order_pending
    # ------------------------------------------------------------------
    def create_order(self, amount: Any = None, receipt: Optional[str] = None, currency: Optional[str] = None,
                     *, village: Optional[str] = None, months: Any = None, has_amplifier: Any = False) -> Dict[str, Any]:
        if self.enforce_server_pricing:
            doc, _ = self.settings.read_or_default()
            q = pricing.quote(doc, village=village, months=months, has_amplifier=coerce_bool(has_amplifier))
            amount = q["total"]

        value = to_decimal(amount)
        if value is None or value <= 0:
            raise ValidationError("Amount is required.", errors={"amount": "Amount must be greater than 0."})

        currency = (currency or self.currency or "INR").upper()
        receipt = (receipt or "").strip() or f"receipt_{int(time.time() * 1000)}"

        order = self.gateway.create_order(to_minor_units(value), currency, receipt[:40])
        log_event("payment.order_created", order_id=order["id"], amount=str(value), currency=currency)
        return {
            "orderId": order["id"],
            "amount": order["amount"],
            "currency": order["currency"],
            "keyId": self.gateway.key_id,
            "state": RechargeState.ORDER_PENDING.value,
        }

    # ------------------------------------------------------------------
    # order_pending -> verified -> recorded -> notified
    # ------------------------------------------------------------------
    def verify_and_record(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        order_id = payload.get("razorpay_order_id")
        payment_id = payload.get("razorpay_payment_id")
        sig = payload.get("razorpay_signature")

        # Checked strictly before anything touches the store
        if not signature.verify(order_id, payment_id, sig, self.gateway.secret):
            log_event("payment.signature_invalid", level="warning", order_id=order_id, payment_id=payment_id)
            raise SignatureInvalid()
        log_event("payment.verified", order_id=order_id, payment_id=payment_id,
                  stb_number=payload.get("stb_number"))

        audit_payload = {k: payload.get(k) for k in _AUDIT_FIELDS if k in payload}
        doc, _ = self.settings.read_or_default()

        record, errors = parse_paid_customer(payload)
        amount = to_decimal(payload.get("amount_paid"))
        months = to_positive_int(payload.get("months_recharged"))
        if amount is None or amount <= 0:
            errors["amount_paid"] = "amount_paid must be greater than 0."
        if months is None:
            errors["months_recharged"] = "months_recharged must be a positive whole number."
        if errors:
            self._audit(order_id, payment_id, payload.get("stb_number"), OUTCOME_RECORDING_FAILED,
                        stage="validation", payload=audit_payload)
            raise ValidationError("Payment received but the recharge details are incomplete. Contact support.",
                                  errors=errors)
        stb = record["stb_number"]

        existing = self.transactions.get_by_payment_id(payment_id)
        if existing is not None:
            return self._duplicate(existing, order_id, stb, audit_payload)

        notes = self._price_check(doc, record, amount, months)

        # 1) customer upsert
        try:
            customer = self.customers.upsert(record)
        except (SQLAlchemyError, ServiceError) as exc:
            self.session.rollback()
            self._recording_failed("customer_upsert", exc, order_id, payment_id, stb, audit_payload)

        # 2) transaction insert
        try:
            tx = self.transactions.insert(stb, amount, months, payment_id, order_id=order_id)
        except DuplicatePayment:
            # a concurrent retry of the same callback won the insert
            return self._duplicate(self.transactions.get_by_payment_id(payment_id), order_id, stb, audit_payload)
        except (SQLAlchemyError, ForeignKeyViolation) as exc:
            self.session.rollback()
            self._recording_failed("transaction_insert", exc, order_id, payment_id, stb, audit_payload)

        self._audit(order_id, payment_id, stb, OUTCOME_RECORDED, payload=audit_payload, notes=notes)
        log_event("payment.recorded", payment_id=payment_id, stb_number=stb, amount=str(amount), months=months)

        # 3) best-effort notification; payment is already durable
        business = (doc.get("formMeta") or {}).get("businessName") or "Happy Star Satellite Vision"
        notified = self._notify(customer.mobile, recharge_message(
            name=customer.name, stb_number=stb, months=months, amount=amount,
            payment_id=payment_id, business_name=business,
        ))

        return {
            "success": True,
            "message": "Payment verified and recorded successfully.",
            "transaction": tx.to_dict(customer_fields=None),
            "duplicate": False,
            "notified": notified,
            "state": (RechargeState.NOTIFIED if notified else RechargeState.RECORDED).value,
        }

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _duplicate(self, tx, order_id, stb, audit_payload) -> Dict[str, Any]:
        self._audit(order_id, tx.payment_id, stb, OUTCOME_DUPLICATE, payload=audit_payload)
        log_event("payment.duplicate", payment_id=tx.payment_id, stb_number=stb)
        return {
            "success": True,
            "message": "Payment was already recorded.",
            "transaction": tx.to_dict(customer_fields=None),
            "duplicate": True,
            "notified": False,
            "state": RechargeState.RECORDED.value,
        }

    def _recording_failed(self, stage, exc, order_id, payment_id, stb, audit_payload):
        current_app.logger.exception("payment.recording_failed stage=%s payment_id=%s stb=%s", stage, payment_id, stb)
        self._audit(order_id, payment_id, stb, OUTCOME_RECORDING_FAILED, stage=stage,
                    payload=audit_payload, notes=type(exc).__name__)
        raise RecordingFailed(stage=stage, extra={"payment_id": payment_id, "stage": stage}) from exc

    def _price_check(self, doc, record, amount: Decimal, months: int) -> Optional[str]:
        try:
            q = pricing.quote(doc, village=record["village"], months=months,
                              has_amplifier=record.get("has_amplifier", False))
        except ServiceError:
            log_event("payment.price_unverifiable", level="warning", village=record["village"], months=months)
            return "price_unverifiable"
        expected = to_decimal(q["total"])
        if expected != amount:
            log_event("payment.amount_mismatch", level="warning", stb_number=record["stb_number"],
                      expected=str(expected), paid=str(amount))
            return "amount_mismatch"
        return None

    def _notify(self, mobile: str, message: str) -> bool:
        try:
            result = self.notifier.send(mobile, message)
        except Exception as exc:
            log_event("sms.send", level="warning", outcome="error", to=mobile, error=str(exc))
            return False
        return bool((result or {}).get("success"))

    def _audit(self, order_id, payment_id, stb, outcome, *, stage=None, payload=None, notes=None) -> None:
        try:
            self.session.add(PaymentEventLog(
                order_id=order_id,
                payment_id=payment_id,
                stb_number=stb,
                outcome=outcome,
                stage=stage,
                notes=notes,
                payload=payload or {},
            ))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            current_app.logger.exception("payment_event_log_write_failed payment_id=%s", payment_id)


def init_recharge(app, gateway=None, notifier=None) -> None:
    """Build the external clients once and keep them on the app."""
    from cablepay.services.gateway import RazorpayGateway
    from cablepay.services.notifications import SmsNotifier

    app.extensions[EXTENSION_KEY] = {
        "gateway": gateway or RazorpayGateway.from_config(app.config),
        "notifier": notifier or SmsNotifier.from_config(app.config),
    }


def get_recharge_service() -> RechargeService:
    ext = current_app.extensions[EXTENSION_KEY]
    return RechargeService(
        session=db.session,
        gateway=ext["gateway"],
        notifier=ext["notifier"],
        enforce_server_pricing=bool(current_app.config.get("ENFORCE_SERVER_PRICING")),
        currency=current_app.config.get("PAYMENT_CURRENCY", "INR"),
    )
