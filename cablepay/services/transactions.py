from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import case, distinct, exists, func
from sqlalchemy.exc import IntegrityError

from cablepay.errors import DuplicatePayment, ForeignKeyViolation, NotFound, ValidationError
from cablepay.models import Customer, Transaction, PaymentEventLog, PAYMENT_STATUS_SUCCESS
from cablepay.models.payment_event import OUTCOME_RECORDING_FAILED
from cablepay.utils.helpers import as_utc, local_now, parse_date_bound, start_of_local_day, start_of_local_month

# months_recharged values reported individually on the dashboard
BREAKDOWN_BUCKETS = {"oneMonth": 1, "sixMonth": 6, "oneYear": 12}

TODAY_CUSTOMER_FIELDS = ("name", "mobile", "village", "street", "has_amplifier")
LIST_CUSTOMER_FIELDS = ("name", "mobile", "village", "street", "has_amplifier", "alternate_mobile", "full_address")


def _money(value) -> float:
    return float(value or 0)


class TransactionRepository:
    def __init__(self, session):
        self.session = session

    def _success(self):
        return self.session.query(Transaction).filter(Transaction.payment_status == PAYMENT_STATUS_SUCCESS)

    # --- writes ---
    def insert(self, stb: str, amount, months: int, payment_id: str, order_id: Optional[str] = None) -> Transaction:
        """
        Record a verified payment. The customer row must already exist;
        the orchestrator upserts it first.
        """
        exists = self.session.query(
            self.session.query(Customer).filter(Customer.stb_number == stb).exists()
        ).scalar()
        if not exists:
            raise ForeignKeyViolation(f"No customer for STB {stb}; transaction not recorded.")

        tx = Transaction(
            stb_number=stb,
            amount_paid=Decimal(str(amount)),
            months_recharged=int(months),
            payment_id=payment_id,
            order_id=order_id,
            payment_status=PAYMENT_STATUS_SUCCESS,
        )
        self.session.add(tx)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            if self.get_by_payment_id(payment_id) is not None:
                raise DuplicatePayment()
            raise ForeignKeyViolation(f"No customer for STB {stb}; transaction not recorded.")
        return tx

    # --- reads ---
    def get(self, tx_id: int) -> Transaction:
        tx = self.session.get(Transaction, tx_id)
        if tx is None:
            raise NotFound("Transaction not found.")
        return tx

    def get_by_payment_id(self, payment_id: str) -> Optional[Transaction]:
        return self.session.query(Transaction).filter_by(payment_id=payment_id).one_or_none()

    def list_today(self) -> List[Transaction]:
        start = start_of_local_day()
        end = start + timedelta(days=1)
        return (
            self._success()
            .filter(Transaction.date >= as_utc(start), Transaction.date < as_utc(end))
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .all()
        )

    def list(self, search: str | None = None, from_date: str | None = None, to_date: str | None = None,
             stb_number: str | None = None) -> List[Transaction]:
        try:
            start = parse_date_bound(from_date)
            end = parse_date_bound(to_date, end=True)
        except ValueError:
            raise ValidationError("from_date/to_date must be ISO dates (YYYY-MM-DD).")

        query = self.session.query(Transaction)
        if stb_number:
            query = query.filter(Transaction.stb_number == stb_number.strip())
        if start is not None:
            query = query.filter(Transaction.date >= start)
        if end is not None:
            query = query.filter(Transaction.date < end)
        rows = query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()

        # search spans joined customer fields; done after the join, in Python
        s = (search or "").strip().lower()
        if not s:
            return rows

        def _hit(t: Transaction) -> bool:
            c = t.customer
            return (
                s in (t.stb_number or "").lower()
                or s in (t.payment_id or "").lower()
                or (c is not None and s in (c.name or "").lower())
                or (c is not None and s in (c.mobile or ""))
            )
        return [t for t in rows if _hit(t)]

    def stats(self) -> Dict[str, Any]:
        month_start = as_utc(start_of_local_month(local_now()))

        agg = self.session.query(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.amount_paid), 0),
            func.coalesce(func.sum(case((Transaction.date >= month_start, Transaction.amount_paid), else_=0)), 0),
            func.count(distinct(Transaction.stb_number)),
            *[
                func.coalesce(func.sum(case((Transaction.months_recharged == months, 1), else_=0)), 0)
                for months in BREAKDOWN_BUCKETS.values()
            ],
        ).filter(Transaction.payment_status == PAYMENT_STATUS_SUCCESS).one()

        total_tx, total_amount, month_amount, unique_payers, *buckets = agg
        return {
            "totalCustomers": self.session.query(func.count(Customer.id)).scalar() or 0,
            "totalTransactions": int(total_tx or 0),
            "totalAmount": _money(total_amount),
            "thisMonthAmount": _money(month_amount),
            "uniquePayingCustomers": int(unique_payers or 0),
            "subscriptionBreakdown": {
                key: int(count or 0) for key, count in zip(BREAKDOWN_BUCKETS.keys(), buckets)
            },
        }

    def reconciliation_queue(self) -> List[PaymentEventLog]:
        """Verified payments whose ledger write failed and no later retry recorded."""
        return (
            self.session.query(PaymentEventLog)
            .filter(PaymentEventLog.outcome == OUTCOME_RECORDING_FAILED)
            .filter(~exists().where(Transaction.payment_id == PaymentEventLog.payment_id))
            .order_by(PaymentEventLog.id.desc())
            .all()
        )
