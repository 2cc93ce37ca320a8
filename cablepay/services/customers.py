from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import sqlalchemy as sa
from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cablepay.errors import Conflict, CustomerInactive, NotFound, ValidationError
from cablepay.models import Customer, Transaction, CUSTOMER_STATUSES, STATUS_ACTIVE
from cablepay.utils.validators import clean_stb, clean_str, coerce_bool, is_valid_stb, normalize_mobile

REQUIRED_FIELDS = ("stb_number", "name", "mobile", "village")

# Idempotent upsert keyed by the unique stb_number. A recharge always reactivates.
_UPSERT_SQL = sa.text(
    """
    INSERT INTO customers (
        stb_number, name, mobile, village, street, has_amplifier,
        alternate_mobile, full_address, status, created_at, updated_at
    )
    VALUES (
        :stb_number, :name, :mobile, :village, :street, :has_amplifier,
        :alternate_mobile, :full_address, :status, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP
    )
    ON CONFLICT (stb_number) DO UPDATE SET
        name             = excluded.name,
        mobile           = excluded.mobile,
        village          = excluded.village,
        street           = excluded.street,
        has_amplifier    = excluded.has_amplifier,
        alternate_mobile = excluded.alternate_mobile,
        full_address     = excluded.full_address,
        status           = excluded.status,
        updated_at       = CURRENT_TIMESTAMP
    """
)


def parse_customer(data: Dict[str, Any], *, partial: bool = False,
                   require_amplifier_details: bool = False) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Clean a customer payload. Returns (fields, errors). With ``partial`` only
    keys present in ``data`` are returned and required fields are only
    checked when present.
    """
    errors: Dict[str, str] = {}
    out: Dict[str, Any] = {}

    def present(key):
        return not partial or key in data

    if present("stb_number"):
        stb = clean_stb(data.get("stb_number"))
        if not stb:
            errors["stb_number"] = "STB Number is required."
        elif not is_valid_stb(stb):
            errors["stb_number"] = "STB Number may contain only letters, digits, '-', '_' or '/'."
        out["stb_number"] = stb

    if present("name"):
        out["name"] = clean_str(data.get("name"), 255)
        if not out["name"]:
            errors["name"] = "Name is required."

    if present("mobile"):
        raw = clean_str(data.get("mobile"), 32)
        out["mobile"] = normalize_mobile(raw)
        if not raw:
            errors["mobile"] = "Mobile is required."
        elif not out["mobile"]:
            errors["mobile"] = "Enter a valid 10-digit mobile number."

    if present("village"):
        out["village"] = clean_str(data.get("village"), 120)
        if not out["village"]:
            errors["village"] = "Village is required."

    if present("street"):
        out["street"] = clean_str(data.get("street"), 255)

    if present("has_amplifier"):
        out["has_amplifier"] = coerce_bool(data.get("has_amplifier"))

    if present("alternate_mobile"):
        raw = clean_str(data.get("alternate_mobile"), 32)
        out["alternate_mobile"] = normalize_mobile(raw) if raw else None
        if raw and not out["alternate_mobile"]:
            errors["alternate_mobile"] = "Enter a valid 10-digit alternate mobile number."

    if present("full_address"):
        out["full_address"] = clean_str(data.get("full_address"), 2000)

    if present("status"):
        status = (clean_str(data.get("status"), 16) or STATUS_ACTIVE).lower()
        if status not in CUSTOMER_STATUSES:
            errors["status"] = "Status must be active or inactive."
        out["status"] = status

    if require_amplifier_details and out.get("has_amplifier"):
        if not out.get("alternate_mobile") and "alternate_mobile" not in errors:
            errors["alternate_mobile"] = "Alternate mobile is required when an amplifier is installed."
        if not out.get("full_address"):
            errors["full_address"] = "Full address is required when an amplifier is installed."

    return out, errors


def _lenient_fields(row: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Clean a row keeping whatever the store can hold; return it with the missing required keys."""
    out = {
        "stb_number": clean_stb(row.get("stb_number")),
        "name": clean_str(row.get("name"), 255),
        "village": clean_str(row.get("village"), 120),
    }
    mobile_raw = clean_str(row.get("mobile"), 32)
    alt_raw = clean_str(row.get("alternate_mobile"), 32)
    out.update({
        "mobile": (normalize_mobile(mobile_raw) or mobile_raw) if mobile_raw else None,
        "street": clean_str(row.get("street"), 255),
        "has_amplifier": coerce_bool(row.get("has_amplifier")),
        "alternate_mobile": (normalize_mobile(alt_raw) or alt_raw) if alt_raw else None,
        "full_address": clean_str(row.get("full_address"), 2000),
    })
    return out, [k for k in REQUIRED_FIELDS if not out[k]]


def parse_bulk_row(row: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Lenient parse for spreadsheet rows: only the four required fields gate a row."""
    if not isinstance(row, dict):
        return None, "Row is not an object"

    out, missing = _lenient_fields(row)
    if missing:
        return None, "Missing required fields (stb_number, name, mobile, village)"
    status = (clean_str(row.get("status"), 16) or "").lower()
    out["status"] = status if status in CUSTOMER_STATUSES else STATUS_ACTIVE
    return out, None


def parse_paid_customer(data: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Customer fields from a paid recharge callback. The money has already
    moved, so only a missing required field is an error; STB format and
    mobile shape are taken as given, same as a bulk import.
    """
    out, missing = _lenient_fields(data)
    return out, {k: f"{k} is required." for k in missing}


class CustomerRepository:
    def __init__(self, session):
        self.session = session

    # --- public reads ---
    def check_active(self, stb: str) -> Dict[str, Any]:
        stb = clean_stb(stb) or ""
        c = self.get_by_stb(stb)
        if c is None:
            raise NotFound("STB number not found. Please contact the office.", extra={"exists": False})
        if not c.is_active:
            raise CustomerInactive(
                f"STB {stb} is currently inactive. Please contact the office.",
                extra={"exists": True, "active": False},
            )
        return {"exists": True, "active": True, "stb_number": c.stb_number, "name": c.name, "village": c.village}

    def get_by_stb(self, stb: str) -> Optional[Customer]:
        return self.session.query(Customer).filter_by(stb_number=stb).one_or_none()

    def get(self, customer_id: int) -> Customer:
        c = self.session.get(Customer, customer_id)
        if c is None:
            raise NotFound("Customer not found.")
        return c

    def list(self, search: str | None = None, village: str | None = None, status: str | None = None) -> List[Customer]:
        query = self.session.query(Customer)
        q = (search or "").strip()
        if q:
            pattern = f"%{q.lower()}%"
            query = query.filter(or_(
                func.lower(Customer.name).like(pattern),
                func.lower(Customer.stb_number).like(pattern),
                func.lower(Customer.mobile).like(pattern),
            ))
        if village:
            query = query.filter(Customer.village == village)
        if status:
            query = query.filter(Customer.status == status)
        return query.order_by(Customer.id.desc()).all()

    # --- writes ---
    def _execute_upsert(self, record: Dict[str, Any]) -> None:
        params = {
            "stb_number": record["stb_number"],
            "name": record["name"],
            "mobile": record["mobile"],
            "village": record["village"],
            "street": record.get("street"),
            "has_amplifier": bool(record.get("has_amplifier")),
            "alternate_mobile": record.get("alternate_mobile"),
            "full_address": record.get("full_address"),
            "status": record.get("status") or STATUS_ACTIVE,
        }
        self.session.execute(_UPSERT_SQL, params)

    def upsert(self, record: Dict[str, Any]) -> Customer:
        """Insert or replace by stb_number; the stored status is always active."""
        self._execute_upsert({**record, "status": STATUS_ACTIVE})
        self.session.commit()
        return (
            self.session.query(Customer)
            .filter_by(stb_number=record["stb_number"])
            .populate_existing()
            .one()
        )

    def insert(self, data: Dict[str, Any], *, require_amplifier_details: bool = False) -> Customer:
        fields, errors = parse_customer(data, require_amplifier_details=require_amplifier_details)
        if errors:
            raise ValidationError("STB Number, Name, Mobile, and Village are required.", errors=errors)
        if self.get_by_stb(fields["stb_number"]) is not None:
            raise Conflict("STB Number already exists.")

        c = Customer(**fields)
        self.session.add(c)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict("STB Number already exists.")
        return c

    def update(self, customer_id: int, data: Dict[str, Any], *, require_amplifier_details: bool = False) -> Customer:
        c = self.get(customer_id)
        fields, errors = parse_customer(data, partial=True)
        if errors:
            raise ValidationError("Invalid customer details.", errors=errors)

        if require_amplifier_details:
            merged = {k: fields.get(k, getattr(c, k)) for k in ("has_amplifier", "alternate_mobile", "full_address")}
            _, amp_errors = parse_customer(merged, partial=True, require_amplifier_details=True)
            if amp_errors:
                raise ValidationError("Invalid customer details.", errors=amp_errors)

        new_stb = fields.get("stb_number")
        if new_stb and new_stb != c.stb_number and self.get_by_stb(new_stb) is not None:
            raise Conflict("STB Number already exists.")

        for key, value in fields.items():
            setattr(c, key, value)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict("Could not save (conflict).")
        return c

    def set_status(self, customer_id: int, status: Any) -> Customer:
        if status not in CUSTOMER_STATUSES:
            raise ValidationError("Status must be active or inactive.")
        c = self.get(customer_id)
        c.status = status
        self.session.commit()
        return c

    def delete(self, customer_id: int) -> None:
        c = self.get(customer_id)
        has_payments = self.session.query(
            self.session.query(Transaction).filter(Transaction.stb_number == c.stb_number).exists()
        ).scalar()
        if has_payments:
            raise Conflict("Customer has recorded payments and cannot be deleted. Set it inactive instead.")
        self.session.delete(c)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict("Customer has recorded payments and cannot be deleted.")

    def bulk_upsert(self, rows: Any, max_rows: Optional[int] = None) -> Dict[str, Any]:
        """
        Upsert spreadsheet rows one at a time. A bad row is reported (1-based)
        and skipped; it never aborts the rest of the batch.
        """
        if max_rows is None:
            max_rows = int(current_app.config.get("BULK_MAX_ROWS", 1000))
        if not isinstance(rows, list) or not rows:
            raise ValidationError("No rows provided.")
        if len(rows) > max_rows:
            raise ValidationError(f"Too many rows. Max allowed: {max_rows}.")

        results: Dict[str, Any] = {"inserted": 0, "skipped": 0, "errors": []}
        for i, row in enumerate(rows, start=1):
            record, reason = parse_bulk_row(row)
            if record is None:
                stb = clean_stb(row.get("stb_number")) if isinstance(row, dict) else None
                results["skipped"] += 1
                results["errors"].append({"row": i, "stb": stb or "(empty)", "reason": reason})
                continue
            try:
                self._execute_upsert(record)
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                current_app.logger.warning("customers.bulk_row_failed row=%s stb=%s: %s", i, record["stb_number"], exc)
                results["skipped"] += 1
                results["errors"].append({"row": i, "stb": record["stb_number"], "reason": "Could not save row"})
                continue
            results["inserted"] += 1

        results["message"] = (
            f"Bulk insert complete. {results['inserted']} upserted, {results['skipped']} skipped."
        )
        return results
