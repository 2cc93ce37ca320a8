"""
Pricing & offer configuration: one JSON document in ``app_settings``.

Every write is a read-modify-write of the whole document. Callers may pass the
``version`` they last read; a stale version is rejected with Conflict, and
without one the last writer wins.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app

from cablepay.errors import Conflict, NotFound, ValidationError
from cablepay.models.app_settings import AppSettings, PAYMENT_FORM_KEY
from cablepay.utils.helpers import to_decimal, to_positive_int
from cablepay.utils.validators import clean_str, coerce_bool

DEFAULT_SETTINGS: Dict[str, Any] = {
    "villages": [
        {"name": "Chennai", "price": 250},
        {"name": "Karur", "price": 230},
        {"name": "Coimbatore", "price": 240},
        {"name": "Madurai", "price": 220},
        {"name": "Salem", "price": 230},
        {"name": "Trichy", "price": 235},
        {"name": "Tirunelveli", "price": 220},
        {"name": "Erode", "price": 225},
        {"name": "Vellore", "price": 225},
        {"name": "Thanjavur", "price": 220},
        {"name": "Dindigul", "price": 215},
        {"name": "Tiruppur", "price": 230},
        {"name": "Hosur", "price": 240},
        {"name": "Kanchipuram", "price": 235},
        {"name": "Ooty", "price": 250},
    ],
    "offers": [
        {"label": "1 Month", "months": 1, "multiplier": 1, "freeMonths": 0},
        {"label": "6 Months", "months": 6, "multiplier": 5, "freeMonths": 1},
        {"label": "1 Year", "months": 12, "multiplier": 10, "freeMonths": 2},
    ],
    "amplifierDiscount": 50,
    "formMeta": {
        "supportPhone": "+91 XXXXXXXXXX",
        "businessName": "Happy Star Satellite Vision",
        "tagline": "Recharge your Cable TV subscription online",
        "requireAmplifierAddress": True,
        "showStreetField": True,
    },
}

_BOOL_META = ("requireAmplifierAddress", "showStreetField")
_TEXT_META = ("supportPhone", "businessName", "tagline")


def default_settings() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_SETTINGS)


def _number(value: Any, field: str, errors: Dict[str, str]) -> Optional[float]:
    d = to_decimal(value)
    if d is None or d < 0:
        errors[field] = f"{field} must be a number >= 0."
        return None
    # keep whole rupees as ints so the document reads like the defaults
    return int(d) if d == d.to_integral_value() else float(d)


def build_village(name: Any, price: Any) -> Dict[str, Any]:
    errors: Dict[str, str] = {}
    clean = clean_str(name, 120)
    if not clean:
        errors["name"] = "Village name is required."
    p = _number(price, "price", errors)
    if errors:
        raise ValidationError("Village name and price are required.", errors=errors)
    return {"name": clean, "price": p}


def build_offer(label: Any, months: Any, multiplier: Any) -> Dict[str, Any]:
    errors: Dict[str, str] = {}
    clean = clean_str(label, 60)
    if not clean:
        errors["label"] = "Offer label is required."
    m = to_positive_int(months)
    if m is None:
        errors["months"] = "months must be a positive whole number."
    mult = to_positive_int(multiplier)
    if mult is None:
        errors["multiplier"] = "multiplier must be a positive whole number."
    elif m is not None and mult > m:
        errors["multiplier"] = "multiplier cannot exceed months."
    if errors:
        raise ValidationError("label, months, and multiplier are required.", errors=errors)
    return {"label": clean, "months": m, "multiplier": mult, "freeMonths": max(0, m - mult)}


def _merge_form_meta(current: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(current or {})
    for key, value in (patch or {}).items():
        if key in _BOOL_META:
            merged[key] = coerce_bool(value)
        elif key in _TEXT_META:
            merged[key] = clean_str(value, 255) or ""
        else:
            merged[key] = value
    return merged


def normalize_document(doc: Any) -> Dict[str, Any]:
    """Validate a full settings document (PUT) and return its canonical form."""
    if not isinstance(doc, dict):
        raise ValidationError("Invalid settings payload.")

    villages_in = doc.get("villages", [])
    offers_in = doc.get("offers", [])
    if not isinstance(villages_in, list) or not isinstance(offers_in, list):
        raise ValidationError("villages and offers must be lists.")

    villages = [build_village((v or {}).get("name"), (v or {}).get("price")) for v in villages_in]
    seen = set()
    for v in villages:
        key = v["name"].lower()
        if key in seen:
            raise Conflict(f'Village "{v["name"]}" is listed twice.')
        seen.add(key)

    offers = [build_offer((o or {}).get("label"), (o or {}).get("months"), (o or {}).get("multiplier"))
              for o in offers_in]
    if not offers:
        raise ValidationError("At least one offer is required.")

    errors: Dict[str, str] = {}
    discount = _number(doc.get("amplifierDiscount", 0), "amplifierDiscount", errors)
    if errors:
        raise ValidationError("Invalid settings payload.", errors=errors)

    form_meta = doc.get("formMeta") or {}
    if not isinstance(form_meta, dict):
        raise ValidationError("formMeta must be an object.")

    return {
        "villages": villages,
        "offers": offers,
        "amplifierDiscount": discount,
        "formMeta": _merge_form_meta(DEFAULT_SETTINGS["formMeta"], form_meta),
    }


class SettingsRepository:
    def __init__(self, session):
        self.session = session

    # --- reads ---
    def _row(self) -> Optional[AppSettings]:
        return self.session.query(AppSettings).filter_by(key=PAYMENT_FORM_KEY).one_or_none()

    def load(self) -> Tuple[Dict[str, Any], int]:
        """Return (document, version). Defaults with version 0 when no row exists."""
        row = self._row()
        if row is None:
            return default_settings(), 0
        return copy.deepcopy(row.value or {}), int(row.settings_version or 1)

    def read_or_default(self) -> Tuple[Dict[str, Any], int]:
        """
        Read path for the public payment form. Any store failure falls back
        to the in-process defaults; the form must keep working.
        """
        try:
            return self.load()
        except Exception as exc:
            self.session.rollback()
            current_app.logger.warning("settings.read_failed; serving defaults: %s", exc)
            return default_settings(), 0

    # --- writes ---
    def save(self, document: Dict[str, Any], expected_version: Any = None) -> Tuple[Dict[str, Any], int]:
        row = self._row()
        current_version = int(row.settings_version or 1) if row else 0
        if expected_version is not None and expected_version != "":
            try:
                expected = int(expected_version)
            except (TypeError, ValueError):
                raise ValidationError("version must be an integer.")
            if expected != current_version:
                raise Conflict(
                    "Settings were changed by someone else. Reload and try again.",
                    extra={"current_version": current_version},
                )

        if row is None:
            row = AppSettings(key=PAYMENT_FORM_KEY, value=copy.deepcopy(document), settings_version=1)
            self.session.add(row)
        else:
            # new object so the JSON column is flagged dirty
            row.value = copy.deepcopy(document)
            row.settings_version = current_version + 1
        self.session.commit()
        return copy.deepcopy(row.value), int(row.settings_version)

    def replace(self, document: Any, expected_version: Any = None):
        return self.save(normalize_document(document), expected_version)

    def upsert_village(self, name: Any, price: Any, old_name: Any = None, expected_version: Any = None):
        village = build_village(name, price)
        doc, _ = self.load()
        villages: List[Dict[str, Any]] = list(doc.get("villages") or [])

        if old_name:
            idx = next((i for i, v in enumerate(villages) if v.get("name") == old_name), None)
            if idx is None:
                raise NotFound("Village not found.")
            clash = any(i != idx and v.get("name", "").lower() == village["name"].lower()
                        for i, v in enumerate(villages))
            if clash:
                raise Conflict(f'Village "{village["name"]}" already exists.')
            villages[idx] = village
        else:
            if any(v.get("name", "").lower() == village["name"].lower() for v in villages):
                raise Conflict(f'Village "{village["name"]}" already exists.')
            villages.append(village)

        doc["villages"] = villages
        return self.save(doc, expected_version)

    def remove_village(self, name: str, expected_version: Any = None):
        doc, _ = self.load()
        villages = list(doc.get("villages") or [])
        kept = [v for v in villages if v.get("name") != name]
        if len(kept) == len(villages):
            raise NotFound(f'Village "{name}" not found.')
        doc["villages"] = kept
        return self.save(doc, expected_version)

    def upsert_offer(self, label: Any, months: Any, multiplier: Any, index: Any = None,
                     expected_version: Any = None):
        offer = build_offer(label, months, multiplier)
        doc, _ = self.load()
        offers = list(doc.get("offers") or [])

        if index is None or index == "":
            offers.append(offer)
        else:
            idx = to_index(index)
            if idx >= len(offers):
                raise NotFound("Offer not found.")
            offers[idx] = offer

        doc["offers"] = offers
        return self.save(doc, expected_version)

    def remove_offer(self, index: Any, expected_version: Any = None):
        idx = to_index(index)
        doc, _ = self.load()
        offers = list(doc.get("offers") or [])
        if idx >= len(offers):
            raise NotFound("Offer not found.")
        if len(offers) <= 1:
            raise ValidationError("Cannot remove all offers. At least one must remain.")
        offers.pop(idx)
        doc["offers"] = offers
        return self.save(doc, expected_version)

    def patch_form_meta(self, form_meta: Any = None, amplifier_discount: Any = None,
                        expected_version: Any = None):
        if form_meta is not None and not isinstance(form_meta, dict):
            raise ValidationError("formMeta must be an object.")
        doc, _ = self.load()
        if amplifier_discount is not None:
            errors: Dict[str, str] = {}
            discount = _number(amplifier_discount, "amplifierDiscount", errors)
            if errors:
                raise ValidationError("Invalid amplifier discount.", errors=errors)
            doc["amplifierDiscount"] = discount
        doc["formMeta"] = _merge_form_meta(doc.get("formMeta") or {}, form_meta or {})
        return self.save(doc, expected_version)


def to_index(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("index must be a whole number >= 0.")
    try:
        idx = int(value)
    except (TypeError, ValueError):
        raise ValidationError("index must be a whole number >= 0.")
    if idx < 0:
        raise ValidationError("index must be a whole number >= 0.")
    return idx
