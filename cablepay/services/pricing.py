from decimal import Decimal
from typing import Any, Dict, Optional

from cablepay.errors import NotFound, ValidationError
from cablepay.utils.helpers import to_decimal, to_positive_int


def village_price(settings: Dict[str, Any], village: Optional[str]) -> Optional[Decimal]:
    for v in settings.get("villages") or []:
        if v.get("name") == village:
            return to_decimal(v.get("price"))
    return None


def find_offer(settings: Dict[str, Any], *, months: Any = None, offer_index: Any = None) -> Optional[Dict[str, Any]]:
    offers = settings.get("offers") or []
    if offer_index is not None and offer_index != "":
        try:
            idx = int(offer_index)
        except (TypeError, ValueError):
            return None
        return offers[idx] if 0 <= idx < len(offers) else None
    m = to_positive_int(months)
    if m is None:
        return None
    return next((o for o in offers if to_positive_int(o.get("months")) == m), None)


def calc_total(base_price: Decimal, multiplier: int, has_amplifier: bool, discount: Decimal) -> Dict[str, Decimal]:
    subtotal = base_price * multiplier
    applied = discount if (has_amplifier and base_price > 0) else Decimal("0")
    total = max(Decimal("0"), subtotal - applied)
    return {"subtotal": subtotal, "discount": applied, "total": total}


def quote(settings: Dict[str, Any], *, village: Optional[str], months: Any = None, offer_index: Any = None,
          has_amplifier: bool = False) -> Dict[str, Any]:
    """
    Price a recharge: village monthly price x offer multiplier (months paid for),
    minus the flat amplifier discount when the box has an amplifier.
    """
    base = village_price(settings, village)
    if base is None:
        raise NotFound(f'No price configured for village "{village}".')
    offer = find_offer(settings, months=months, offer_index=offer_index)
    if offer is None:
        raise ValidationError("Select a valid subscription offer.")
    multiplier = to_positive_int(offer.get("multiplier"))
    if multiplier is None:
        raise ValidationError("Offer is misconfigured.")

    discount = to_decimal(settings.get("amplifierDiscount")) or Decimal("0")
    parts = calc_total(base, multiplier, bool(has_amplifier), discount)
    return {
        "village": village,
        "basePrice": _num(base),
        "label": offer.get("label"),
        "months": to_positive_int(offer.get("months")),
        "multiplier": multiplier,
        "freeMonths": offer.get("freeMonths", 0),
        "hasAmplifier": bool(has_amplifier),
        "subtotal": _num(parts["subtotal"]),
        "discount": _num(parts["discount"]),
        "total": _num(parts["total"]),
    }


def _num(d: Decimal):
    return int(d) if d == d.to_integral_value() else float(d)
