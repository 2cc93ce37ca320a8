import hmac
import hashlib

from cablepay.errors import Misconfiguration


def expected_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify(order_id, payment_id, signature, secret) -> bool:
    """
    Check a Razorpay checkout callback.

    The gateway signs "{order_id}|{payment_id}" with HMAC-SHA256 keyed by the
    account's key secret. Comparison is constant-time. A missing secret is a
    configuration error, not a failed check.
    """
    if not secret:
        raise Misconfiguration("RAZORPAY_KEY_SECRET is not configured")
    if not all(isinstance(v, str) and v for v in (order_id, payment_id, signature)):
        return False
    mac = expected_signature(order_id, payment_id, secret)
    try:
        return hmac.compare_digest(mac, signature)
    except TypeError:
        # non-ASCII signature strings
        return False
