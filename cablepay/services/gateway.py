from typing import Any, Dict, Optional

import razorpay

from cablepay.errors import Misconfiguration, UpstreamFailure

# Values shipped in .env.example; treat them as "not configured"
_PLACEHOLDER_MARKERS = ("xxxxxxxx", "paste-", "your-", "changeme")


def _looks_configured(value: Optional[str]) -> bool:
    if not value or not value.strip():
        return False
    v = value.lower()
    return not any(m in v for m in _PLACEHOLDER_MARKERS)


class RazorpayGateway:
    """
    Thin wrapper around the Razorpay SDK.

    Built once by the app factory from config. Credentials are checked when
    an order is created so a missing key only breaks payments, not the app.
    """

    def __init__(self, key_id: Optional[str], key_secret: Optional[str], client_factory=razorpay.Client):
        self.key_id = key_id
        self.key_secret = key_secret
        self._client_factory = client_factory
        self._client = None

    @classmethod
    def from_config(cls, config) -> "RazorpayGateway":
        return cls(config.get("RAZORPAY_KEY_ID"), config.get("RAZORPAY_KEY_SECRET"))

    @property
    def secret(self) -> str:
        if not _looks_configured(self.key_secret):
            raise Misconfiguration("RAZORPAY_KEY_SECRET is not configured")
        return self.key_secret

    def _get_client(self):
        if not _looks_configured(self.key_id):
            raise Misconfiguration("RAZORPAY_KEY_ID is not configured")
        secret = self.secret
        if self._client is None:
            self._client = self._client_factory(auth=(self.key_id, secret))
        return self._client

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> Dict[str, Any]:
        client = self._get_client()
        data = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1,  # auto-capture on success
        }
        try:
            order = client.order.create(data=data)
        except Exception as exc:
            raise UpstreamFailure("Failed to create payment order.") from exc
        return {"id": order["id"], "amount": order["amount"], "currency": order["currency"]}
