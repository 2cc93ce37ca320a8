from typing import Any, Dict, Optional

import requests

from cablepay.observability import log_event


class SmsNotifier:
    """
    Recharge confirmations over an HTTP SMS API (Fast2SMS bulkV2 shape).

    Without an API key the notifier only logs the message, which is what
    development and tests run with.
    """

    def __init__(self, api_key: Optional[str], api_url: str, sender: str = "", timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.api_url = api_url
        self.sender = sender
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "SmsNotifier":
        return cls(
            api_key=config.get("SMS_API_KEY"),
            api_url=config.get("SMS_API_URL"),
            sender=config.get("SMS_SENDER", ""),
            timeout=float(config.get("SMS_TIMEOUT_SECONDS", 5)),
        )

    def send(self, mobile: str, message: str) -> Dict[str, Any]:
        if not self.api_key:
            log_event("sms.send", outcome="dry_run", to=mobile, sms_message=message)
            return {"success": True, "dry_run": True}

        resp = self._session.post(
            self.api_url,
            json={"route": "q", "message": message, "language": "english", "numbers": mobile},
            headers={"authorization": self.api_key},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json() if resp.content else {}
        ok = bool(body.get("return", True))
        log_event("sms.send", outcome="sent" if ok else "rejected", to=mobile, request_id=body.get("request_id"))
        return {"success": ok}


def recharge_message(*, name: str, stb_number: str, months: int, amount, payment_id: str, business_name: str) -> str:
    return (
        f"Dear {name}, your cable TV subscription for STB #{stb_number} has been recharged "
        f"for {months} month(s). Amount: Rs.{amount}. Payment ID: {payment_id}. "
        f"Thank you! - {business_name}"
    )
