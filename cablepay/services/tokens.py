from typing import Optional
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from flask import current_app


def _serializer() -> URLSafeTimedSerializer:
    secret = current_app.config["SECRET_KEY"]
    salt = current_app.config.get("ADMIN_TOKEN_SALT", "admin-token-v1")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)


def generate(admin_id: int, username: str) -> str:
    return _serializer().dumps({"a": admin_id, "u": username})


def verify(token: str, max_age_seconds: Optional[int] = None) -> Optional[int]:
    """Return the admin id carried by a valid, unexpired token; None otherwise."""
    if max_age_seconds is None:
        max_age_seconds = int(current_app.config.get("ADMIN_TOKEN_TTL_SECONDS", 24 * 60 * 60))
    try:
        data = _serializer().loads(token, max_age=max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None
    if not isinstance(data, dict):
        return None
    admin_id = data.get("a")
    return admin_id if isinstance(admin_id, int) else None
