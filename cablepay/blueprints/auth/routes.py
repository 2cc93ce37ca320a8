from flask import request, jsonify, current_app
from flask_login import current_user, login_required
from sqlalchemy import func

from cablepay.errors import Unauthorized, ValidationError
from cablepay.extensions import db, limiter
from cablepay.models import Admin
from cablepay.observability import log_event
from cablepay.services import tokens
from cablepay.utils.http import json_body
from . import bp


def _login_username_scope():
    data = request.get_json(silent=True)
    data = data if isinstance(data, dict) else {}
    username = (data.get("username") or "").strip().lower()
    # Keep a stable scope even if username is blank
    return f"login-user:{username or 'missing'}"


@bp.post("/login")
@limiter.limit("10 per minute; 100 per hour")                                 # per-IP
@limiter.limit("5 per minute; 20 per hour", key_func=_login_username_scope)   # per-account
def login():
    data = json_body()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        raise ValidationError("Username and password are required.")

    admin = db.session.execute(
        db.select(Admin).where(func.lower(Admin.username) == func.lower(username))
    ).scalar_one_or_none()

    if not admin or not admin.is_active or not admin.check_password(password):
        log_event("auth.login_failed", level="warning", username=username)
        raise Unauthorized("Invalid credentials.")

    log_event("auth.login", admin_id=admin.id)
    return jsonify({
        "token": tokens.generate(admin.id, admin.username),
        "expiresIn": int(current_app.config.get("ADMIN_TOKEN_TTL_SECONDS", 24 * 60 * 60)),
        "admin": {"id": admin.id, "username": admin.username},
    })


@bp.get("/me")
@login_required
def me():
    return jsonify({"id": current_user.id, "username": current_user.username})
