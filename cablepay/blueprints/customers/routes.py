from flask import request, jsonify
from flask_login import login_required

from cablepay.extensions import db, limiter
from cablepay.services.customers import CustomerRepository
from cablepay.services.settings_store import SettingsRepository
from cablepay.utils.http import json_body
from . import bp


def _repo() -> CustomerRepository:
    return CustomerRepository(db.session)


def _require_amplifier_details() -> bool:
    doc, _ = SettingsRepository(db.session).read_or_default()
    return bool((doc.get("formMeta") or {}).get("requireAmplifierAddress", True))


# --- public ---
@bp.get("/check/<path:stb>")
@limiter.limit("30 per minute")
def check(stb):
    return jsonify(_repo().check_active(stb))


# --- admin ---
@bp.get("")
@login_required
def list_customers():
    rows = _repo().list(
        search=request.args.get("search"),
        village=request.args.get("village") or None,
        status=request.args.get("status") or None,
    )
    return jsonify([c.to_dict() for c in rows])


@bp.get("/<int:customer_id>")
@login_required
def get_customer(customer_id):
    return jsonify(_repo().get(customer_id).to_dict())


@bp.post("")
@login_required
def create_customer():
    data = json_body()
    c = _repo().insert(data, require_amplifier_details=_require_amplifier_details())
    return jsonify({"message": "Customer added successfully.", "customer": c.to_dict()}), 201


@bp.put("/<int:customer_id>")
@login_required
def update_customer(customer_id):
    data = json_body()
    c = _repo().update(customer_id, data, require_amplifier_details=_require_amplifier_details())
    return jsonify({"message": "Customer updated successfully.", "customer": c.to_dict()})


@bp.patch("/<int:customer_id>/status")
@login_required
def set_status(customer_id):
    status = json_body().get("status")
    c = _repo().set_status(customer_id, status)
    return jsonify({"message": f"Customer status updated to {status}.", "customer": c.to_dict()})


@bp.post("/bulk")
@login_required
def bulk_upsert():
    rows = json_body().get("rows")
    return jsonify(_repo().bulk_upsert(rows)), 200


@bp.delete("/<int:customer_id>")
@login_required
def delete_customer(customer_id):
    _repo().delete(customer_id)
    return jsonify({"message": "Customer removed successfully."})
