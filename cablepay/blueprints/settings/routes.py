from flask import request, jsonify
from flask_login import login_required

from cablepay.extensions import db, limiter
from cablepay.observability import log_event
from cablepay.services import pricing
from cablepay.services.settings_store import SettingsRepository
from cablepay.utils.validators import coerce_bool
from cablepay.utils.http import json_body
from . import bp


def _repo() -> SettingsRepository:
    return SettingsRepository(db.session)


def _body():
    return json_body()


# --- public (payment form) ---
@bp.get("")
def get_settings():
    # Never errors: the payment form must keep working on a store failure
    doc, version = _repo().read_or_default()
    return jsonify({**doc, "version": version})


@bp.get("/quote")
@limiter.limit("60 per minute")
def get_quote():
    doc, _ = _repo().read_or_default()
    q = pricing.quote(
        doc,
        village=request.args.get("village"),
        months=request.args.get("months"),
        offer_index=request.args.get("offer_index"),
        has_amplifier=coerce_bool(request.args.get("has_amplifier")),
    )
    return jsonify(q)


# --- admin writes ---
@bp.put("")
@login_required
def replace_settings():
    data = _body()
    doc, version = _repo().replace(data.get("settings", data), data.get("version"))
    log_event("settings.replaced", version=version)
    return jsonify({"message": "Settings saved successfully.", "settings": doc, "version": version})


@bp.patch("/villages")
@login_required
def upsert_village():
    data = _body()
    old_name = data.get("oldName")
    doc, version = _repo().upsert_village(data.get("name"), data.get("price"), old_name, data.get("version"))
    log_event("settings.village_saved", name=data.get("name"), old_name=old_name, version=version)
    return jsonify({
        "message": "Village updated." if old_name else "Village added.",
        "villages": doc["villages"],
        "version": version,
    })


@bp.delete("/villages/<path:name>")
@login_required
def remove_village(name):
    doc, version = _repo().remove_village(name, request.args.get("version"))
    log_event("settings.village_removed", name=name, version=version)
    return jsonify({"message": f'Village "{name}" removed.', "villages": doc["villages"], "version": version})


@bp.patch("/offers")
@login_required
def upsert_offer():
    data = _body()
    index = data.get("index")
    doc, version = _repo().upsert_offer(
        data.get("label"), data.get("months"), data.get("multiplier"), index, data.get("version")
    )
    return jsonify({
        "message": "Offer updated." if index not in (None, "") else "Offer added.",
        "offers": doc["offers"],
        "version": version,
    })


@bp.delete("/offers/<index>")
@login_required
def remove_offer(index):
    doc, version = _repo().remove_offer(index, request.args.get("version"))
    return jsonify({"message": "Offer removed.", "offers": doc["offers"], "version": version})


@bp.patch("/form-meta")
@login_required
def patch_form_meta():
    data = _body()
    doc, version = _repo().patch_form_meta(data.get("formMeta"), data.get("amplifierDiscount"), data.get("version"))
    return jsonify({"message": "Form meta updated.", "settings": doc, "version": version})
