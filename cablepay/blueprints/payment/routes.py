from flask import jsonify

from cablepay.extensions import limiter
from cablepay.services.recharge import get_recharge_service
from cablepay.utils.http import json_body
from . import bp


@bp.post("/create-order")
@limiter.limit("20 per minute; 200 per hour")
def create_order():
    data = json_body()
    result = get_recharge_service().create_order(
        data.get("amount"),
        receipt=data.get("receipt"),
        currency=data.get("currency"),
        village=data.get("village"),
        months=data.get("months_recharged", data.get("months")),
        has_amplifier=data.get("has_amplifier", False),
    )
    return jsonify(result)


@bp.post("/verify")
@limiter.limit("20 per minute; 200 per hour")
def verify():
    """
    Checkout callback: signature check, then customer upsert, transaction
    insert and a best-effort SMS. Safe to retry with the same payment id.
    """
    data = json_body()
    return jsonify(get_recharge_service().verify_and_record(data))
