from flask import request, jsonify

from cablepay.extensions import db
from cablepay.services.transactions import (
    LIST_CUSTOMER_FIELDS,
    TODAY_CUSTOMER_FIELDS,
    TransactionRepository,
)
from . import bp


def _repo() -> TransactionRepository:
    return TransactionRepository(db.session)


@bp.get("/stats")
def stats():
    return jsonify(_repo().stats())


@bp.get("/today")
def today():
    return jsonify([t.to_dict(customer_fields=TODAY_CUSTOMER_FIELDS) for t in _repo().list_today()])


@bp.get("/reconciliation")
def reconciliation():
    """Verified payments whose ledger write failed."""
    return jsonify([e.to_dict() for e in _repo().reconciliation_queue()])


@bp.get("")
def list_transactions():
    rows = _repo().list(
        search=request.args.get("search"),
        from_date=request.args.get("from_date"),
        to_date=request.args.get("to_date"),
        stb_number=request.args.get("stb_number"),
    )
    return jsonify([t.to_dict(customer_fields=LIST_CUSTOMER_FIELDS) for t in rows])


@bp.get("/<int:tx_id>")
def get_transaction(tx_id):
    return jsonify(_repo().get(tx_id).to_dict(customer_fields=LIST_CUSTOMER_FIELDS))
