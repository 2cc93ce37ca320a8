from flask import Blueprint

bp = Blueprint("payment", __name__)

from . import routes  # noqa: E402,F401
