from flask import Blueprint
from flask_login import current_user

from cablepay.extensions import login_manager

bp = Blueprint("transactions", __name__)


@bp.before_request
def _require_admin():
    if current_user.is_authenticated:
        return None
    return login_manager.unauthorized()


from . import routes  # noqa: E402,F401
