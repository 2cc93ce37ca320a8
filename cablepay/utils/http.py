from typing import Any, Dict

from flask import request

from cablepay.errors import ValidationError


def json_body() -> Dict[str, Any]:
    """Request JSON as a dict; an absent or unparsable body reads as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data
