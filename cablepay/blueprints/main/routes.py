from cablepay.extensions import limiter
from . import bp


@bp.get("/")
def banner():
    return {"message": "Happy Star Satellite Vision API is running", "status": "ok"}, 200


@limiter.exempt
@bp.get("/healthz")
def healthz():
    return {"status": "ok"}, 200
