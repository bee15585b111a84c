from flask import Blueprint

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """Liveness probe; never touches the database."""
    return "ok", 200
