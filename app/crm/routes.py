from flask import Blueprint

from app.crm.db import get_gateway

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Liveness plus whether the customer store is open."""
    return {"ok": True, "store": get_gateway().initialized}


@bp.get("/healthz")
def healthz():
    # Probe endpoint: no store access.
    return "ok", 200
