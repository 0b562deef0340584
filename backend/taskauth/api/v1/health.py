"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from taskauth.api.deps import json_response, timing
from taskauth.core.extensions import db
from taskauth.core.security import get_credentials

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return database and signing-key health; 503 when either is down."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"

    keys_loaded = get_credentials().key_store.keys_loaded()
    healthy = db_status == "ok" and keys_loaded
    payload = {
        "status": "ok" if healthy else "fail",
        "db": db_status,
        "keys_loaded": keys_loaded,
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if healthy else 503)
