"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from account_hub.api.deps import json_response, timing
from account_hub.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application and profile database health information."""

    db_status = "skipped"
    if current_app.config.get("PROFILE_STORE_BACKEND") == "sqlalchemy":
        db_status = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:  # pragma: no cover - depends on DB backend
            current_app.logger.exception("healthcheck.db_error")
            db_status = "fail"
    payload = {
        "status": "ok",
        "db": db_status,
        "directory": current_app.config.get("IDENTITY_DIRECTORY_BACKEND"),
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload)
