"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from account_hub.core.extensions import jwt
from account_hub.core.logger import ensure_request_id
from account_hub.services._shared.errors import ServiceError

log = logging.getLogger(__name__)

# Service error kind -> HTTP status
SERVICE_ERROR_STATUS: dict[str, int] = {
    "conflict": HTTPStatus.CONFLICT,
    "unauthorized": HTTPStatus.UNAUTHORIZED,
    "not_found": HTTPStatus.NOT_FOUND,
    "invalid_request": HTTPStatus.BAD_REQUEST,
    "internal": HTTPStatus.INTERNAL_SERVER_ERROR,
}


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary with the request id attached.
    :rtype: dict
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any], status: int) -> tuple[Response, int]:
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp, status


def service_error_problem(err: ServiceError) -> tuple[dict[str, Any], int]:
    """Translate a :class:`ServiceError` into ``(problem, status)``."""
    status = SERVICE_ERROR_STATUS.get(err.kind, HTTPStatus.INTERNAL_SERVER_ERROR)
    problem = _as_problem(status=status, code=err.reason, message=err.detail)
    return problem, int(status)


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    - JWT failures on protected endpoints are reported as 401 problems.
    """

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        problem, status = service_error_problem(err)
        if status >= 500:
            log.error(
                "ServiceError: reason=%s status=%s request_id=%s",
                err.reason,
                status,
                problem["request_id"],
                exc_info=True,
            )
        else:
            log.warning(
                "ServiceError: reason=%s status=%s request_id=%s",
                err.reason,
                status,
                problem["request_id"],
            )
        return _problem_response(problem, status)

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )
        log.warning("ValidationError: request_id=%s", problem["request_id"])
        return _problem_response(problem, HTTPStatus.UNPROCESSABLE_ENTITY)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level("HTTPException: code=%s status=%s detail=%s", error_code, status, message)
        return _problem_response(problem, status)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error("Unhandled exception: request_id=%s", problem["request_id"], exc_info=True)
        return _problem_response(problem, HTTPStatus.INTERNAL_SERVER_ERROR)

    # ---------------------------- JWT failures -----------------------------

    def _jwt_problem(message: str):
        problem = _as_problem(
            status=HTTPStatus.UNAUTHORIZED, code="unauthorized", message=message
        )
        return _problem_response(problem, HTTPStatus.UNAUTHORIZED)

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return _jwt_problem("Missing or malformed access token")

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return _jwt_problem("Invalid access token")

    @jwt.expired_token_loader
    def _expired_token(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return _jwt_problem("Access token has expired")

    @jwt.needs_fresh_token_loader
    def _needs_fresh(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return _jwt_problem("Fresh access token required")
