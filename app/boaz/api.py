"""
JSON envelope helpers shared by every module blueprint.

All API responses look like ``{"data": ..., "error": ...}``. Handlers return
``ok(...)`` on success and raise ``ApiError`` (or let pydantic raise
``ValidationError``) on failure; the error handlers registered in
``register_error_handlers`` turn those into the same envelope.
"""
from __future__ import annotations

from typing import Any, TypeVar

from flask import Flask, g, jsonify, request
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session
from werkzeug.exceptions import HTTPException

from app.boaz.models import User

M = TypeVar("M", bound=BaseModel)


class ApiError(Exception):
    def __init__(self, code: str, status: int = 400, details: Any = None):
        super().__init__(code)
        self.code = code
        self.status = status
        self.details = details


def ok(data: Any = None, status: int = 200):
    return jsonify({"data": data, "error": None}), status


def fail(error: str, status: int = 400, details: Any = None):
    body: dict[str, Any] = {"data": None, "error": error}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def parse_body(schema: type[M], *, partial_ok: bool = False) -> M:
    """Validate the JSON (or form) body against a pydantic schema."""
    raw = request.get_json(silent=True)
    if raw is None:
        raw = request.form.to_dict() if request.form else {}
    if not isinstance(raw, dict):
        raise ApiError("invalid_payload", 400)
    return schema.model_validate(raw)


def get_or_404(s: Session, model: type, obj_id: int, code: str = "not_found"):
    obj = s.get(model, obj_id)
    if obj is None:
        raise ApiError(code, 404)
    return obj


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise ApiError("unauthorized", 401)
    return u


def _status_to_code(status: int) -> str:
    return {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        413: "file_too_large",
    }.get(status, "error")


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        return fail(e.code, e.status, e.details)

    @app.errorhandler(ValidationError)
    def _validation_error(e: ValidationError):
        details = e.errors(include_url=False, include_context=False, include_input=False)
        return fail("invalid_payload", 400, details)

    @app.errorhandler(OperationalError)
    def _db_unavailable(e: OperationalError):
        app.logger.error("Database unavailable (request_id=%s): %s", getattr(g, "request_id", None), e)
        return fail("db_unavailable", 500)

    @app.errorhandler(DBAPIError)
    def _db_error(e: DBAPIError):
        if e.connection_invalidated:
            app.logger.error("Database connection lost (request_id=%s): %s", getattr(g, "request_id", None), e)
            return fail("db_unavailable", 500)
        app.logger.exception("Database error (request_id=%s)", getattr(g, "request_id", None))
        return fail("internal_error", 500)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        status = e.code or 500
        if status == 403:
            missing = getattr(g, "missing_permission", None)
            if missing:
                app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return fail(_status_to_code(status), status)

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return fail("internal_error", 500)
