# storefront/errors.py
from __future__ import annotations

import re

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .extensions import db
from .utils.api import err


class ApiError(Exception):
    status_code = 400

    def __init__(self, message: str, data: dict | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.data = data
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    status_code = 400


class VariantError(ValidationError):
    """A variant of a composite product write was rejected."""

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(f"Variant error: {message}", data)


class AuthError(ApiError):
    status_code = 401


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class StoreError(ApiError):
    status_code = 500


class CouponRejected(ApiError):
    """Coupon cannot be applied; ``reason`` is a stable machine-readable tag."""

    NOT_FOUND = "not_found"
    NOT_YET_STARTED = "not_yet_started"
    EXPIRED = "expired"
    BELOW_MINIMUM = "below_minimum"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    PER_USER_LIMIT_REACHED = "per_user_limit_reached"
    NOT_APPLICABLE = "not_applicable"

    def __init__(self, reason: str, message: str):
        status = 404 if reason == self.NOT_FOUND else 400
        super().__init__(message, {"reason": reason}, status_code=status)
        self.reason = reason


def parse_unique_violation(err_exc: IntegrityError):
    m = re.search(r"UNIQUE constraint failed:\s*([^.]+)\.([^\s,]+)", str(err_exc.orig))
    if m:
        return {"table": m.group(1), "column": m.group(2)}
    m = re.search(r"Key \(([^)]+)\)=\(([^)]+)\) already exists", str(err_exc.orig))
    if m:
        return {"column": m.group(1), "value": m.group(2)}
    m = re.search(r"Duplicate entry '([^']*)' for key '([^']+)'", str(err_exc.orig))
    if m:
        return {"column": m.group(2).split(".")[-1], "value": m.group(1)}
    return None


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        return err(e.message, status_code=e.status_code, data=e.data)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):
        db.session.rollback()
        info = parse_unique_violation(e)
        current_app.logger.warning("integrity error: %s", e.orig)
        if info:
            return err(f"Duplicate {info['column']}", status_code=409, data={"conflicts": info})
        return err("Duplicate or invalid data", status_code=409)

    @app.errorhandler(SQLAlchemyError)
    def _store_error(e: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("store failure")
        data = {"detail": str(e)} if current_app.config.get("EXPOSE_ERROR_DETAILS") else None
        return err("Internal server error", status_code=500, data=data)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return err(e.description or e.name, status_code=e.code or 500)
