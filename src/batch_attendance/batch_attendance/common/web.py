"""Shared Flask helpers for the JSON API.

The principal is read from the signed session cookie set by the
authentication service (``user_id`` and ``role``), the same keys the login
flow writes.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Iterable

from flask import Flask, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AlreadyLockedError,
    AuthenticationError,
    AuthorizationError,
    DomainError,
    DuplicateError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from ..core.principal import Principal
from .validators import parse_optional_date_field, parse_optional_int

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (DuplicateError, 409),
    (AlreadyLockedError, 409),
    (LockedError, 423),
)


def current_principal() -> Principal:
    user_id = session.get("user_id")
    role = session.get("role")
    if user_id is None or not role:
        raise AuthenticationError("Not authenticated")
    try:
        return Principal(user_id=int(user_id), role=Role(role))
    except ValueError:
        raise AuthenticationError("Not authenticated")


def roles_required(roles: Iterable[Role]):
    """Route gate: authenticated principal with one of ``roles``.

    The principal is stored on ``flask.g.principal`` for the view.
    """

    allowed = frozenset(roles)

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            principal = current_principal()
            if principal.role not in allowed:
                raise AuthorizationError(f"Role {principal.role.value} is not authorized to access this route")
            g.principal = principal
            return view(*args, **kwargs)

        return wrapper

    return decorator


def ok(data: Any = None, *, status: int = 200, **extra):
    body = {"success": True}
    body.update(extra)
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def fail(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def query_int(name: str):
    return parse_optional_int(request.args.get(name), name)


def query_date(name: str):
    return parse_optional_date_field(request.args.get(name), name)


def status_for(error: DomainError) -> int:
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            return status
    return 500


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        status = status_for(e)
        if status >= 500:
            logger.error("Unhandled domain error on %s %s: %s", request.method, request.path, e)
            return fail("Server error", 500)
        logger.info("%s %s -> %s %s", request.method, request.path, status, e)
        return fail(str(e), status)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return fail(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unexpected error on %s %s", request.method, request.path)
        return fail("Server error", 500)
