"""Centralized HTTP error handling for the JSON API."""
from flask import current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from core.db import db
from domain.wiki.exceptions import WikiError


def _json_error(status: int, code, message: str, **details):
    payload = {"status": "error", "code": code, "message": message}
    payload.update({key: value for key, value in details.items() if key not in payload})
    response = jsonify(payload)
    response.status_code = status
    return response


def _log(status: int, event: str, message: str, *, exc_info=None, **extra):
    logger = current_app.logger.error if status >= 500 else current_app.logger.warning
    log_kwargs = {"exc_info": exc_info} if status >= 500 and exc_info is not None else {}
    logger(
        "%s %s %s (%s)",
        status,
        request.path,
        message,
        request.remote_addr,
        extra={"event": event, "path": request.path, **extra},
        **log_kwargs,
    )


def register_error_handlers(app):
    """Register global error handlers.

    Wiki domain errors carry their own HTTP status and machine readable code.
    """

    @app.errorhandler(WikiError)
    def handle_wiki_error(error: WikiError):
        _log(error.http_status, f"api.wiki.{error.code}", error.message)
        return _json_error(error.http_status, error.code, error.message, **error.details)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        code = error.code or 500
        # flask-smorest の abort() は data に message / messages を載せる
        data = getattr(error, "data", None)
        if not isinstance(data, dict):
            data = {}
        message = data.get("message") or error.description
        if code >= 500:
            message = "Internal Server Error"
        _log(code, "api.http_4xx" if code < 500 else "api.http_5xx", message, exc_info=error)

        details = {}
        if "messages" in data:
            details["errors"] = data["messages"]
        return _json_error(code, code, message, **details)

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error: SQLAlchemyError):
        db.session.rollback()
        _log(500, "api.storage_error", "storage failure", exc_info=error)
        return _json_error(500, "storage_error", "Internal Server Error")
