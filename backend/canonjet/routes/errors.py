# Overview: JSON error responses for the domain error kinds.

"""
Error kinds -> HTTP status:
- ValidationError (EmptyOrderError, EmptyDeliveryError, ...)  400
- NotFoundError                                               404
- ConflictError (InvalidTransition, InsufficientStockError)   409
- StorageError and anything unexpected                        500 (logged)

Bodies: {"error": message, "code": error class name, "details": {...}?}
"""

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..services.concurrency import StorageError
from ..validation import ConflictError, NotFoundError, ValidationError


def error_body(exc: Exception) -> dict:
    body = {"error": str(exc), "code": type(exc).__name__}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    return body


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify(error_body(exc)), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc):
        return jsonify(error_body(exc)), 404

    @app.errorhandler(ConflictError)
    def handle_conflict(exc):
        return jsonify(error_body(exc)), 409

    @app.errorhandler(StorageError)
    def handle_storage_error(exc):
        current_app.logger.exception("Storage failure on %s %s", request.method, request.path)
        return jsonify({"error": str(exc), "code": "StorageError"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        return jsonify({"error": exc.description, "code": exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500
