# transformo/error_handlers.py
import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from transformo.errors import TransformoError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register JSON error handlers for the application"""

    @app.errorhandler(400)
    def bad_request(e):
        logger.warning(f"Bad request: {str(e)} - Path: {request.path}")
        return jsonify({
            "error": "Bad request",
            "message": "The request could not be understood or was missing required parameters.",
            "path": request.path
        }), 400

    @app.errorhandler(404)
    def not_found(e):
        logger.info(f"Not found: {request.path}")
        return jsonify({
            "error": "Not found",
            "message": "The requested resource was not found on the server.",
            "path": request.path
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        logger.warning(f"Method not allowed: {request.method} {request.path}")
        return jsonify({
            "error": "Method not allowed",
            "message": f"The {request.method} method is not supported for this endpoint.",
            "path": request.path
        }), 405

    @app.errorhandler(TransformoError)
    def handle_transformo_error(error):
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            f"{error.__class__.__name__}: {error.message} - Path: {request.path}",
            extra={"status_code": error.status_code},
        )
        response = jsonify({
            "error": error.__class__.__name__,
            "message": error.message,
            "path": request.path,
            **(error.payload or {})
        })
        response.status_code = error.status_code
        return response

    @app.errorhandler(Exception)
    def server_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Unhandled error - Path: {request.path}")
        return jsonify({
            "error": "Server error",
            "message": "An internal server error occurred. Please try again later.",
            "path": request.path
        }), 500
