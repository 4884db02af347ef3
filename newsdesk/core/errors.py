"""
Error taxonomy and the JSON error handlers.

Every error that reaches a client has the shape {"error": true, "message": ...}.
Raw driver messages are only attached (as "details") in development mode.
"""

import sqlite3
import logging
from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class NewsdeskError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details


class ValidationError(NewsdeskError):
    status_code = 400
    default_message = 'Invalid request data'


class Unauthorized(NewsdeskError):
    status_code = 401
    default_message = 'Access denied. Authentication required.'


class Forbidden(NewsdeskError):
    status_code = 403
    default_message = 'Access denied. Insufficient permissions.'


class NotFound(NewsdeskError):
    status_code = 404
    default_message = 'Resource not found'


class Conflict(NewsdeskError):
    status_code = 409
    default_message = 'Duplicate entry found'


class RateLimited(NewsdeskError):
    status_code = 429
    default_message = 'Too many requests, please try again later.'


class DatabaseError(NewsdeskError):
    status_code = 500
    default_message = 'Database operation failed'


class ExternalServiceError(NewsdeskError):
    status_code = 502
    default_message = 'External service failed'


def _is_development():
    try:
        return current_app.config.get('ENVIRONMENT') == 'development'
    except RuntimeError:
        return False


def error_response(message, status_code, details=None):
    body = {'error': True, 'message': message}
    if details is not None and _is_development():
        body['details'] = details
    return jsonify(body), status_code


def register_error_handlers(app):
    """Convert every known failure into the uniform JSON error shape"""

    @app.errorhandler(NewsdeskError)
    def handle_newsdesk_error(error):
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__}: {error.message}")
        return error_response(error.message, error.status_code, error.details)

    @app.errorhandler(sqlite3.IntegrityError)
    def handle_integrity_error(error):
        text = str(error)
        logger.error(f"Database integrity error: {text}")
        if 'FOREIGN KEY' in text:
            return error_response('Referenced record not found', 400, text)
        if 'UNIQUE' in text:
            return error_response('Duplicate entry found', 409, text)
        return error_response('Invalid data for database operation', 400, text)

    @app.errorhandler(sqlite3.OperationalError)
    def handle_operational_error(error):
        text = str(error)
        logger.error(f"Database operational error: {text}")
        if 'locked' in text or 'unable to open' in text:
            return error_response('Database service unavailable', 503, text)
        return error_response('Database operation failed', 500, text)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if error.code == 404:
            return error_response('Route not found', 404)
        return error_response(error.description or error.name, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception(f"Unhandled error: {error}")
        return error_response('Internal server error', 500, str(error))
