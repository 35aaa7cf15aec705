from flask import jsonify
import logging

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base error raised by the service layer.

    Carries the HTTP status the blueprints answer with, so a service can
    fail deep inside a pipeline and still produce the right response.
    """

    status_code = 500

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        body = {'error': self.message}
        if self.payload:
            body.update(self.payload)
        return body


class ValidationError(ServiceError):
    status_code = 422


class AuthenticationError(ServiceError):
    status_code = 401


class PermissionDeniedError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class GatewayError(ServiceError):
    status_code = 502


class StockReconciliationError(ServiceError):
    status_code = 500


def register_error_handlers(app):

    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        if error.status_code >= 500:
            logger.error(
                "%s: %s", error.__class__.__name__, error.message)
        else:
            logger.info(
                "%s (%s): %s",
                error.__class__.__name__,
                error.status_code,
                error.message,
            )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405
