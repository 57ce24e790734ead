"""
Flask application factory.

Creates and configures the Flask app, registers error handlers and blueprints.
"""
import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge


def create_app():
    """Create and configure the Flask application."""
    from adloop import config
    from adloop.errors import AppError
    from adloop.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)
    logger = logging.getLogger('adloop.app')

    app.secret_key = config.SECRET_KEY
    app.config['MAX_CONTENT_LENGTH'] = config.MAX_UPLOAD_BYTES

    # ── Error envelope ──────────────────────────────────────────────────
    def _error(status, code, message, details=None):
        error = {'code': code, 'message': message}
        if details is not None:
            error['details'] = details
        return jsonify({'success': False, 'error': error}), status

    @app.errorhandler(AppError)
    def handle_app_error(e):
        if e.status_code >= 500:
            logger.warning("%s: %s", e.code, e.message)
        return _error(e.status_code, e.code, e.message, e.details)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        return _error(413, 'FILE_TOO_LARGE',
                      f"Upload exceeds the {config.MAX_UPLOAD_BYTES} byte limit")

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return _error(e.code, e.name.upper().replace(' ', '_'), e.description)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.error("Unhandled error: %s", e, exc_info=True)
        message = 'Internal server error' if config.IS_PRODUCTION else str(e)
        return _error(500, 'INTERNAL_ERROR', message)

    # Register blueprints
    from adloop.routes.health import bp as health_bp
    from adloop.routes.performance import bp as performance_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(performance_bp)

    # Initialize circuit breakers for external API services
    from adloop.extensions import redis_client
    from adloop.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic; no create_all() call.
    import importlib
    importlib.import_module('adloop.models.campaign')
    importlib.import_module('adloop.models.variant')
    importlib.import_module('adloop.models.import_batch')
    importlib.import_module('adloop.models.performance_row')

    return app
