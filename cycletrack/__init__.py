"""
Subscription Cycle Tracker
Flask application factory
"""
import logging
import os
import re

from flask import Flask
from flask_cors import CORS

from .config import get_config, validate_config
from .extensions import db, migrate
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Embedded admin origins
    cors_origins = [
        'https://admin.shopify.com',
        re.compile(r'https://.*\.myshopify\.com'),
    ]
    if config_name != 'production':
        cors_origins.append('http://localhost:5173')
    CORS(
        app,
        origins=cors_origins,
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Shop-Domain']
    )

    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'cycletrack'}

    logger.info(f'Application created ({config_name}), webhook strategy: '
                f"{app.config.get('WEBHOOK_CYCLE_STRATEGY')}")

    return app


def register_blueprints(app: Flask) -> None:
    """Register API and webhook blueprints."""
    from .api.cycle_sync import cycle_sync_bp
    from .webhooks.order_lifecycle import order_lifecycle_bp

    app.register_blueprint(cycle_sync_bp, url_prefix='/api/cycles')
    app.register_blueprint(order_lifecycle_bp, url_prefix='/webhook')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(400)
    def bad_request(error):
        return {'error': 'Bad request', 'message': str(error)}, 400

    @app.errorhandler(404)
    def not_found(error):
        return {'error': 'Not found', 'message': str(error)}, 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return {'message': 'Method not allowed'}, 405

    @app.errorhandler(500)
    def internal_error(error):
        return {'error': 'Internal server error', 'message': str(error)}, 500
