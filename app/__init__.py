# app/__init__.py

import logging
import os
import time
from flask import Flask, request
from flask_cors import CORS
from sqlalchemy import text
from werkzeug.exceptions import HTTPException
from .config import Config
from db.extensions import db, migrate, mail, init_redis, check_redis_health
from controllers.order_controller import order_bp
from controllers.delivery_controller import delivery_bp
from controllers.courier_controller import courier_bp
from jobs.commands import dispatch_cli, payments_cli
from services.errors import InvalidTransitionError, MissingCoordinatesError
from services.events import EventBus
from services.listeners import register_listeners


def create_app(config_class=Config):
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_class)

    CORS(app,
         origins=app.config['CORS_ORIGINS'],
         methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization'],
         supports_credentials=True,
         expose_headers=['Content-Type', 'Authorization'],
         max_age=3600
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    init_redis(app)

    # Tables must be known before create_all / migrations
    from models import (  # noqa: F401
        user, pharmacy, courier, order, delivery, commission,
        wallet, walletTransaction, payment, setting,
    )

    # Register blueprints
    app.register_blueprint(order_bp, url_prefix='/api')
    app.register_blueprint(delivery_bp, url_prefix='/api')
    app.register_blueprint(courier_bp, url_prefix='/api')

    # Scheduled jobs run through the CLI
    app.cli.add_command(dispatch_cli)
    app.cli.add_command(payments_cli)

    # One event bus per app
    bus = EventBus()
    app.extensions['event_bus'] = bus
    with app.app_context():
        register_listeners(bus)

    # Configure logging
    debug_mode = os.getenv("DEBUG_MODE", "false").lower() == "true"
    log_level = logging.DEBUG if debug_mode else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app.logger.setLevel(log_level)

    # Request timing middleware for performance monitoring
    @app.before_request
    def before_request():
        request.start_time = time.time()
        if debug_mode:
            app.logger.debug(f"🚀 Started {request.method} {request.path}")

    @app.after_request
    def after_request(response):
        if hasattr(request, 'start_time'):
            elapsed = (time.time() - request.start_time) * 1000

            # Log slow requests (over 500ms)
            if elapsed > 500:
                app.logger.warning(
                    f"⚠️  SLOW REQUEST: {request.method} {request.path} "
                    f"took {elapsed:.2f}ms - Status: {response.status_code}"
                )
            elif debug_mode:
                app.logger.info(
                    f"✅ {request.method} {request.path} "
                    f"took {elapsed:.2f}ms - Status: {response.status_code}"
                )

        return response

    @app.errorhandler(InvalidTransitionError)
    def handle_invalid_transition(e):
        app.logger.warning(f"Rejected transition: {e}")
        return {'success': False, 'error': str(e), 'status': e.current}, 409

    @app.errorhandler(MissingCoordinatesError)
    def handle_missing_coordinates(e):
        return {'success': False, 'error': str(e)}, 422

    # Global error handler
    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        app.logger.error(f"❌ Unhandled exception: {str(e)}", exc_info=True)
        return {
            'success': False,
            'message': 'Internal server error. Please try again.'
        }, 500

    # Health check endpoint
    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint for monitoring"""
        try:
            db.session.execute(text('SELECT 1'))
        except Exception as e:
            app.logger.error(f"❌ Health check failed: {str(e)}")
            return {
                'status': 'error',
                'message': str(e),
                'timestamp': time.time()
            }, 500

        # Redis only caches settings; the service still works without it
        redis_ok = check_redis_health(app.extensions['redis'])
        return {
            'status': 'ok' if redis_ok else 'degraded',
            'database': 'connected',
            'redis': 'connected' if redis_ok else 'unavailable',
            'timestamp': time.time()
        }, 200

    return app
