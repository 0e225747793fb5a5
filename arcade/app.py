import logging
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from arcade.config import config

db = SQLAlchemy()
socketio = SocketIO()

logger = logging.getLogger(__name__)


def _parse_allowed_origins(raw_origins):
    if not raw_origins:
        return '*'

    if isinstance(raw_origins, (list, tuple, set)):
        cleaned = [origin for origin in raw_origins if origin]
        return cleaned or '*'

    raw_text = str(raw_origins).strip()
    if not raw_text or raw_text == '*':
        return '*'

    origins = [origin.strip() for origin in raw_text.split(',') if origin.strip()]
    return origins or '*'


def _check_production_settings(app, allowed_origins):
    secret_key = str(app.config.get('SECRET_KEY') or '').strip()
    if not secret_key or secret_key == 'dev-secret-key-change-in-prod':
        raise RuntimeError('SECRET_KEY must be set to a non-default value in production')
    if allowed_origins == '*':
        raise RuntimeError('CORS_ALLOWED_ORIGINS must be explicitly set in production')
    if not str(app.config.get('CRON_SECRET') or '').strip():
        raise RuntimeError('CRON_SECRET must be set in production')
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        raise RuntimeError('DATABASE_URL must be set in production')


def _register_error_handlers(app):
    from arcade.errors import ArcadeError

    @app.errorhandler(ArcadeError)
    def _handle_arcade_error(exc):
        if exc.status_code >= 500:
            logger.warning('%s: %s', type(exc).__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _handle_database_error(exc):
        db.session.rollback()
        logger.exception('Unhandled database error')
        return jsonify({'error': 'Backend request failed'}), 502


def create_app(config_name='development'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    from arcade.services.logging_setup import configure_logging
    configure_logging(structured=bool(app.config.get('LOG_JSON')))

    allowed_origins = _parse_allowed_origins(app.config.get('CORS_ALLOWED_ORIGINS', '*'))
    if str(config_name).strip().lower() == 'production':
        _check_production_settings(app, allowed_origins)

    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )
    CORS(app, resources={r'/api/*': {'origins': allowed_origins}})
    _register_error_handlers(app)

    from arcade.services.fallback_store import FallbackLeaderboardStore
    app.extensions['fallback_leaderboard'] = FallbackLeaderboardStore(
        path=app.config.get('LEADERBOARD_FALLBACK_PATH') or None,
    )

    from arcade.routes.auth import auth_bp
    from arcade.routes.admin import admin_bp
    from arcade.routes.content import content_bp
    from arcade.routes.cron import cron_bp
    from arcade.routes.leaderboard import leaderboard_bp, winner_bp
    from arcade.routes.subscriptions import subscriptions_bp
    from arcade.routes.tournaments import tournaments_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(content_bp, url_prefix='/api')
    app.register_blueprint(cron_bp, url_prefix='/api/cron')
    app.register_blueprint(leaderboard_bp, url_prefix='/api/leaderboard')
    app.register_blueprint(winner_bp, url_prefix='/api/winner')
    app.register_blueprint(subscriptions_bp, url_prefix='/api/subscriptions')
    app.register_blueprint(tournaments_bp, url_prefix='/api/tournaments')

    with app.app_context():
        from arcade import models  # noqa: F401
        db.create_all()
        from arcade.services.subscriptions import seed_default_plans
        seed_default_plans()

    return app
