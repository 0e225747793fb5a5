import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _normalize_database_url(raw_url):
    if not raw_url:
        return raw_url
    if raw_url.startswith('postgres://'):
        return raw_url.replace('postgres://', 'postgresql://', 1)
    return raw_url


class BaseConfig:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-prod')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_EXPIRATION_HOURS = _env_int('JWT_EXPIRATION_HOURS', 24)
    ADMIN_EMAILS = os.environ.get('ADMIN_EMAILS', '')
    CRON_SECRET = os.environ.get('CRON_SECRET', '')
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')
    LOG_JSON = _env_bool('LOG_JSON', False)
    LEADERBOARD_FALLBACK = _env_bool('LEADERBOARD_FALLBACK', False)
    LEADERBOARD_FALLBACK_PATH = os.environ.get('LEADERBOARD_FALLBACK_PATH', '')
    LEADERBOARD_MAX_LIMIT = _env_int('LEADERBOARD_MAX_LIMIT', 200)
    LEADERBOARD_SUBMIT_LIMIT_PER_WINDOW = _env_int('LEADERBOARD_SUBMIT_LIMIT_PER_WINDOW', 30)
    LEADERBOARD_SUBMIT_WINDOW_SECONDS = _env_int('LEADERBOARD_SUBMIT_WINDOW_SECONDS', 60)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(
        os.environ.get(
            'DATABASE_URL',
            'sqlite:///' + os.path.join(basedir, '..', 'arcade_dev.db')
        )
    )


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    CRON_SECRET = 'test-cron-secret'
    ADMIN_EMAILS = 'admin@arcade.test'
    LEADERBOARD_FALLBACK = False
    LEADERBOARD_FALLBACK_PATH = ''


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get('DATABASE_URL'))
    LOG_JSON = _env_bool('LOG_JSON', True)


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
