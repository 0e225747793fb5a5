from functools import wraps
from flask import request, jsonify, current_app
import jwt
from arcade.app import db
from arcade.models import User


def generate_token(user_id):
    """Generate a JWT token for a user."""
    from datetime import datetime, timedelta, timezone
    payload = {
        'user_id': user_id,
        'exp': datetime.now(timezone.utc) + timedelta(
            hours=current_app.config.get('JWT_EXPIRATION_HOURS', 24)
        ),
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm='HS256')


def _normalize_bearer_token(raw_token):
    token = str(raw_token or '').strip()
    if token.startswith('Bearer '):
        token = token.split(' ', 1)[1].strip()
    return token


def _decode_user_from_token(token):
    normalized = _normalize_bearer_token(token)
    if not normalized:
        return None, 'Login required'
    try:
        payload = jwt.decode(
            normalized, current_app.config['SECRET_KEY'], algorithms=['HS256']
        )
        user = db.session.get(User, payload['user_id'])
        if not user:
            return None, 'User not found'
        return user, None
    except jwt.ExpiredSignatureError:
        return None, 'Token expired'
    except (jwt.InvalidTokenError, KeyError):
        return None, 'Invalid token'


def optional_current_user():
    """Resolve the caller from the Authorization header without requiring it."""
    user, _ = _decode_user_from_token(request.headers.get('Authorization', ''))
    return user


def login_required(f):
    """Decorator to require authentication on a route."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = _decode_user_from_token(request.headers.get('Authorization', ''))
        if error:
            return jsonify({'error': error}), 401
        request.current_user = user
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator to require an authenticated admin user on a route."""
    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not request.current_user.is_admin:
            return jsonify({'error': 'Admin only'}), 403
        return f(*args, **kwargs)
    return decorated
