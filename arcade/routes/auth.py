import logging
import re

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash
from arcade.app import db
from arcade.models import User
from arcade.auth_utils import generate_token, login_required, optional_current_user
from arcade.routes.helpers import _json_body

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

_PHONE_RE = re.compile(r'^\+\d{3,20}$')


def _configured_admin_emails():
    raw_value = current_app.config.get('ADMIN_EMAILS', '')
    return {
        item.strip().lower()
        for item in str(raw_value).split(',')
        if item and item.strip()
    }


def _is_configured_admin_email(email):
    normalized = (email or '').strip().lower()
    return normalized in _configured_admin_emails()


def _maybe_grant_admin_from_config(user):
    if not user or user.is_admin:
        return False
    if not _is_configured_admin_email(user.email):
        return False
    user.role = 'admin'
    return True


def _password_complexity_error(raw_password):
    password = str(raw_password or '')
    if len(password) < 8:
        return 'Password must be at least 8 characters long'
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return 'Password must include at least one letter and one number'
    return None


def _normalize_phone(raw_phone):
    phone = re.sub(r'[\s()-]+', '', str(raw_phone or '').strip())
    return phone if _PHONE_RE.match(phone) else None


@auth_bp.route('/register', methods=['POST'])
def register():
    data = _json_body()
    if not data or not data.get('username') or not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Username, email, and password are required'}), 400

    username = str(data['username']).strip()
    email = str(data['email']).strip().lower()
    password_error = _password_complexity_error(data.get('password'))
    if password_error:
        return jsonify({'error': password_error}), 400

    phone = None
    if data.get('phone'):
        phone = _normalize_phone(data.get('phone'))
        if not phone:
            return jsonify({'error': 'Phone must be in international format, e.g. +8801XXXXXXXXX'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'Username already taken'}), 409
    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered'}), 409
    if phone and User.query.filter_by(phone=phone).first():
        return jsonify({'error': 'Phone already registered'}), 409

    display_name = str(data.get('display_name') or data.get('name') or username).strip()[:80]
    user = User(
        username=username,
        email=email,
        password_hash=generate_password_hash(data['password']),
        display_name=display_name or 'Player',
        role='admin' if _is_configured_admin_email(email) else 'user',
        phone=phone,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Account already exists'}), 409

    logger.info('Registered user %s (role=%s)', user.id, user.role)
    token = generate_token(user.id)
    return jsonify({'token': token, 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = _json_body()
    if not data or not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Email and password are required'}), 400

    email = str(data['email']).strip().lower()
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, data['password']):
        return jsonify({'error': 'Invalid email or password'}), 401

    if _maybe_grant_admin_from_config(user):
        db.session.commit()

    token = generate_token(user.id)
    return jsonify({'token': token, 'user': user.to_dict()})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': request.current_user.to_dict()})


@auth_bp.route('/role', methods=['GET'])
def role():
    user = optional_current_user()
    if not user:
        return jsonify({'role': None, 'found': False})
    return jsonify({'role': 'admin' if user.is_admin else 'user', 'found': True})


@auth_bp.route('/phone-available', methods=['POST'])
def phone_available():
    data = _json_body() or {}
    phone = _normalize_phone(data.get('phone'))
    if not phone:
        return jsonify({'available': False})
    taken = User.query.filter_by(phone=phone).first() is not None
    return jsonify({'available': not taken})
