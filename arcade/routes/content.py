"""Read-only studio content, the arcade catalog, and the contact form."""
import logging
import re

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from arcade.app import db
from arcade.auth_utils import optional_current_user
from arcade.errors import UpstreamFailure
from arcade.models import ContactMessage, Service, Work
from arcade.routes.helpers import _coerce_bool, _json_body
from arcade.services.game_catalog import get_game, list_games

content_bp = Blueprint('content', __name__)
logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
WORK_CATEGORIES = ('games', 'ar-vr', 'vfx', 'animation')


@content_bp.route('/games', methods=['GET'])
def games():
    return jsonify({'games': list_games(
        genre=request.args.get('genre'),
        leaderboard_only=_coerce_bool(request.args.get('leaderboard')),
    )})


@content_bp.route('/games/<slug>', methods=['GET'])
def game_detail(slug):
    game = get_game(slug)
    if not game:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify({'game': game})


@content_bp.route('/content/works', methods=['GET'])
def works():
    query = Work.query.filter_by(is_active=True)
    category = str(request.args.get('category') or '').strip().lower()
    if category and category != 'all':
        if category not in WORK_CATEGORIES:
            return jsonify({'error': 'Invalid category'}), 400
        query = query.filter(Work.category == category)
    rows = query.order_by(Work.sort_order.asc(), Work.year.desc(), Work.id.asc()).all()
    return jsonify({'works': [w.to_dict() for w in rows]})


@content_bp.route('/content/works/<slug>', methods=['GET'])
def work_detail(slug):
    work = Work.query.filter_by(slug=slug, is_active=True).first()
    if not work:
        return jsonify({'error': 'Work not found'}), 404
    return jsonify({'work': work.to_dict()})


@content_bp.route('/content/services', methods=['GET'])
def services():
    rows = Service.query.filter_by(is_active=True).order_by(
        Service.sort_order.asc(), Service.id.asc(),
    ).all()
    return jsonify({'services': [s.to_dict() for s in rows]})


@content_bp.route('/contact', methods=['POST'])
def contact():
    data = _json_body()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400

    # Honeypot: bots fill every field.
    if str(data.get('website') or '').strip():
        return jsonify({'error': 'Spam detected'}), 400

    name = str(data.get('name') or '').strip()
    email = str(data.get('email') or '').strip()
    message = str(data.get('message') or '').strip()
    if not name:
        return jsonify({'error': 'Name is required'}), 400
    if len(name) > 80:
        return jsonify({'error': 'Name must be at most 80 characters'}), 400
    if not email or len(email) > 120 or not _EMAIL_RE.match(email):
        return jsonify({'error': 'Valid email is required'}), 400
    if len(message) < 10:
        return jsonify({'error': 'Message must be at least 10 characters'}), 400

    user = optional_current_user()
    row = ContactMessage(
        user_id=user.id if user else None,
        name=name,
        email=email,
        project_type=str(data.get('projectType') or '').strip()[:40] or None,
        budget=str(data.get('budget') or '').strip()[:40] or None,
        message=message[:5000],
        ip=str(request.remote_addr or '')[:80] or None,
        user_agent=str(request.headers.get('User-Agent') or '')[:300] or None,
    )
    db.session.add(row)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc

    logger.info('Stored contact message %s', row.id)
    return jsonify({'ok': True, 'id': row.id}), 201
