"""Global per-game leaderboards and all-time winners."""
import logging
from datetime import date, timedelta

from flask import Blueprint, current_app, request, jsonify
from sqlalchemy.exc import SQLAlchemyError
from arcade.app import db
from arcade.auth_utils import optional_current_user
from arcade.errors import ArcadeError, InvalidInput, Unauthenticated
from arcade.routes.helpers import _coerce_bool, _emit_leaderboard_update, _json_body
from arcade.services import leaderboard as leaderboard_service
from arcade.services.submit_throttle import record_submission
from arcade.time_utils import previous_week_start, utcnow_naive

leaderboard_bp = Blueprint('leaderboard', __name__)
winner_bp = Blueprint('winner', __name__)
logger = logging.getLogger(__name__)

_UNAVAILABLE = 'Leaderboard unavailable right now.'


def _fallback_enabled():
    return _coerce_bool(current_app.config.get('LEADERBOARD_FALLBACK'))


def _fallback_store():
    return current_app.extensions['fallback_leaderboard']


def _max_limit():
    return int(current_app.config.get('LEADERBOARD_MAX_LIMIT') or leaderboard_service.MAX_LIMIT)


def _parse_day(raw_value):
    try:
        return date.fromisoformat(str(raw_value).strip())
    except ValueError:
        raise InvalidInput('date must be YYYY-MM-DD')


@leaderboard_bp.route('/get', methods=['GET'])
def get_leaderboard():
    game_slug = str(request.args.get('gameSlug') or '').strip()
    limit = leaderboard_service.clamp_limit(request.args.get('limit'), maximum=_max_limit())
    if not game_slug:
        return jsonify({'ok': True, 'items': [], 'gameSlug': '', 'limit': limit})

    period = leaderboard_service.normalize_period(request.args.get('period'))
    if _fallback_enabled():
        items = [entry.to_dict() for entry in _fallback_store().get_top(game_slug, limit)]
        return jsonify({
            'ok': True, 'items': items, 'gameSlug': game_slug, 'limit': limit,
            'period': period, 'note': 'fallback store',
        })

    try:
        items = leaderboard_service.get_top(game_slug, limit, period)
    except InvalidInput:
        raise
    except (SQLAlchemyError, ArcadeError) as exc:
        db.session.rollback()
        logger.error('Leaderboard read failed for %s: %s', game_slug, exc)
        return jsonify({'ok': False, 'items': [], 'error': _UNAVAILABLE})
    return jsonify({'ok': True, 'items': items, 'gameSlug': game_slug, 'limit': limit, 'period': period})


@leaderboard_bp.route('/submit', methods=['POST'])
def submit_score():
    data = _json_body() or {}

    if _fallback_enabled():
        game_slug = leaderboard_service.validate_game_slug(data.get('gameSlug'))
        score = leaderboard_service.validate_leaderboard_score(data.get('score'))
        player = leaderboard_service.validate_player_name(data.get('player'))
        _fallback_store().submit(game_slug, player, score)
        _emit_leaderboard_update(game_slug, 'score')
        return jsonify({'ok': True})

    user = optional_current_user()
    if user is None:
        raise Unauthenticated()
    record_submission(
        user.id,
        current_app.config.get('LEADERBOARD_SUBMIT_LIMIT_PER_WINDOW'),
        current_app.config.get('LEADERBOARD_SUBMIT_WINDOW_SECONDS'),
    )
    row = leaderboard_service.submit_score(
        data.get('gameSlug'), data.get('score'), user, player=data.get('player'),
    )
    _emit_leaderboard_update(row.game_slug, 'score')
    return jsonify({'ok': True, 'id': row.id})


@leaderboard_bp.route('/history', methods=['GET'])
def get_history():
    game_slug = str(request.args.get('gameSlug') or '').strip()
    if not game_slug:
        return jsonify({'error': 'Missing gameSlug'}), 400
    period = leaderboard_service.normalize_period(request.args.get('period') or 'daily')
    today = utcnow_naive().date()
    if request.args.get('date'):
        day = _parse_day(request.args.get('date'))
    elif period == leaderboard_service.PERIOD_WEEKLY:
        day = previous_week_start(utcnow_naive()).date()
    else:
        day = today - timedelta(days=1)

    limit = leaderboard_service.clamp_limit(request.args.get('limit'), maximum=_max_limit())
    try:
        items = leaderboard_service.get_period_snapshot(game_slug, period, day, limit)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error('Leaderboard history read failed for %s: %s', game_slug, exc)
        return jsonify({'ok': False, 'items': [], 'error': _UNAVAILABLE})
    return jsonify({
        'ok': True, 'items': items, 'gameSlug': game_slug,
        'period': period, 'date': day.isoformat(),
    })


@winner_bp.route('/get', methods=['GET'])
def get_game_winners():
    game_slug = str(request.args.get('gameSlug') or '').strip()
    if not game_slug:
        return jsonify({'error': 'Missing gameSlug'}), 400
    limit = leaderboard_service.clamp_limit(request.args.get('limit'), default=50, maximum=200)

    items = [
        {
            'userId': item['userId'],
            'player': item['player'],
            'bestScore': item['score'],
            'achievedAt': item['achievedAt'],
        }
        for item in leaderboard_service.get_game_winners(game_slug, limit)
    ]
    return jsonify({'ok': True, 'items': items, 'gameSlug': game_slug, 'limit': limit})
