"""Shared route helpers: request parsing and Socket.IO broadcasts."""
from flask import request
from arcade.app import socketio
from arcade.time_utils import utcnow_naive


def _coerce_bool(raw_value, default=False):
    if raw_value is None:
        return default
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, (int, float)):
        return raw_value == 1
    return str(raw_value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _emit_tournament_update(tournament_slug, reason=''):
    socketio.emit('tournament_update', {
        'tournament_slug': tournament_slug,
        'reason': reason,
        'updated_at': utcnow_naive().isoformat(),
    })


def _emit_leaderboard_update(game_slug, reason=''):
    socketio.emit('leaderboard_update', {
        'game_slug': game_slug,
        'reason': reason,
        'updated_at': utcnow_naive().isoformat(),
    })
