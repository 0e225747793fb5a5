"""Time-driven procedures, guarded by the shared ``CRON_SECRET``."""
import hmac
import logging
from datetime import date, datetime, time, timedelta
from functools import wraps

from flask import Blueprint, current_app, jsonify, request
from arcade.errors import InvalidInput
from arcade.services.leaderboard import compute_daily_winners, compute_weekly_winners
from arcade.services.tournament_finalizer import tick_tournaments
from arcade.time_utils import previous_week_start, saturday_week_start, utcnow_naive

cron_bp = Blueprint('cron', __name__)
logger = logging.getLogger(__name__)


def cron_secret_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        expected = str(current_app.config.get('CRON_SECRET') or '')
        provided = str(request.args.get('secret') or '')
        if not expected or not provided or not hmac.compare_digest(provided, expected):
            return jsonify({'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated


def _requested_day(param):
    raw = str(request.args.get(param) or '').strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidInput(f'{param} must be YYYY-MM-DD')


@cron_bp.route('/daily', methods=['POST'])
@cron_secret_required
def daily():
    run_date = _requested_day('date') or (utcnow_naive().date() - timedelta(days=1))
    rows = compute_daily_winners(run_date)
    logger.info('cron daily: run_date=%s rows=%d', run_date.isoformat(), rows)
    return jsonify({'ok': True, 'run_date': run_date.isoformat(), 'rows': rows})


@cron_bp.route('/weekly', methods=['POST'])
@cron_secret_required
def weekly():
    requested = _requested_day('weekStart')
    if requested is not None:
        week_start = saturday_week_start(datetime.combine(requested, time.min)).date()
    else:
        week_start = previous_week_start(utcnow_naive()).date()
    rows = compute_weekly_winners(week_start)
    logger.info('cron weekly: week_start=%s rows=%d', week_start.isoformat(), rows)
    return jsonify({'ok': True, 'week_start': week_start.isoformat(), 'rows': rows})


@cron_bp.route('/tournaments', methods=['POST'])
@cron_secret_required
def tournaments():
    result = tick_tournaments()
    return jsonify({'ok': True, **result})
