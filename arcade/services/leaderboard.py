"""Global per-game leaderboards.

Submissions are stored raw; "best per user" is resolved at read time for the
requested window, and the cron procedures snapshot finished days and weeks
into the ``*_best`` tables.
"""
import logging
import math
import re
from datetime import date, datetime, timedelta

from sqlalchemy import cast, func, literal
from sqlalchemy.exc import SQLAlchemyError

from arcade.app import db
from arcade.errors import InvalidInput, UpstreamFailure
from arcade.models import LeaderboardDailyBest, LeaderboardScore, LeaderboardWeeklyBest
from arcade.time_utils import isoformat_or_none, utc_day_window, utc_week_window, utcnow_naive

logger = logging.getLogger(__name__)

GAME_SLUG_RE = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
MAX_GAME_SLUG_LENGTH = 64
MAX_PLAYER_NAME_LENGTH = 32
MAX_SCORE = 1_000_000_000
DEFAULT_LIMIT = 10
MAX_LIMIT = 200

PERIOD_DAILY = 'daily'
PERIOD_WEEKLY = 'weekly'
PERIOD_ALL_TIME = 'all-time'
_PERIOD_ALIASES = {
    'daily': PERIOD_DAILY,
    'day': PERIOD_DAILY,
    'weekly': PERIOD_WEEKLY,
    'week': PERIOD_WEEKLY,
    'all-time': PERIOD_ALL_TIME,
    'alltime': PERIOD_ALL_TIME,
    'all': PERIOD_ALL_TIME,
    '': PERIOD_ALL_TIME,
}


def clamp_limit(raw_limit, default=DEFAULT_LIMIT, maximum=MAX_LIMIT):
    try:
        value = float(raw_limit)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    return max(1, min(int(value), maximum))


def normalize_period(raw_period):
    period = _PERIOD_ALIASES.get(str(raw_period or '').strip().lower())
    if period is None:
        raise InvalidInput('period must be daily, weekly, or all-time')
    return period


def validate_game_slug(raw_slug):
    slug = str(raw_slug or '').strip()
    if not slug:
        raise InvalidInput('Missing gameSlug')
    if len(slug) > MAX_GAME_SLUG_LENGTH or not GAME_SLUG_RE.match(slug):
        raise InvalidInput('Invalid gameSlug')
    return slug


def validate_leaderboard_score(raw_score):
    if isinstance(raw_score, bool) or raw_score is None:
        raise InvalidInput('Invalid score')
    try:
        value = float(raw_score)
    except (TypeError, ValueError):
        raise InvalidInput('Invalid score')
    if not math.isfinite(value) or value < 0 or value > MAX_SCORE:
        raise InvalidInput('Invalid score')
    return int(math.floor(value))


def validate_player_name(raw_player, default='Player'):
    if raw_player is None:
        return default
    player = str(raw_player).strip()
    if len(player) > MAX_PLAYER_NAME_LENGTH:
        raise InvalidInput(f'Player name must be at most {MAX_PLAYER_NAME_LENGTH} characters')
    return player or default


def period_window(period, now):
    if period == PERIOD_DAILY:
        return utc_day_window(now)
    if period == PERIOD_WEEKLY:
        return utc_week_window(now)
    return None, None


def _player_key():
    # Rows without an account are keyed by name so they still collapse.
    return func.coalesce(
        cast(LeaderboardScore.user_id, db.String),
        literal('name:') + func.coalesce(LeaderboardScore.player_name, ''),
    )


def best_per_user(game_slug, limit, start=None, end=None, accounts_only=False):
    """Each player's best row in the window, best first, at most ``limit`` rows."""
    position = func.row_number().over(
        partition_by=_player_key(),
        order_by=(
            LeaderboardScore.score.desc(),
            LeaderboardScore.created_at.asc(),
            LeaderboardScore.id.asc(),
        ),
    )
    candidates = db.session.query(
        LeaderboardScore.id.label('id'),
        position.label('position'),
    ).filter(LeaderboardScore.game_slug == game_slug)
    if start is not None:
        candidates = candidates.filter(LeaderboardScore.created_at >= start)
    if end is not None:
        candidates = candidates.filter(LeaderboardScore.created_at < end)
    if accounts_only:
        candidates = candidates.filter(LeaderboardScore.user_id.isnot(None))
    candidates = candidates.subquery()

    return LeaderboardScore.query.join(
        candidates, LeaderboardScore.id == candidates.c.id,
    ).filter(candidates.c.position == 1).order_by(
        LeaderboardScore.score.desc(),
        LeaderboardScore.created_at.asc(),
        LeaderboardScore.id.asc(),
    ).limit(limit).all()


def _best_item(row, rank):
    return {
        'rank': rank,
        'userId': row.user_id,
        'player': row.player_name or 'Player',
        'score': int(row.score or 0),
        'achievedAt': isoformat_or_none(row.created_at),
    }


def get_top(game_slug, limit=DEFAULT_LIMIT, period=PERIOD_ALL_TIME, now=None):
    """Best score per player for ``game_slug`` within the period's window."""
    now = now or utcnow_naive()
    period = normalize_period(period)
    limit = clamp_limit(limit)
    start, end = period_window(period, now)
    rows = best_per_user(game_slug, limit, start, end)
    return [_best_item(row, rank) for rank, row in enumerate(rows, start=1)]


def get_game_winners(game_slug, limit=50):
    return get_top(game_slug, clamp_limit(limit, default=50), PERIOD_ALL_TIME)


def submit_score(game_slug, raw_score, user, player=None, now=None):
    slug = validate_game_slug(game_slug)
    score = validate_leaderboard_score(raw_score)
    default_name = (getattr(user, 'display_name', None) or 'Player')[:MAX_PLAYER_NAME_LENGTH]
    player_name = validate_player_name(player, default=default_name)

    row = LeaderboardScore(
        game_slug=slug,
        user_id=user.id if user is not None else None,
        player_name=player_name,
        score=score,
        created_at=now or utcnow_naive(),
    )
    db.session.add(row)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error('Leaderboard insert failed for %s: %s', slug, exc)
        raise UpstreamFailure(str(exc)) from exc
    return row


def _game_slugs_between(start, end):
    rows = db.session.query(LeaderboardScore.game_slug).filter(
        LeaderboardScore.created_at >= start,
        LeaderboardScore.created_at < end,
    ).distinct().all()
    return sorted(slug for (slug,) in rows)


def _as_datetime(day):
    return datetime(day.year, day.month, day.day)


def _snapshot_rows(start, end):
    """``(game_slug, rank, row)`` for account holders' best scores in a window."""
    picked = []
    for game_slug in _game_slugs_between(start, end):
        rows = best_per_user(game_slug, MAX_LIMIT, start, end, accounts_only=True)
        picked.extend((game_slug, rank, row) for rank, row in enumerate(rows, start=1))
    return picked


def compute_daily_winners(run_date):
    """Snapshot best-per-user for every game on ``run_date`` (UTC)."""
    start = _as_datetime(run_date)
    end = start + timedelta(days=1)
    try:
        picked = _snapshot_rows(start, end)
        LeaderboardDailyBest.query.filter_by(date=run_date).delete(synchronize_session='fetch')
        total = 0
        for game_slug, rank, row in picked:
            db.session.add(LeaderboardDailyBest(
                date=run_date,
                game_slug=game_slug,
                user_id=row.user_id,
                player_name=row.player_name,
                score=row.score,
                rank=rank,
                source_score_id=row.id,
            ))
            total += 1
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc
    logger.info('Computed daily leaderboard snapshot for %s: %d row(s)', run_date.isoformat(), total)
    return total


def compute_weekly_winners(week_start):
    """Snapshot best-per-user for the Saturday-start week beginning ``week_start``."""
    start = _as_datetime(week_start)
    end = start + timedelta(days=7)
    try:
        picked = _snapshot_rows(start, end)
        LeaderboardWeeklyBest.query.filter_by(week_start=week_start).delete(synchronize_session='fetch')
        total = 0
        for game_slug, rank, row in picked:
            db.session.add(LeaderboardWeeklyBest(
                week_start=week_start,
                week_end=week_start + timedelta(days=6),
                game_slug=game_slug,
                user_id=row.user_id,
                player_name=row.player_name,
                score=row.score,
                rank=rank,
                source_score_id=row.id,
            ))
            total += 1
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc
    logger.info('Computed weekly leaderboard snapshot for %s: %d row(s)', week_start.isoformat(), total)
    return total


def get_period_snapshot(game_slug, period, day, limit=DEFAULT_LIMIT):
    """Stored daily/weekly snapshot rows for a finished period."""
    if not isinstance(day, date):
        raise InvalidInput('Invalid date')
    limit = clamp_limit(limit)
    if period == PERIOD_DAILY:
        query = LeaderboardDailyBest.query.filter_by(game_slug=game_slug, date=day)
        model = LeaderboardDailyBest
    elif period == PERIOD_WEEKLY:
        query = LeaderboardWeeklyBest.query.filter_by(game_slug=game_slug, week_start=day)
        model = LeaderboardWeeklyBest
    else:
        raise InvalidInput('Snapshots exist only for daily and weekly periods')
    return [row.to_dict() for row in query.order_by(model.rank.asc()).limit(limit).all()]
