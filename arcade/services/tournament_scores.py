"""Tournament score ingestion: best-score-only, one row per player."""
import math

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from arcade.app import db
from arcade.errors import Forbidden, InvalidInput, NotFound, PaymentRequired, Unauthenticated, UpstreamFailure
from arcade.models import Tournament, TournamentScore
from arcade.services.subscriptions import has_active_subscription
from arcade.services.tournament_status import is_accepting_scores
from arcade.services.upserts import dialect_insert
from arcade.time_utils import utcnow_naive


def coerce_score(raw_score):
    if isinstance(raw_score, bool) or raw_score is None:
        return None
    try:
        score = float(raw_score)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(score) or score < 0:
        return None
    return score


def _player_name(user):
    return str(getattr(user, 'display_name', '') or '').strip()[:80] or 'Player'


def _conditional_upsert(tournament_id, user_id, player_name, score, now):
    """Insert the row, or raise the stored score only if ``score`` beats it.

    Returns True when a row was written.
    """
    stmt = dialect_insert(TournamentScore).values(
        tournament_id=tournament_id,
        user_id=user_id,
        player_name=player_name,
        score=score,
        achieved_at=now,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['tournament_id', 'user_id'],
        set_={
            'score': stmt.excluded.score,
            'player_name': stmt.excluded.player_name,
            'achieved_at': stmt.excluded.achieved_at,
            'updated_at': stmt.excluded.updated_at,
        },
        where=TournamentScore.score < stmt.excluded.score,
    )
    result = db.session.execute(stmt)
    return result.rowcount > 0


def submit_tournament_score(tournament_slug, raw_score, user, now=None):
    if user is None:
        raise Unauthenticated()

    slug = str(tournament_slug or '').strip()
    if not slug:
        raise InvalidInput('Missing tournamentSlug')
    score = coerce_score(raw_score)
    if score is None:
        raise InvalidInput('Invalid score')

    now = now or utcnow_naive()
    if not has_active_subscription(user.id, now):
        raise PaymentRequired()

    tournament = Tournament.query.filter_by(slug=slug).first()
    if not tournament:
        raise NotFound('Tournament not found')
    if not is_accepting_scores(tournament, now):
        raise Forbidden('Tournament is not live')

    existing = db.session.query(TournamentScore.score).filter_by(
        tournament_id=tournament.id, user_id=user.id,
    ).scalar()
    if existing is not None and existing >= score:
        return {'ok': True, 'updated': False, 'keptBest': True, 'tournament': tournament}

    try:
        updated = _conditional_upsert(tournament.id, user.id, _player_name(user), score, now)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc

    return {'ok': True, 'updated': updated, 'keptBest': not updated, 'tournament': tournament}


def tournament_leaderboard_rows(tournament, limit):
    rows = TournamentScore.query.filter_by(tournament_id=tournament.id).order_by(
        TournamentScore.score.desc(),
        TournamentScore.achieved_at.asc(),
        TournamentScore.id.asc(),
    ).limit(limit).all()
    return [row.to_dict() for row in rows]


def participant_count(tournament):
    return db.session.query(func.count(TournamentScore.id)).filter(
        TournamentScore.tournament_id == tournament.id,
    ).scalar() or 0
