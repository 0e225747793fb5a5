"""Tournament winner finalization.

Winners are the top three distinct players by best score, earliest
submission first on ties. Finalizing is idempotent: rows are upserted by
(tournament_slug, rank), so re-running with the same scores produces the same
podium. The same core serves the admin endpoint, the lazy read path, and the
cron ticker.
"""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from arcade.app import db
from arcade.errors import AlreadyFinalized, ArcadeError, NotFound, TooEarly, UpstreamFailure
from arcade.models import Tournament, TournamentScore, TournamentWinner
from arcade.services.tournament_status import ENDED, tournament_effective_status
from arcade.services.upserts import dialect_insert
from arcade.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

PODIUM_SIZE = 3


def first_per_user(rows, limit):
    """Keep the first row seen for each user, in input order, up to ``limit``."""
    seen = set()
    picked = []
    for row in rows:
        uid = row.user_id
        if uid is None or uid in seen:
            continue
        seen.add(uid)
        picked.append(row)
        if len(picked) >= limit:
            break
    return picked


def _ranked_scores(tournament):
    return TournamentScore.query.filter_by(tournament_id=tournament.id).order_by(
        TournamentScore.score.desc(),
        TournamentScore.achieved_at.asc(),
        TournamentScore.id.asc(),
    ).all()


def read_winners(tournament_slug):
    return TournamentWinner.query.filter_by(tournament_slug=tournament_slug).order_by(
        TournamentWinner.rank.asc(),
    ).all()


def podium_rows(tournament):
    """Winner payloads computed from current scores, without persisting them."""
    picked = first_per_user(_ranked_scores(tournament), PODIUM_SIZE)
    return [
        {
            'tournament_slug': tournament.slug,
            'rank': rank,
            'user_id': row.user_id,
            'player_name': row.player_name,
            'score': row.score,
            'prize': tournament.prize_for_rank(rank),
        }
        for rank, row in enumerate(picked, start=1)
    ]


def _upsert_winners(rows, now):
    for row in rows:
        stmt = dialect_insert(TournamentWinner).values(created_at=now, **row)
        stmt = stmt.on_conflict_do_update(
            index_elements=['tournament_slug', 'rank'],
            set_={
                'user_id': stmt.excluded.user_id,
                'player_name': stmt.excluded.player_name,
                'score': stmt.excluded.score,
                'prize': stmt.excluded.prize,
            },
        )
        db.session.execute(stmt)


def finalize_tournament(tournament, force=False, now=None):
    """Compute and persist the podium for ``tournament``; returns winner rows."""
    now = now or utcnow_naive()
    if not force and now < tournament.ends_at:
        raise TooEarly()

    if not force:
        existing = read_winners(tournament.slug)
        if existing:
            raise AlreadyFinalized(winners=existing)

    try:
        if force:
            TournamentWinner.query.filter_by(
                tournament_slug=tournament.slug,
            ).delete(synchronize_session=False)
        rows = podium_rows(tournament)
        _upsert_winners(rows, now)
        tournament.finalized = True
        tournament.updated_at = now
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        existing = read_winners(tournament.slug)
        if existing and not force:
            raise AlreadyFinalized(winners=existing) from exc
        raise UpstreamFailure(str(exc.orig or exc)) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc
    except UpstreamFailure:
        db.session.rollback()
        raise

    winners = read_winners(tournament.slug)
    logger.info(
        'Finalized tournament %s (force=%s): %d winner(s)',
        tournament.slug, bool(force), len(winners),
    )
    return winners


def resolve_tournament(tournament_id=None, tournament_slug=None):
    tournament = None
    if tournament_id not in (None, ''):
        try:
            tournament = db.session.get(Tournament, int(tournament_id))
        except (TypeError, ValueError):
            tournament = None
    elif tournament_slug:
        tournament = Tournament.query.filter_by(slug=str(tournament_slug).strip()).first()
    if tournament is None:
        raise NotFound('Tournament not found')
    return tournament


def winners_for_slug(slug, now=None):
    """Public winners read; finalizes lazily once the tournament has ended.

    Returns ``(winners, finalized_was)``; ``finalized_was`` is None when stored
    winners were returned without consulting the tournament.
    """
    existing = read_winners(slug)
    if existing:
        return existing, None

    tournament = Tournament.query.filter_by(slug=slug).first()
    if tournament is None:
        raise NotFound('Tournament not found')

    now = now or utcnow_naive()
    finalized_was = bool(tournament.finalized)
    ended = tournament_effective_status(tournament, now) == ENDED or tournament.status == ENDED
    if not ended:
        return [], finalized_was

    try:
        return finalize_tournament(tournament, force=False, now=now), finalized_was
    except AlreadyFinalized as exc:
        return exc.winners, finalized_was
    except TooEarly:
        # Stored status says ended but the window has not elapsed.
        return [], finalized_was


def tick_tournaments(now=None):
    """Sync stored statuses with the clock and finalize what has ended."""
    now = now or utcnow_naive()
    status_changes = 0
    finalized = []
    failed = []
    for tournament in Tournament.query.filter(Tournament.status != 'canceled').all():
        effective = tournament_effective_status(tournament, now)
        if tournament.status != effective:
            tournament.status = effective
            tournament.updated_at = now
            status_changes += 1
    db.session.commit()

    due = Tournament.query.filter(
        Tournament.status == ENDED,
        Tournament.finalized.is_(False),
        Tournament.ends_at <= now,
    ).all()
    for tournament in due:
        try:
            finalize_tournament(tournament, force=False, now=now)
        except AlreadyFinalized:
            tournament.finalized = True
            db.session.commit()
            continue
        except ArcadeError:
            # Left unfinalized; the next tick retries it.
            db.session.rollback()
            logger.exception('Finalizing tournament %s failed', tournament.slug)
            failed.append(tournament.slug)
            continue
        finalized.append(tournament.slug)

    logger.info(
        'Tournament tick: %d status change(s), finalized %s, failed %s',
        status_changes, finalized or 'none', failed or 'none',
    )
    return {'status_changes': status_changes, 'finalized': finalized, 'failed': failed}
