"""Per-account cap on leaderboard submissions within a fixed window."""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from arcade.app import db
from arcade.errors import TooManyRequests, UpstreamFailure
from arcade.models import SubmissionWindow
from arcade.services.upserts import dialect_insert
from arcade.time_utils import utcnow_naive

logger = logging.getLogger(__name__)


def window_started_at(now, window_seconds):
    window = max(1, int(window_seconds))
    now_epoch = int(now.replace(tzinfo=timezone.utc).timestamp())
    window_epoch = now_epoch - (now_epoch % window)
    return datetime.fromtimestamp(window_epoch, tz=timezone.utc).replace(tzinfo=None)


def record_submission(user_id, max_per_window, window_seconds, now=None):
    """Count one submission for ``user_id`` and return the window's running total.

    Raises ``TooManyRequests`` once the total passes ``max_per_window``. A cap or
    window of zero disables the check and nothing is stored.
    """
    if not max_per_window or int(max_per_window) <= 0:
        return None
    if not window_seconds or int(window_seconds) <= 0:
        return None

    window = int(window_seconds)
    now = now or utcnow_naive()
    started_at = window_started_at(now, window)

    stmt = dialect_insert(SubmissionWindow).values(
        user_id=user_id, window_started_at=started_at, submit_count=1,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['user_id', 'window_started_at'],
        set_={'submit_count': SubmissionWindow.submit_count + 1},
    )
    try:
        db.session.execute(stmt)
        # Only the current window is ever consulted.
        SubmissionWindow.query.filter(
            SubmissionWindow.user_id == user_id,
            SubmissionWindow.window_started_at < started_at,
        ).delete(synchronize_session='fetch')
        count = db.session.query(SubmissionWindow.submit_count).filter_by(
            user_id=user_id, window_started_at=started_at,
        ).scalar()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error('Submission counter update failed for user %s: %s', user_id, exc)
        raise UpstreamFailure(str(exc)) from exc

    if count > int(max_per_window):
        window_end = started_at + timedelta(seconds=window)
        retry_after = max(1, int((window_end - now).total_seconds()))
        logger.warning('User %s over the submission cap (%d in window)', user_id, count)
        raise TooManyRequests(retry_after)
    return count
