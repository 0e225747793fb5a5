"""Real-time tournament status.

The stored ``status`` column is only a hint: no ticker is guaranteed to have
run, so anything that gates on a tournament's state recomputes it from the
time window here.
"""
from arcade.time_utils import parse_iso_datetime, utcnow_naive

SCHEDULED = 'scheduled'
LIVE = 'live'
ENDED = 'ended'
CANCELED = 'canceled'


def effective_status(status, starts_at, ends_at, now):
    """Map a stored status and time window to canceled/ended/live/scheduled."""
    if str(status or SCHEDULED).strip().lower() == CANCELED:
        return CANCELED

    start = parse_iso_datetime(starts_at)
    end = parse_iso_datetime(ends_at)
    now = parse_iso_datetime(now)

    if end is not None and now >= end:
        return ENDED
    if start is not None and now >= start and (end is None or now < end):
        return LIVE
    return SCHEDULED


def tournament_effective_status(tournament, now=None):
    return effective_status(
        tournament.status,
        tournament.starts_at,
        tournament.ends_at,
        now or utcnow_naive(),
    )


def is_accepting_scores(tournament, now=None):
    now = now or utcnow_naive()
    if tournament_effective_status(tournament, now) != LIVE:
        return False
    return tournament.starts_at <= now < tournament.ends_at


def serialize_with_status(tournament, now=None):
    data = tournament.to_dict()
    data['effective_status'] = tournament_effective_status(tournament, now)
    return data
