"""Effective status derivation over boundary instants."""
from datetime import datetime, timedelta

from arcade.services.tournament_status import (
    CANCELED,
    ENDED,
    LIVE,
    SCHEDULED,
    effective_status,
)

START = datetime(2026, 1, 25, 12, 0)
END = datetime(2026, 1, 25, 14, 0)


def test_before_start_is_scheduled():
    assert effective_status('scheduled', START, END, START - timedelta(seconds=1)) == SCHEDULED


def test_start_instant_is_live():
    assert effective_status('scheduled', START, END, START) == LIVE


def test_just_before_end_is_live():
    assert effective_status('scheduled', START, END, END - timedelta(microseconds=1)) == LIVE


def test_end_instant_is_ended():
    assert effective_status('live', START, END, END) == ENDED


def test_stale_stored_status_is_ignored():
    assert effective_status('ended', START, END, START + timedelta(minutes=5)) == LIVE
    assert effective_status('live', START, END, START - timedelta(minutes=5)) == SCHEDULED
    assert effective_status('scheduled', START, END, END + timedelta(days=3)) == ENDED


def test_canceled_wins_at_every_instant():
    for now in (START - timedelta(days=1), START, END, END + timedelta(days=1)):
        assert effective_status('canceled', START, END, now) == CANCELED
    assert effective_status('  CANCELED ', START, END, START) == CANCELED


def test_missing_or_invalid_instants():
    assert effective_status('scheduled', None, None, START) == SCHEDULED
    assert effective_status('scheduled', START, None, START + timedelta(days=365)) == LIVE
    assert effective_status('scheduled', 'not-a-date', END, START) == SCHEDULED
    assert effective_status('scheduled', None, END, END) == ENDED


def test_accepts_iso_strings_with_offsets():
    assert effective_status(
        'scheduled', '2026-01-25T12:00:00Z', '2026-01-25T14:00:00+00:00', '2026-01-25T13:00:00Z',
    ) == LIVE
    # 15:30 at +02:00 is 13:30 UTC.
    assert effective_status(
        'scheduled', START, END, '2026-01-25T15:30:00+02:00',
    ) == LIVE


def test_same_inputs_same_result():
    now = START + timedelta(minutes=30)
    results = {effective_status('live', START, END, now) for _ in range(5)}
    assert results == {LIVE}
