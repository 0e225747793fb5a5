"""Winner finalization: ranking, idempotence, force, lazy read path, ticker."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from conftest import make_tournament, make_user, subscribe
from arcade.app import db
from arcade.errors import AlreadyFinalized, NotFound, TooEarly, UpstreamFailure
from arcade.models import Tournament, TournamentWinner
from arcade.services import tournament_finalizer, upserts
from arcade.services.tournament_finalizer import (
    finalize_tournament,
    first_per_user,
    tick_tournaments,
    winners_for_slug,
)
from arcade.services.tournament_scores import submit_tournament_score

START = datetime(2026, 1, 25, 12, 0)
END = datetime(2026, 1, 25, 14, 0)


def _at(hour, minute):
    return datetime(2026, 1, 25, hour, minute)


def _player(username, display_name=None):
    user = make_user(username, display_name=display_name)
    subscribe(user, '30d', now=START - timedelta(days=1))
    return user


def _podium(winners):
    return [(w.rank, w.player_name, w.score) for w in winners]


def test_first_per_user_keeps_order_and_skips_repeats():
    rows = [SimpleNamespace(user_id=uid, n=i) for i, uid in enumerate([1, 1, 2, None, 3, 2, 4])]
    picked = first_per_user(rows, 3)
    assert [r.n for r in picked] == [0, 2, 4]


def test_tie_broken_by_earliest_submission(app):
    tournament = make_tournament('tie-cup', starts_at=START, ends_at=END, prize_1='500 BDT', prize_2='Sticker pack')
    alice = _player('alice', 'A')
    bob = _player('bob', 'B')

    submit_tournament_score(tournament.slug, 100, alice, now=_at(12, 5))
    submit_tournament_score(tournament.slug, 80, alice, now=_at(12, 10))
    submit_tournament_score(tournament.slug, 100, bob, now=_at(12, 6))

    winners = finalize_tournament(tournament, now=END)
    assert _podium(winners) == [(1, 'A', 100), (2, 'B', 100)]
    assert [w.prize for w in winners] == ['500 BDT', 'Sticker pack']
    assert db.session.get(Tournament, tournament.id).finalized is True


def test_top_three_are_distinct_users(app):
    tournament = make_tournament('distinct-cup', starts_at=START, ends_at=END)
    players = [_player(f'p{i}', f'P{i}') for i in range(5)]
    scores = [300, 250, 200, 150, 100]
    for minute, (player, score) in enumerate(zip(players, scores), start=1):
        submit_tournament_score(tournament.slug, score, player, now=_at(12, minute))
    # A late improvement by the leader must not give them a second slot.
    submit_tournament_score(tournament.slug, 310, players[0], now=_at(13, 0))

    winners = finalize_tournament(tournament, now=END)
    assert _podium(winners) == [(1, 'P0', 310), (2, 'P1', 250), (3, 'P2', 200)]
    assert len({w.user_id for w in winners}) == 3


def test_too_early_without_force(app):
    tournament = make_tournament('early-cup', starts_at=START, ends_at=END)
    with pytest.raises(TooEarly):
        finalize_tournament(tournament, now=END - timedelta(seconds=1))
    assert TournamentWinner.query.count() == 0


def test_zero_scores_yield_zero_winners(app):
    tournament = make_tournament('empty-cup', starts_at=START, ends_at=END)
    assert finalize_tournament(tournament, now=END) == []
    assert db.session.get(Tournament, tournament.id).finalized is True


def test_second_finalize_returns_existing_winners(app):
    tournament = make_tournament('idem-cup', starts_at=START, ends_at=END)
    alice = _player('alice', 'A')
    bob = _player('bob', 'B')
    submit_tournament_score(tournament.slug, 50, alice, now=_at(12, 30))
    submit_tournament_score(tournament.slug, 70, bob, now=_at(12, 31))

    first = _podium(finalize_tournament(tournament, now=END))
    with pytest.raises(AlreadyFinalized) as excinfo:
        finalize_tournament(tournament, now=END + timedelta(hours=1))

    assert _podium(excinfo.value.winners) == first
    assert excinfo.value.status_code == 409
    assert TournamentWinner.query.filter_by(tournament_slug=tournament.slug).count() == 2


def test_force_replaces_previous_winners(app):
    tournament = make_tournament('force-cup', starts_at=START, ends_at=END)
    alice = _player('alice', 'A')
    bob = _player('bob', 'B')
    carol = _player('carol', 'C')
    submit_tournament_score(tournament.slug, 50, alice, now=_at(12, 10))
    submit_tournament_score(tournament.slug, 40, bob, now=_at(12, 20))

    early = finalize_tournament(tournament, force=True, now=_at(13, 0))
    assert _podium(early) == [(1, 'A', 50), (2, 'B', 40)]

    submit_tournament_score(tournament.slug, 90, carol, now=_at(13, 30))
    submit_tournament_score(tournament.slug, 60, bob, now=_at(13, 40))

    final = finalize_tournament(tournament, force=True, now=END)
    assert _podium(final) == [(1, 'C', 90), (2, 'B', 60), (3, 'A', 50)]
    assert TournamentWinner.query.filter_by(tournament_slug=tournament.slug).count() == 3


def test_lazy_read_finalizes_ended_tournament(app):
    tournament = make_tournament('lazy-cup', starts_at=START, ends_at=END)
    alice = _player('alice', 'A')
    submit_tournament_score(tournament.slug, 10, alice, now=_at(12, 1))

    winners, finalized_was = winners_for_slug(tournament.slug, now=END + timedelta(minutes=1))
    assert _podium(winners) == [(1, 'A', 10)]
    assert finalized_was is False

    again, finalized_was = winners_for_slug(tournament.slug, now=END + timedelta(minutes=2))
    assert _podium(again) == [(1, 'A', 10)]
    assert finalized_was is None


def test_lazy_read_before_end_returns_nothing(app):
    tournament = make_tournament('running-cup', starts_at=START, ends_at=END)
    winners, _ = winners_for_slug(tournament.slug, now=_at(13, 0))
    assert winners == []

    tournament.status = 'ended'
    db.session.commit()
    winners, _ = winners_for_slug(tournament.slug, now=_at(13, 0))
    assert winners == []
    assert TournamentWinner.query.count() == 0


def test_lazy_read_unknown_slug(app):
    with pytest.raises(NotFound):
        winners_for_slug('nope')


def test_tick_syncs_status_and_finalizes(app):
    upcoming = make_tournament('tick-upcoming', starts_at=_at(15, 0), ends_at=_at(16, 0), status='live')
    running = make_tournament('tick-running', starts_at=START, ends_at=_at(18, 0), status='scheduled')
    done = make_tournament('tick-done', starts_at=_at(9, 0), ends_at=_at(11, 0), status='live')
    canceled = make_tournament('tick-canceled', starts_at=_at(9, 0), ends_at=_at(11, 0), status='canceled')
    alice = _player('alice', 'A')
    submit_tournament_score(done.slug, 42, alice, now=_at(10, 0))

    result = tick_tournaments(now=_at(13, 0))

    assert result['status_changes'] == 3
    assert result['finalized'] == ['tick-done']
    assert db.session.get(Tournament, upcoming.id).status == 'scheduled'
    assert db.session.get(Tournament, running.id).status == 'live'
    assert db.session.get(Tournament, done.id).finalized is True
    assert db.session.get(Tournament, canceled.id).status == 'canceled'
    assert _podium(TournamentWinner.query.filter_by(tournament_slug='tick-done').all()) == [(1, 'A', 42)]

    again = tick_tournaments(now=_at(13, 5))
    assert again == {'status_changes': 0, 'finalized': [], 'failed': []}


def test_tick_continues_past_a_failing_tournament(app, monkeypatch):
    broken = make_tournament('a-cup', starts_at=_at(9, 0), ends_at=_at(10, 0))
    healthy = make_tournament('b-cup', starts_at=_at(9, 0), ends_at=_at(11, 0))
    alice = _player('alice', 'A')
    submit_tournament_score(healthy.slug, 5, alice, now=_at(10, 30))

    real_finalize = tournament_finalizer.finalize_tournament

    def flaky_finalize(tournament, force=False, now=None):
        if tournament.slug == 'a-cup':
            raise UpstreamFailure('database is down')
        return real_finalize(tournament, force=force, now=now)

    monkeypatch.setattr(tournament_finalizer, 'finalize_tournament', flaky_finalize)
    result = tick_tournaments(now=_at(13, 0))

    assert result['failed'] == ['a-cup']
    assert result['finalized'] == ['b-cup']
    assert db.session.get(Tournament, broken.id).finalized is False
    assert db.session.get(Tournament, healthy.id).finalized is True

    monkeypatch.setattr(tournament_finalizer, 'finalize_tournament', real_finalize)
    retry = tick_tournaments(now=_at(13, 5))
    assert retry['finalized'] == ['a-cup']
    assert retry['failed'] == []


def test_unsupported_backend_fails_without_writing(app, monkeypatch):
    tournament = make_tournament('odd-db-cup', starts_at=START, ends_at=END)
    alice = _player('alice', 'A')
    submit_tournament_score(tournament.slug, 10, alice, now=_at(12, 1))

    monkeypatch.setattr(upserts, '_UPSERT_DIALECTS', {})
    with pytest.raises(UpstreamFailure):
        finalize_tournament(tournament, now=END)
    assert TournamentWinner.query.count() == 0
    assert db.session.get(Tournament, tournament.id).finalized is False
