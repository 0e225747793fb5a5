"""Public tournament endpoints."""
from datetime import timedelta

from conftest import auth, make_tournament, make_user, register, subscribe
from arcade.models import TournamentScore, User
from arcade.app import db
from arcade.services.tournament_scores import submit_tournament_score
from arcade.time_utils import utcnow_naive


def _subscribed_client_user(client, username):
    token, user_id = register(client, username)
    res = client.post('/api/subscriptions/activate', json={'planCode': 'week'}, headers=auth(token))
    assert res.status_code == 200
    return token, user_id


def test_submit_requires_login(client):
    make_tournament('login-cup')
    res = client.post('/api/tournaments/submit', json={'tournamentSlug': 'login-cup', 'score': 10})
    assert res.status_code == 401
    assert res.get_json()['error'] == 'Login required'


def test_submit_requires_subscription(client):
    make_tournament('paid-cup')
    token, _ = register(client, 'free_player')
    res = client.post(
        '/api/tournaments/submit',
        json={'tournamentSlug': 'paid-cup', 'score': 10},
        headers=auth(token),
    )
    assert res.status_code == 402
    assert 'subscription' in res.get_json()['error'].lower()


def test_submit_validates_input(client):
    token, _ = _subscribed_client_user(client, 'validator')
    headers = auth(token)
    assert client.post('/api/tournaments/submit', json={'score': 10}, headers=headers).status_code == 400
    for bad in (-1, 'abc', True, None):
        res = client.post(
            '/api/tournaments/submit',
            json={'tournamentSlug': 'any-cup', 'score': bad},
            headers=headers,
        )
        assert res.status_code == 400, bad


def test_submit_unknown_and_not_live(client):
    token, _ = _subscribed_client_user(client, 'gatecheck')
    headers = auth(token)
    res = client.post('/api/tournaments/submit', json={'tournamentSlug': 'ghost', 'score': 1}, headers=headers)
    assert res.status_code == 404

    now = utcnow_naive()
    make_tournament('future-cup', starts_at=now + timedelta(hours=1), ends_at=now + timedelta(hours=2))
    res = client.post('/api/tournaments/submit', json={'tournamentSlug': 'future-cup', 'score': 1}, headers=headers)
    assert res.status_code == 403
    assert res.get_json()['error'] == 'Tournament is not live'


def test_submit_keeps_best_score(client):
    make_tournament('best-cup')
    token, user_id = _subscribed_client_user(client, 'best_player')
    headers = auth(token)

    first = client.post('/api/tournaments/submit', json={'tournamentSlug': 'best-cup', 'score': 100}, headers=headers)
    assert first.get_json() == {'ok': True, 'updated': True, 'keptBest': False}

    lower = client.post('/api/tournaments/submit', json={'tournamentSlug': 'best-cup', 'score': 80}, headers=headers)
    assert lower.get_json() == {'ok': True, 'updated': False, 'keptBest': True}

    higher = client.post('/api/tournaments/submit', json={'tournamentSlug': 'best-cup', 'score': 120}, headers=headers)
    assert higher.get_json()['updated'] is True

    rows = TournamentScore.query.filter_by(user_id=user_id).all()
    assert [r.score for r in rows] == [120]


def test_leaderboard_lists_scores_with_effective_status(client):
    tournament = make_tournament('board-cup', status='scheduled')
    for name, score in (('ann', 30), ('ben', 90), ('cat', 60)):
        user = make_user(name)
        subscribe(user, '1d')
        submit_tournament_score(tournament.slug, score, user)

    res = client.get('/api/tournaments/leaderboard?slug=board-cup&limit=2')
    data = res.get_json()
    assert res.status_code == 200
    assert data['tournament']['effective_status'] == 'live'
    assert data['tournament']['status'] == 'scheduled'
    assert data['tournament']['participants'] == 3
    assert [row['score'] for row in data['rows']] == [90, 60]

    missing = client.get('/api/tournaments/leaderboard?slug=nope').get_json()
    assert missing == {'tournament': None, 'rows': []}
    assert client.get('/api/tournaments/leaderboard').status_code == 400


def test_list_and_by_slug(client):
    now = utcnow_naive()
    make_tournament('later-cup', starts_at=now + timedelta(days=1), ends_at=now + timedelta(days=2))
    make_tournament('now-cup')
    make_tournament('old-cup', starts_at=now - timedelta(days=2), ends_at=now - timedelta(days=1), status='live')

    data = client.get('/api/tournaments').get_json()
    by_slug = {t['slug']: t['effective_status'] for t in data['tournaments']}
    assert by_slug == {'old-cup': 'ended', 'now-cup': 'live', 'later-cup': 'scheduled'}
    assert [t['slug'] for t in data['tournaments']] == ['old-cup', 'now-cup', 'later-cup']

    live_only = client.get('/api/tournaments/list?status=live').get_json()
    assert [t['slug'] for t in live_only['tournaments']] == ['now-cup']

    single = client.get('/api/tournaments/by-slug?slug=old-cup').get_json()
    assert single['tournament']['effective_status'] == 'ended'
    assert client.get('/api/tournaments/by-slug?slug=missing').get_json() == {'tournament': None}
    assert client.get('/api/tournaments/by-slug').status_code == 400


def test_winners_lazily_finalize_after_end(client):
    now = utcnow_naive()
    tournament = make_tournament(
        'done-cup', starts_at=now - timedelta(hours=3), ends_at=now - timedelta(hours=1), prize_1='Trophy',
    )
    user = make_user('champ', display_name='Champ')
    subscribe(user, '7d', now=now - timedelta(days=1))
    submit_tournament_score(tournament.slug, 999, user, now=now - timedelta(hours=2))

    res = client.get('/api/tournaments/winners?slug=done-cup')
    data = res.get_json()
    assert res.status_code == 200
    assert data['finalizedWas'] is False
    assert [(w['rank'], w['player_name'], w['score'], w['prize']) for w in data['winners']] == [
        (1, 'Champ', 999, 'Trophy'),
    ]

    again = client.get('/api/tournaments/winners?slug=done-cup').get_json()
    assert 'finalizedWas' not in again
    assert again['winners'] == data['winners']


def test_winners_empty_while_running(client):
    make_tournament('running-cup')
    data = client.get('/api/tournaments/winners?slug=running-cup').get_json()
    assert data['winners'] == []
    assert client.get('/api/tournaments/winners?slug=ghost').status_code == 404


def test_live_games_one_row_per_game(client):
    now = utcnow_naive()
    make_tournament('rush-long', ends_at=now + timedelta(hours=5))
    make_tournament('rush-short', ends_at=now + timedelta(minutes=30))
    make_tournament('other-game', game_slug='neon-dash')
    make_tournament('rush-canceled', status='canceled')
    make_tournament('rush-future', starts_at=now + timedelta(hours=1), ends_at=now + timedelta(hours=2))

    data = client.get('/api/tournaments/live-games').get_json()
    rows = {row['gameSlug']: row['tournamentSlug'] for row in data['rows']}
    assert rows == {'boss-rush': 'rush-short', 'neon-dash': 'other-game'}
    assert sorted(data['gameSlugs']) == ['boss-rush', 'neon-dash']


def test_check_conflict(client):
    now = utcnow_naive()
    make_tournament('existing-cup', starts_at=now, ends_at=now + timedelta(hours=2))

    overlap = client.get('/api/tournaments/check-conflict', query_string={
        'gameSlug': 'boss-rush',
        'startsAt': (now + timedelta(hours=1)).isoformat(),
        'endsAt': (now + timedelta(hours=3)).isoformat(),
    }).get_json()
    assert overlap['conflict'] is True
    assert [m['slug'] for m in overlap['matches']] == ['existing-cup']

    touching = client.get('/api/tournaments/check-conflict', query_string={
        'gameSlug': 'boss-rush',
        'startsAt': (now + timedelta(hours=2)).isoformat(),
        'endsAt': (now + timedelta(hours=3)).isoformat(),
    }).get_json()
    assert touching == {'conflict': False, 'matches': []}

    assert client.get('/api/tournaments/check-conflict?gameSlug=boss-rush').status_code == 400


def test_display_name_snapshot_survives_profile_change(client):
    make_tournament('snap-cup')
    token, user_id = _subscribed_client_user(client, 'snapper')
    client.post('/api/tournaments/submit', json={'tournamentSlug': 'snap-cup', 'score': 5}, headers=auth(token))

    user = db.session.get(User, user_id)
    user.display_name = 'Renamed'
    db.session.commit()

    rows = client.get('/api/tournaments/leaderboard?slug=snap-cup').get_json()['rows']
    assert rows[0]['player_name'] == 'snapper'


def test_accepted_score_broadcasts_update(client, monkeypatch):
    from arcade.app import socketio
    sent = []
    monkeypatch.setattr(socketio, 'emit', lambda event, payload, **kw: sent.append((event, payload)))

    make_tournament('emit-cup')
    token, _ = _subscribed_client_user(client, 'emitter')
    headers = auth(token)
    client.post('/api/tournaments/submit', json={'tournamentSlug': 'emit-cup', 'score': 50}, headers=headers)
    client.post('/api/tournaments/submit', json={'tournamentSlug': 'emit-cup', 'score': 10}, headers=headers)

    assert [(event, payload['tournament_slug'], payload['reason']) for event, payload in sent] == [
        ('tournament_update', 'emit-cup', 'score'),
    ]
