from datetime import timedelta

import pytest
from arcade.app import create_app, db
from arcade.time_utils import utcnow_naive


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, username, email=None, display_name=None):
    res = client.post('/api/auth/register', json={
        'username': username,
        'email': email or f'{username}@test.com',
        'password': 'password123',
        'display_name': display_name or username,
    })
    assert res.status_code == 201, res.get_json()
    data = res.get_json()
    return data['token'], data['user']['id']


def auth(token):
    return {'Authorization': f'Bearer {token}'}


def make_tournament(slug='spring-cup', game_slug='boss-rush', starts_at=None, ends_at=None,
                    status='live', **fields):
    from arcade.models import Tournament
    now = utcnow_naive()
    tournament = Tournament(
        slug=slug,
        title=fields.pop('title', slug.replace('-', ' ').title()),
        game_slug=game_slug,
        starts_at=starts_at or now - timedelta(hours=1),
        ends_at=ends_at or now + timedelta(hours=1),
        status=status,
        **fields,
    )
    db.session.add(tournament)
    db.session.commit()
    return tournament


def make_user(username, display_name=None, role='user'):
    from arcade.models import User
    user = User(
        username=username,
        email=f'{username}@test.com',
        password_hash='x',
        display_name=display_name or username,
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def subscribe(user, plan_code='7d', now=None):
    from arcade.services.subscriptions import activate_dummy_subscription
    return activate_dummy_subscription(user, plan_code, now=now)


@pytest.fixture
def user_headers(client):
    token, _ = register(client, 'player_one')
    return auth(token)


@pytest.fixture
def admin_headers(client):
    token, _ = register(client, 'arcade_admin', email='admin@arcade.test')
    return auth(token)
