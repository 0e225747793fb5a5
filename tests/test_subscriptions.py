"""Subscription gate, plans, and dummy activation."""
from datetime import datetime, timedelta

import pytest
from conftest import auth, make_user, register
from arcade.errors import InvalidInput, NotFound
from arcade.models import Subscription
from arcade.services.subscriptions import (
    activate_dummy_subscription,
    has_active_subscription,
    is_subscription_active,
    normalize_plan_code,
    seed_default_plans,
)

NOW = datetime(2026, 3, 1, 9, 0)


def test_plan_aliases():
    assert normalize_plan_code('Week') == '7d'
    assert normalize_plan_code(' day ') == '1d'
    assert normalize_plan_code('month') == '30d'
    assert normalize_plan_code('90d') == '90d'
    with pytest.raises(InvalidInput):
        normalize_plan_code('')


def test_seeding_is_idempotent(app):
    assert seed_default_plans() == 0


def test_activation_opens_half_open_window(app):
    user = make_user('subber')
    sub = activate_dummy_subscription(user, '1d', now=NOW)
    assert (sub.starts_at, sub.ends_at) == (NOW, NOW + timedelta(days=1))
    assert sub.provider == 'dummy'
    assert sub.amount_bdt == 20

    assert is_subscription_active(sub, NOW)
    assert not is_subscription_active(sub, NOW - timedelta(seconds=1))
    assert not is_subscription_active(sub, NOW + timedelta(days=1))
    assert has_active_subscription(user.id, NOW + timedelta(hours=23))
    assert not has_active_subscription(user.id, NOW + timedelta(days=1))


def test_reactivation_carries_remaining_time(app):
    user = make_user('stacker')
    first = activate_dummy_subscription(user, '7d', now=NOW)
    second = activate_dummy_subscription(user, 'day', now=NOW + timedelta(days=2))

    assert first.status == 'superseded'
    assert second.status == 'active'
    assert second.ends_at == NOW + timedelta(days=8)
    assert Subscription.query.filter_by(user_id=user.id, status='active').count() == 1


def test_unknown_plan(app):
    user = make_user('nobody')
    with pytest.raises(NotFound):
        activate_dummy_subscription(user, 'lifetime', now=NOW)


def test_me_for_anonymous_is_not_cached(client):
    res = client.get('/api/subscriptions/me')
    assert res.get_json() == {'user': None, 'active': False, 'subscription': None}
    assert 'no-store' in res.headers['Cache-Control']
    assert res.headers['Pragma'] == 'no-cache'


def test_activate_and_read_back(client):
    token, user_id = register(client, 'buyer')
    headers = auth(token)

    before = client.get('/api/subscriptions/me', headers=headers).get_json()
    assert before == {'user': {'id': user_id}, 'active': False, 'subscription': None}

    res = client.post('/api/subscriptions/activate', json={'planCode': 'week'}, headers=headers)
    assert res.status_code == 200
    data = res.get_json()
    assert data['ok'] is True and data['active'] is True
    assert data['activated']['subscription_plans']['code'] == '7d'
    assert 'no-store' in res.headers['Cache-Control']

    after = client.get('/api/subscriptions/me', headers=headers).get_json()
    assert after['active'] is True
    assert after['subscription']['id'] == data['activated']['id']


def test_activate_errors(client, user_headers):
    assert client.post('/api/subscriptions/activate', json={'planCode': '7d'}).status_code == 401
    res = client.post('/api/subscriptions/activate', json={}, headers=user_headers)
    assert res.status_code == 400
    res = client.post('/api/subscriptions/activate', json={'planCode': 'forever'}, headers=user_headers)
    assert res.status_code == 404


def test_plans_listed_shortest_first(client):
    plans = client.get('/api/subscriptions/plans').get_json()['plans']
    assert [p['code'] for p in plans] == ['1d', '7d', '30d']
