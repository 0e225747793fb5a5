from flask import Blueprint, jsonify, request
from arcade.auth_utils import login_required, optional_current_user
from arcade.models import SubscriptionPlan
from arcade.routes.helpers import _json_body
from arcade.services.subscriptions import (
    activate_dummy_subscription,
    current_subscription,
    is_subscription_active,
)
from arcade.time_utils import utcnow_naive

subscriptions_bp = Blueprint('subscriptions', __name__)

_NO_STORE_HEADERS = {
    'Cache-Control': 'no-store, no-cache, must-revalidate, proxy-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
}


def _subscription_state(user):
    now = utcnow_naive()
    subscription = current_subscription(user.id)
    return {
        'user': {'id': user.id},
        'active': is_subscription_active(subscription, now),
        'subscription': subscription.to_dict() if subscription else None,
    }


@subscriptions_bp.route('/me', methods=['GET'])
def my_subscription():
    user = optional_current_user()
    if not user:
        payload = {'user': None, 'active': False, 'subscription': None}
    else:
        payload = _subscription_state(user)
    response = jsonify(payload)
    response.headers.update(_NO_STORE_HEADERS)
    return response


@subscriptions_bp.route('/activate', methods=['POST'])
@login_required
def activate():
    data = _json_body() or {}
    subscription = activate_dummy_subscription(request.current_user, data.get('planCode'))
    payload = _subscription_state(request.current_user)
    payload['ok'] = True
    payload['activated'] = subscription.to_dict()
    response = jsonify(payload)
    response.headers.update(_NO_STORE_HEADERS)
    return response


@subscriptions_bp.route('/plans', methods=['GET'])
def list_plans():
    plans = SubscriptionPlan.query.filter_by(is_active=True).order_by(
        SubscriptionPlan.duration_days.asc(),
    ).all()
    return jsonify({'plans': [plan.to_dict() for plan in plans]})
