"""Subscription plans, the active-subscription gate, and dummy activation."""
import logging
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from arcade.app import db
from arcade.errors import InvalidInput, NotFound, UpstreamFailure
from arcade.models import Subscription, SubscriptionPlan
from arcade.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

DEFAULT_PLANS = (
    {'code': '1d', 'title': 'Day Pass', 'duration_days': 1, 'price_bdt': 20},
    {'code': '7d', 'title': 'Weekly Pass', 'duration_days': 7, 'price_bdt': 100},
    {'code': '30d', 'title': 'Monthly Pass', 'duration_days': 30, 'price_bdt': 300},
)

PLAN_CODE_ALIASES = {
    '1d': '1d',
    '7d': '7d',
    '30d': '30d',
    'day': '1d',
    'week': '7d',
    'month': '30d',
}


def seed_default_plans():
    existing = {plan.code for plan in SubscriptionPlan.query.all()}
    created = 0
    for plan in DEFAULT_PLANS:
        if plan['code'] in existing:
            continue
        db.session.add(SubscriptionPlan(**plan))
        created += 1
    if created:
        db.session.commit()
    return created


def is_subscription_active(subscription, now=None):
    if not subscription or subscription.status != 'active':
        return False
    now = now or utcnow_naive()
    return subscription.starts_at <= now < subscription.ends_at


def current_subscription(user_id):
    """Most relevant subscription record: the one ending last."""
    return Subscription.query.filter_by(user_id=user_id).order_by(
        Subscription.ends_at.desc(),
        Subscription.id.desc(),
    ).first()


def has_active_subscription(user_id, now=None):
    now = now or utcnow_naive()
    return db.session.query(
        Subscription.query.filter(
            Subscription.user_id == user_id,
            Subscription.status == 'active',
            Subscription.starts_at <= now,
            Subscription.ends_at > now,
        ).exists()
    ).scalar()


def normalize_plan_code(raw_code):
    code = str(raw_code or '').strip().lower()
    if not code:
        raise InvalidInput('Missing planCode')
    return PLAN_CODE_ALIASES.get(code, code)


def activate_dummy_subscription(user, plan_code, now=None):
    """Grant a plan without payment.

    Any active record is superseded and its remaining time carried into the
    new one, so the newest record is always the one the gate reads.
    """
    now = now or utcnow_naive()
    code = normalize_plan_code(plan_code)
    plan = SubscriptionPlan.query.filter_by(code=code, is_active=True).first()
    if not plan:
        raise NotFound('Unknown subscription plan')

    base = now
    active_rows = Subscription.query.filter(
        Subscription.user_id == user.id,
        Subscription.status == 'active',
        Subscription.ends_at > now,
    ).all()
    for row in active_rows:
        if row.ends_at > base:
            base = row.ends_at
        row.status = 'superseded'
        row.updated_at = now

    subscription = Subscription(
        user_id=user.id,
        plan_id=plan.id,
        status='active',
        starts_at=now,
        ends_at=base + timedelta(days=plan.duration_days),
        amount_bdt=plan.price_bdt,
        currency='BDT',
        provider='dummy',
        provider_ref=f'dummy-{user.id}-{int(now.timestamp())}',
    )
    db.session.add(subscription)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc

    logger.info('Activated dummy %s subscription for user %s', code, user.id)
    return subscription
