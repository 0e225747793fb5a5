import json
from arcade.app import db
from arcade.time_utils import utcnow_naive, isoformat_or_none


def _safe_json(raw_value, fallback=None):
    if fallback is None:
        fallback = []
    if not raw_value:
        return fallback
    try:
        return json.loads(raw_value)
    except (TypeError, ValueError):
        return fallback


TOURNAMENT_STATUSES = ('scheduled', 'live', 'ended', 'canceled')
USER_ROLES = ('admin', 'user')


class User(db.Model):
    """Account plus public profile (display name, role)."""
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    display_name = db.Column(db.String(80), nullable=False, default='Player')
    role = db.Column(db.String(20), nullable=False, default='user')  # admin, user
    phone = db.Column(db.String(32), unique=True, nullable=True)
    avatar_url = db.Column(db.String(500), default='')
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id, 'username': self.username, 'email': self.email,
            'display_name': self.display_name, 'role': self.role,
            'avatar_url': self.avatar_url,
            'created_at': isoformat_or_none(self.created_at),
        }


class SubmissionWindow(db.Model):
    """Leaderboard submissions one account made in a fixed time window."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    window_started_at = db.Column(db.DateTime, nullable=False)
    submit_count = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'window_started_at', name='uq_submission_window_user'),
    )


# ── Tournaments ──────────────────────────────────────────────────────

class Tournament(db.Model):
    """Timed high-score tournament for one arcade game."""
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    game_slug = db.Column(db.String(64), nullable=False)
    starts_at = db.Column(db.DateTime, nullable=False)
    ends_at = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='scheduled')
    # scheduled, live, ended, canceled (advisory; see tournament_status)
    finalized = db.Column(db.Boolean, nullable=False, default=False)
    prize = db.Column(db.Text, nullable=True)
    prize_1 = db.Column(db.String(200), nullable=True)
    prize_2 = db.Column(db.String(200), nullable=True)
    prize_3 = db.Column(db.String(200), nullable=True)
    thumbnail_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
    updated_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.CheckConstraint('ends_at > starts_at', name='ck_tournament_window'),
        db.Index('ix_tournament_game_window', 'game_slug', 'starts_at', 'ends_at'),
    )

    def prize_for_rank(self, rank):
        value = {1: self.prize_1, 2: self.prize_2, 3: self.prize_3}.get(rank)
        value = str(value or '').strip()
        return value or None

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'title': self.title,
            'description': self.description,
            'game_slug': self.game_slug,
            'starts_at': isoformat_or_none(self.starts_at),
            'ends_at': isoformat_or_none(self.ends_at),
            'status': self.status,
            'finalized': bool(self.finalized),
            'prize': self.prize,
            'prize_1': self.prize_1,
            'prize_2': self.prize_2,
            'prize_3': self.prize_3,
            'thumbnail_url': self.thumbnail_url,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }


class TournamentScore(db.Model):
    """Best score per (tournament, user)."""
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(
        db.Integer, db.ForeignKey('tournament.id', ondelete='CASCADE'), nullable=False,
    )
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    player_name = db.Column(db.String(80), nullable=False)
    score = db.Column(db.Float, nullable=False)
    achieved_at = db.Column(db.DateTime, nullable=False, default=lambda: utcnow_naive())
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
    updated_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'user_id', name='uq_tournament_score_user'),
        db.Index('ix_tournament_score_ranking', 'tournament_id', 'score', 'achieved_at'),
    )

    tournament = db.relationship(
        'Tournament',
        backref=db.backref('scores', cascade='all, delete-orphan'),
    )

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'player_name': self.player_name,
            'score': self.score,
            'achieved_at': isoformat_or_none(self.achieved_at),
            'created_at': isoformat_or_none(self.created_at),
        }


class TournamentWinner(db.Model):
    """Finalized podium row, keyed by tournament slug and rank."""
    id = db.Column(db.Integer, primary_key=True)
    tournament_slug = db.Column(
        db.String(120),
        db.ForeignKey('tournament.slug', onupdate='CASCADE'),
        nullable=False,
    )
    rank = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    player_name = db.Column(db.String(80), nullable=False)
    score = db.Column(db.Float, nullable=False)
    prize = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('tournament_slug', 'rank', name='uq_tournament_winner_rank'),
        db.UniqueConstraint('tournament_slug', 'user_id', name='uq_tournament_winner_user'),
        db.CheckConstraint('rank BETWEEN 1 AND 3', name='ck_tournament_winner_rank'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_slug': self.tournament_slug,
            'rank': self.rank,
            'user_id': self.user_id,
            'player_name': self.player_name,
            'score': self.score,
            'prize': self.prize,
            'created_at': isoformat_or_none(self.created_at),
        }


# ── Global leaderboards ──────────────────────────────────────────────

class LeaderboardScore(db.Model):
    """Raw score submission; best-per-user is computed at read time."""
    id = db.Column(db.Integer, primary_key=True)
    game_slug = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    player_name = db.Column(db.String(32), nullable=False, default='Player')
    score = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.Index('ix_leaderboard_score_game_created', 'game_slug', 'created_at'),
        db.Index('ix_leaderboard_score_game_score', 'game_slug', 'score'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'player': self.player_name or 'Player',
            'score': int(self.score or 0),
            'createdAt': isoformat_or_none(self.created_at),
        }


class LeaderboardDailyBest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    game_slug = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    player_name = db.Column(db.String(32), nullable=True)
    score = db.Column(db.Integer, nullable=False)
    rank = db.Column(db.Integer, nullable=False)
    source_score_id = db.Column(db.Integer, db.ForeignKey('leaderboard_score.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('date', 'game_slug', 'user_id', name='uq_leaderboard_daily_best_user'),
    )

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'game_slug': self.game_slug,
            'user_id': self.user_id,
            'player': self.player_name or 'Player',
            'score': self.score,
            'rank': self.rank,
        }


class LeaderboardWeeklyBest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    week_start = db.Column(db.Date, nullable=False)
    week_end = db.Column(db.Date, nullable=False)
    game_slug = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    player_name = db.Column(db.String(32), nullable=True)
    score = db.Column(db.Integer, nullable=False)
    rank = db.Column(db.Integer, nullable=False)
    source_score_id = db.Column(db.Integer, db.ForeignKey('leaderboard_score.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('week_start', 'game_slug', 'user_id', name='uq_leaderboard_weekly_best_user'),
    )

    def to_dict(self):
        return {
            'week_start': self.week_start.isoformat(),
            'week_end': self.week_end.isoformat(),
            'game_slug': self.game_slug,
            'user_id': self.user_id,
            'player': self.player_name or 'Player',
            'score': self.score,
            'rank': self.rank,
        }


# ── Subscriptions ────────────────────────────────────────────────────

class SubscriptionPlan(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False)
    title = db.Column(db.String(120), nullable=False)
    duration_days = db.Column(db.Integer, nullable=False)
    price_bdt = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'code': self.code,
            'title': self.title,
            'duration_days': self.duration_days,
            'price_bdt': self.price_bdt,
        }


class Subscription(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    plan_id = db.Column(db.Integer, db.ForeignKey('subscription_plan.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')
    # active, superseded, canceled
    starts_at = db.Column(db.DateTime, nullable=False)
    ends_at = db.Column(db.DateTime, nullable=False)
    amount_bdt = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default='BDT')
    provider = db.Column(db.String(40), nullable=True)
    provider_ref = db.Column(db.String(120), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
    updated_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.Index('ix_subscription_user_ends', 'user_id', 'ends_at'),
    )

    plan = db.relationship('SubscriptionPlan')

    def to_dict(self):
        return {
            'id': self.id,
            'status': self.status,
            'starts_at': isoformat_or_none(self.starts_at),
            'ends_at': isoformat_or_none(self.ends_at),
            'amount_bdt': self.amount_bdt,
            'currency': self.currency,
            'provider': self.provider,
            'provider_ref': self.provider_ref,
            'subscription_plans': self.plan.to_dict() if self.plan else None,
        }


# ── Portfolio content ────────────────────────────────────────────────

class Work(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(160), unique=True, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(40), nullable=False)  # games, ar-vr, vfx, animation
    short_description = db.Column(db.Text, nullable=True)
    year = db.Column(db.Integer, nullable=True)
    role = db.Column(db.String(120), nullable=True)
    tools_json = db.Column(db.Text, default='[]')
    tags_json = db.Column(db.Text, default='[]')
    highlights_json = db.Column(db.Text, default='[]')
    outcome = db.Column(db.Text, nullable=True)
    cta = db.Column(db.String(200), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=100)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
    updated_at = db.Column(db.DateTime, nullable=True)

    media = db.relationship(
        'WorkMedia',
        backref='work',
        order_by='WorkMedia.sort_order',
        cascade='all, delete-orphan',
    )

    def to_dict(self):
        hero = next((m for m in self.media if m.kind == 'hero'), None)
        gallery = [m for m in self.media if m.kind == 'gallery']
        return {
            'slug': self.slug,
            'title': self.title,
            'category': self.category,
            'shortDescription': self.short_description or '',
            'year': self.year,
            'role': self.role,
            'tools': _safe_json(self.tools_json),
            'tags': _safe_json(self.tags_json),
            'highlights': _safe_json(self.highlights_json),
            'outcome': self.outcome,
            'cta': self.cta,
            'hero': hero.to_dict(f'{self.title} hero') if hero else None,
            'gallery': [
                item.to_dict(f'{self.title} image {index}')
                for index, item in enumerate(gallery, start=1)
            ],
        }


class WorkMedia(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    work_id = db.Column(db.Integer, db.ForeignKey('work.id'), nullable=False)
    kind = db.Column(db.String(20), nullable=False)  # hero, gallery
    path = db.Column(db.String(500), nullable=False)
    alt = db.Column(db.String(200), nullable=True)
    sort_order = db.Column(db.Integer, default=0)

    def to_dict(self, default_alt=''):
        return {'type': 'image', 'src': self.path, 'alt': self.alt or default_alt}


class Service(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    value_prop = db.Column(db.Text, nullable=False, default='')
    deliverables_json = db.Column(db.Text, default='[]')
    process_steps_json = db.Column(db.Text, default='[]')
    timeline = db.Column(db.String(120), nullable=True)
    faq_json = db.Column(db.Text, default='[]')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=100)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'slug': self.slug,
            'title': self.title,
            'valueProp': self.value_prop,
            'deliverables': _safe_json(self.deliverables_json),
            'processSteps': _safe_json(self.process_steps_json),
            'timeline': self.timeline,
            'faq': _safe_json(self.faq_json),
        }


class ContactMessage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    project_type = db.Column(db.String(40), nullable=True)
    budget = db.Column(db.String(40), nullable=True)
    message = db.Column(db.Text, nullable=False)
    ip = db.Column(db.String(80), nullable=True)
    user_agent = db.Column(db.String(300), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='new')
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
