"""Admin-only tournament management."""
import logging
import re

from flask import Blueprint, request, jsonify
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from arcade.app import db
from arcade.auth_utils import admin_required, optional_current_user
from arcade.errors import UpstreamFailure
from arcade.models import TOURNAMENT_STATUSES, Tournament, TournamentWinner
from arcade.routes.helpers import _coerce_bool, _emit_tournament_update, _json_body
from arcade.services.tournament_finalizer import finalize_tournament, read_winners, resolve_tournament
from arcade.time_utils import parse_iso_datetime, utcnow_naive

admin_bp = Blueprint('admin', __name__)
logger = logging.getLogger(__name__)


def slugify(raw_value):
    value = str(raw_value or '').lower().strip()
    value = re.sub(r'[\'"]', '', value)
    value = re.sub(r'[^a-z0-9]+', '-', value)
    return value.strip('-')


def _optional_text(data, key, max_len):
    value = str(data.get(key) or '').strip()[:max_len]
    return value or None


@admin_bp.route('/me', methods=['GET'])
def admin_me():
    user = optional_current_user()
    return jsonify({'isAdmin': bool(user and user.is_admin)})


@admin_bp.route('/tournaments/list', methods=['GET'])
@admin_required
def list_tournaments():
    query = Tournament.query

    q = str(request.args.get('q') or '').strip()
    if q:
        pattern = f'%{q}%'
        query = query.filter(or_(Tournament.title.ilike(pattern), Tournament.slug.ilike(pattern)))

    status = str(request.args.get('status') or '').strip().lower()
    if status and status != 'all':
        query = query.filter(Tournament.status == status)

    game = str(request.args.get('gameSlug') or request.args.get('game') or '').strip()
    if game and game != 'all':
        query = query.filter(Tournament.game_slug == game)

    rows = query.order_by(Tournament.starts_at.desc(), Tournament.id.desc()).all()
    return jsonify({'rows': [t.to_dict() for t in rows]})


@admin_bp.route('/tournaments/upsert', methods=['POST'])
@admin_required
def upsert_tournament():
    data = _json_body()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400

    title = str(data.get('title') or '').strip()[:200]
    slug = slugify(data.get('slug') or title)[:120]
    game_slug = str(data.get('game_slug') or '').strip()
    status = str(data.get('status') or 'scheduled').strip().lower()

    if not title:
        return jsonify({'error': 'Missing title'}), 400
    if not slug:
        return jsonify({'error': 'Missing slug'}), 400
    if not game_slug:
        return jsonify({'error': 'Missing game_slug'}), 400
    if not data.get('starts_at'):
        return jsonify({'error': 'Missing starts_at'}), 400
    if not data.get('ends_at'):
        return jsonify({'error': 'Missing ends_at'}), 400
    if status not in TOURNAMENT_STATUSES:
        return jsonify({'error': 'Invalid status'}), 400

    starts_at = parse_iso_datetime(data.get('starts_at'))
    ends_at = parse_iso_datetime(data.get('ends_at'))
    if not starts_at:
        return jsonify({'error': 'Invalid starts_at'}), 400
    if not ends_at:
        return jsonify({'error': 'Invalid ends_at'}), 400
    if ends_at <= starts_at:
        return jsonify({'error': 'ends_at must be after starts_at'}), 400

    tournament = None
    if data.get('id') not in (None, ''):
        tournament = resolve_tournament(tournament_id=data.get('id'))

    duplicate = Tournament.query.filter(Tournament.slug == slug)
    if tournament is not None:
        duplicate = duplicate.filter(Tournament.id != tournament.id)
    if duplicate.first():
        return jsonify({'error': 'Slug already exists'}), 409

    now = utcnow_naive()
    created = tournament is None
    if created:
        tournament = Tournament(created_at=now)
        db.session.add(tournament)
    previous_slug = tournament.slug

    tournament.slug = slug
    tournament.title = title
    tournament.game_slug = game_slug
    tournament.starts_at = starts_at
    tournament.ends_at = ends_at
    tournament.status = status
    tournament.description = _optional_text(data, 'description', 5000)
    tournament.prize = _optional_text(data, 'prize', 2000)
    tournament.prize_1 = _optional_text(data, 'prize_1', 200)
    tournament.prize_2 = _optional_text(data, 'prize_2', 200)
    tournament.prize_3 = _optional_text(data, 'prize_3', 200)
    tournament.thumbnail_url = _optional_text(data, 'thumbnail_url', 500)
    tournament.updated_at = now

    try:
        db.session.flush()
        if previous_slug and previous_slug != slug:
            TournamentWinner.query.filter_by(tournament_slug=previous_slug).update(
                {'tournament_slug': slug}, synchronize_session=False,
            )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Slug already exists'}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc

    logger.info('%s tournament %s', 'Created' if created else 'Updated', tournament.slug)
    _emit_tournament_update(tournament.slug, 'created' if created else 'updated')
    return jsonify({'ok': True, 'tournament': tournament.to_dict()}), 201 if created else 200


@admin_bp.route('/tournaments/delete', methods=['POST'])
@admin_required
def delete_tournament():
    data = _json_body() or {}
    if data.get('id') in (None, '') and not data.get('slug'):
        return jsonify({'error': 'Missing id'}), 400
    tournament = resolve_tournament(tournament_id=data.get('id'), tournament_slug=data.get('slug'))

    if read_winners(tournament.slug):
        return jsonify({'error': 'Cannot delete: winners exist (finalized)'}), 409

    slug = tournament.slug
    db.session.delete(tournament)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc

    logger.info('Deleted tournament %s', slug)
    _emit_tournament_update(slug, 'deleted')
    return jsonify({'ok': True})


@admin_bp.route('/tournaments/finalize', methods=['POST'])
@admin_required
def finalize():
    data = _json_body() or {}
    if data.get('tournamentId') in (None, '') and not data.get('tournamentSlug'):
        return jsonify({'error': 'Missing tournamentId'}), 400

    tournament = resolve_tournament(
        tournament_id=data.get('tournamentId'),
        tournament_slug=data.get('tournamentSlug'),
    )
    force = _coerce_bool(data.get('force'))
    winners = finalize_tournament(tournament, force=force)

    _emit_tournament_update(tournament.slug, 'finalized')
    payload = {'ok': True, 'winners': [w.to_dict() for w in winners]}
    if not winners:
        payload['message'] = 'No scores found; nothing to finalize.'
    return jsonify(payload)


@admin_bp.route('/tournaments/winners', methods=['GET'])
@admin_required
def list_winners():
    if request.args.get('tournamentId') in (None, '') and not request.args.get('tournamentSlug'):
        return jsonify({'error': 'Missing tournamentId'}), 400
    tournament = resolve_tournament(
        tournament_id=request.args.get('tournamentId'),
        tournament_slug=request.args.get('tournamentSlug'),
    )
    rows = []
    for winner in read_winners(tournament.slug):
        row = winner.to_dict()
        row['tournament_id'] = tournament.id
        rows.append(row)
    return jsonify({'rows': rows})


@admin_bp.route('/tournaments/winners/update', methods=['POST'])
@admin_required
def update_winner():
    data = _json_body() or {}
    try:
        winner_id = int(data.get('id'))
    except (TypeError, ValueError):
        return jsonify({'error': 'Missing winner row id'}), 400

    winner = db.session.get(TournamentWinner, winner_id)
    if not winner:
        return jsonify({'error': 'Winner not found'}), 404

    # Rank, user and score come from the finalizer; only display text is editable.
    if data.get('player_name') is not None:
        player_name = str(data.get('player_name') or '').strip()[:80]
        if not player_name:
            return jsonify({'error': 'player_name cannot be empty'}), 400
        winner.player_name = player_name
    if 'prize' in data:
        winner.prize = _optional_text(data, 'prize', 200)

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamFailure(str(exc)) from exc

    _emit_tournament_update(winner.tournament_slug, 'winner_updated')
    return jsonify({'ok': True, 'row': winner.to_dict()})
