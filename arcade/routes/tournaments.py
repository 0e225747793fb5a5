"""Public tournament routes: listing, leaderboards, score submission, winners."""
from flask import Blueprint, request, jsonify
from arcade.auth_utils import optional_current_user
from arcade.models import Tournament
from arcade.routes.helpers import _emit_tournament_update, _json_body
from arcade.services.leaderboard import clamp_limit
from arcade.services.tournament_finalizer import winners_for_slug
from arcade.services.tournament_scores import (
    participant_count,
    submit_tournament_score,
    tournament_leaderboard_rows,
)
from arcade.services.tournament_status import (
    LIVE,
    serialize_with_status,
    tournament_effective_status,
)
from arcade.time_utils import parse_iso_datetime, utcnow_naive

tournaments_bp = Blueprint('tournaments', __name__)

_DEFAULT_LEADERBOARD_LIMIT = 50
_MAX_LEADERBOARD_LIMIT = 200


@tournaments_bp.route('', methods=['GET'])
@tournaments_bp.route('/list', methods=['GET'])
def list_tournaments():
    now = utcnow_naive()
    query = Tournament.query
    game_slug = str(request.args.get('gameSlug') or '').strip()
    if game_slug:
        query = query.filter(Tournament.game_slug == game_slug)
    rows = query.order_by(Tournament.starts_at.asc(), Tournament.id.asc()).all()

    wanted_status = str(request.args.get('status') or '').strip().lower()
    tournaments = [serialize_with_status(t, now) for t in rows]
    if wanted_status:
        tournaments = [t for t in tournaments if t['effective_status'] == wanted_status]
    return jsonify({'tournaments': tournaments})


@tournaments_bp.route('/by-slug', methods=['GET'])
def get_by_slug():
    slug = str(request.args.get('slug') or '').strip()
    if not slug:
        return jsonify({'error': 'Missing slug'}), 400
    tournament = Tournament.query.filter_by(slug=slug).first()
    if not tournament:
        return jsonify({'tournament': None})
    return jsonify({'tournament': serialize_with_status(tournament)})


@tournaments_bp.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    slug = str(request.args.get('slug') or '').strip()
    if not slug:
        return jsonify({'error': 'Missing slug'}), 400
    limit = clamp_limit(
        request.args.get('limit'),
        default=_DEFAULT_LEADERBOARD_LIMIT,
        maximum=_MAX_LEADERBOARD_LIMIT,
    )

    tournament = Tournament.query.filter_by(slug=slug).first()
    if not tournament:
        return jsonify({'tournament': None, 'rows': []})

    payload = serialize_with_status(tournament)
    payload['participants'] = participant_count(tournament)
    return jsonify({
        'tournament': payload,
        'rows': tournament_leaderboard_rows(tournament, limit),
    })


@tournaments_bp.route('/submit', methods=['POST'])
def submit_score():
    user = optional_current_user()
    data = _json_body() or {}
    result = submit_tournament_score(data.get('tournamentSlug'), data.get('score'), user)
    tournament = result.pop('tournament')
    if result['updated']:
        _emit_tournament_update(tournament.slug, 'score')
    return jsonify(result)


@tournaments_bp.route('/winners', methods=['GET'])
def get_winners():
    slug = str(request.args.get('slug') or '').strip()
    if not slug:
        return jsonify({'error': 'Missing slug'}), 400

    winners, finalized_was = winners_for_slug(slug)
    payload = {'slug': slug, 'winners': [w.to_dict() for w in winners]}
    if finalized_was is not None:
        payload['finalizedWas'] = finalized_was
        if winners and not finalized_was:
            _emit_tournament_update(slug, 'finalized')
    return jsonify(payload)


@tournaments_bp.route('/live-games', methods=['GET'])
def live_games():
    now = utcnow_naive()
    candidates = Tournament.query.filter(
        Tournament.starts_at <= now,
        Tournament.ends_at > now,
        Tournament.status.in_(('scheduled', 'live')),
    ).order_by(Tournament.ends_at.asc(), Tournament.id.asc()).all()

    # One row per game: the tournament ending soonest.
    by_game = {}
    for tournament in candidates:
        if tournament_effective_status(tournament, now) != LIVE:
            continue
        if tournament.game_slug in by_game:
            continue
        by_game[tournament.game_slug] = {
            'tournamentSlug': tournament.slug,
            'gameSlug': tournament.game_slug,
            'startsAt': tournament.starts_at.isoformat(),
            'endsAt': tournament.ends_at.isoformat(),
        }

    rows = list(by_game.values())
    return jsonify({
        'now': now.isoformat(),
        'rows': rows,
        'gameSlugs': [row['gameSlug'] for row in rows],
    })


@tournaments_bp.route('/check-conflict', methods=['GET'])
def check_conflict():
    game_slug = str(request.args.get('gameSlug') or '').strip()
    raw_starts = request.args.get('startsAt')
    raw_ends = request.args.get('endsAt')
    if not game_slug or not raw_starts or not raw_ends:
        return jsonify({'error': 'Missing gameSlug, startsAt, endsAt'}), 400

    starts_at = parse_iso_datetime(raw_starts)
    ends_at = parse_iso_datetime(raw_ends)
    if not starts_at or not ends_at:
        return jsonify({'error': 'Invalid startsAt or endsAt'}), 400

    query = Tournament.query.filter(
        Tournament.game_slug == game_slug,
        Tournament.starts_at < ends_at,
        Tournament.ends_at > starts_at,
    )
    exclude_slug = str(request.args.get('excludeSlug') or '').strip()
    if exclude_slug:
        query = query.filter(Tournament.slug != exclude_slug)

    matches = [
        {
            'slug': t.slug,
            'title': t.title,
            'starts_at': t.starts_at.isoformat(),
            'ends_at': t.ends_at.isoformat(),
            'status': t.status,
        }
        for t in query.order_by(Tournament.starts_at.asc()).all()
    ]
    return jsonify({'conflict': bool(matches), 'matches': matches})
