"""Static arcade catalog. Games are shipped builds, not database rows."""

PLACEHOLDER_IMG = '/images/placeholder.webp'

GAMES = (
    {
        'name': 'Boss Rush (Demo)',
        'slug': 'boss-rush',
        'thumbnail': PLACEHOLDER_IMG,
        'shortPitch': 'Neon reflex boss fights. Tap fast, survive longer, post score.',
        'controls': ['Tap / click to dodge', 'Survive as long as possible'],
        'buildType': 'iframe',
        'sourceUrl': '/games/boss-rush/index.html',
        'embedAllowed': True,
        'embed': {'aspectRatio': '16/9', 'minHeight': 520, 'orientation': 'landscape'},
        'leaderboard': True,
        'featured': False,
        'genre': 'Shooter',
        'difficulty': 'Medium',
        'estTime': '60s',
        'rating': {'value': 4.6, 'count': 1280},
    },
)


def list_games(genre=None, leaderboard_only=False):
    games = list(GAMES)
    if genre:
        wanted = str(genre).strip().lower()
        games = [g for g in games if str(g.get('genre') or '').lower() == wanted]
    if leaderboard_only:
        games = [g for g in games if g.get('leaderboard')]
    return games


def get_game(slug):
    slug = str(slug or '').strip()
    return next((g for g in GAMES if g['slug'] == slug), None)
