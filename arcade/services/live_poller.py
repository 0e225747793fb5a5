"""Client for ``GET /api/tournaments/live-games``.

Mirrors what the game lobby does: at most one refresh per ``min_interval``
seconds, overlapping refreshes are dropped while one is in flight, and a
failed refresh keeps the last good rows.
"""
import logging
import threading
import time

import requests

logger = logging.getLogger(__name__)

LIVE_GAMES_PATH = '/api/tournaments/live-games'
DEFAULT_MIN_INTERVAL_SECONDS = 15


class LiveTournamentsPoller:
    def __init__(self, base_url, session=None, min_interval=DEFAULT_MIN_INTERVAL_SECONDS,
                 clock=time.monotonic, timeout=5):
        self.base_url = str(base_url or '').rstrip('/')
        self.session = session or requests.Session()
        self.min_interval = min_interval
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._pending = False
        self._last_fetch_at = None
        self.rows = []
        self.game_slugs = []
        self.last_error = None

    def _due(self):
        if self._last_fetch_at is None:
            return True
        return self._clock() - self._last_fetch_at >= self.min_interval

    def refresh(self, force=False):
        """Fetch live tournaments if due; returns True when a request was made."""
        with self._lock:
            if self._pending:
                return False
            if not force and not self._due():
                return False
            self._pending = True
            self._last_fetch_at = self._clock()

        try:
            response = self.session.get(f'{self.base_url}{LIVE_GAMES_PATH}', timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            self.last_error = str(exc) or 'Failed to load live tournaments'
            logger.warning('Live tournaments refresh failed: %s', self.last_error)
        else:
            self.rows = list(payload.get('rows') or [])
            self.game_slugs = list(payload.get('gameSlugs') or [row.get('gameSlug') for row in self.rows])
            self.last_error = None
        finally:
            with self._lock:
                self._pending = False
        return True

    def find_for_game(self, game_slug):
        slug = str(game_slug or '').strip()
        if not slug:
            return None
        return next((row for row in self.rows if row.get('gameSlug') == slug), None)

    def is_live(self, game_slug):
        return self.find_for_game(game_slug) is not None
