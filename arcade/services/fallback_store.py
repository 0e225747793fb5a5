"""Process-local leaderboard used when the database leaderboard is switched off.

Not authoritative: no accounts, no per-player dedup, no cross-process
consistency. Entries are kept sorted by score (newest first on ties) and
trimmed to ``max_keep`` per game.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEEP = 200
MAX_READ_LIMIT = 50


@dataclass
class FallbackEntry:
    player: str
    score: float
    created_at: float  # epoch ms

    def to_dict(self):
        return {'player': self.player, 'score': self.score, 'createdAt': self.created_at}


def _sort_key(entry: FallbackEntry):
    return (-entry.score, -entry.created_at)


class FallbackLeaderboardStore:
    def __init__(self, path: str | None = None, max_keep: int = DEFAULT_MAX_KEEP):
        self.path = path
        self.max_keep = max(1, int(max_keep))
        self._lock = threading.Lock()
        self._data: dict[str, list[FallbackEntry]] = {}
        if path:
            self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning('Ignoring unreadable fallback leaderboard file %s: %s', self.path, exc)
            return
        for game_slug, entries in (raw or {}).items():
            parsed = []
            for item in entries or []:
                try:
                    parsed.append(FallbackEntry(
                        player=str(item['player']),
                        score=float(item['score']),
                        created_at=float(item['created_at']),
                    ))
                except (KeyError, TypeError, ValueError):
                    continue
            parsed.sort(key=_sort_key)
            self._data[game_slug] = parsed[:self.max_keep]

    def _persist(self) -> None:
        if not self.path:
            return
        payload = {slug: [asdict(e) for e in entries] for slug, entries in self._data.items()}
        tmp_path = f'{self.path}.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as handle:
            json.dump(payload, handle)
        os.replace(tmp_path, self.path)

    def submit(self, game_slug: str, player: str, score: float, created_at: float | None = None) -> FallbackEntry:
        entry = FallbackEntry(
            player=player,
            score=score,
            created_at=created_at if created_at is not None else time.time() * 1000,
        )
        with self._lock:
            entries = self._data.setdefault(game_slug, [])
            entries.append(entry)
            entries.sort(key=_sort_key)
            del entries[self.max_keep:]
            self._persist()
        return entry

    def get_top(self, game_slug: str, limit: int = 10) -> list[FallbackEntry]:
        limit = max(1, min(int(limit), MAX_READ_LIMIT))
        with self._lock:
            return list(self._data.get(game_slug, [])[:limit])

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._persist()
