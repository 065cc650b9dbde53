"""Value objects flowing from the poller into the scorer."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from rac.periods import Period


@dataclass(frozen=True)
class GameProgress:
    """Achievements one user has earned in one challenge game."""

    game_id: str
    earned: frozenset[str]
    achievement_total: int

    @property
    def count(self) -> int:
        return len(self.earned)


def progress_signature(games: Iterable[GameProgress]) -> str:
    """Stable hash of a user's progress across all challenge games."""
    canonical = sorted(
        (g.game_id, sorted(g.earned), g.achievement_total) for g in games
    )
    return hashlib.sha256(json.dumps(canonical).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CheckResult:
    """Changed progress for one user in one period, produced by a poll cycle."""

    username: str
    period: Period
    checked_at: datetime
    games: tuple[GameProgress, ...]
    signature: str
    forced: bool = False
