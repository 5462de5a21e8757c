"""
Deterministic scoring for a solved puzzle.

A score has two equally weighted parts, each worth at most 10000 points:
fewer keystrokes and less elapsed time both score higher. Either part drops
to zero at its cap (30 keystrokes, 30 seconds).
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

MAX_PART_SCORE = 10000
MAX_KEYS = 30
MAX_TIME_MS = 30000


def key_stroke_score(keys: Sequence[str]) -> float:
    return MAX_PART_SCORE - MAX_PART_SCORE * min(len(keys) / MAX_KEYS, 1)


def time_taken_score(time_taken_ms: float) -> float:
    return MAX_PART_SCORE - MAX_PART_SCORE * min(time_taken_ms / MAX_TIME_MS, 1)


def score(elapsed_ms: float, keys: Sequence[str]) -> float:
    return key_stroke_score(keys) + time_taken_score(elapsed_ms)


@dataclass
class Stats:
    """Per-player performance record.

    Times are clock readings in seconds (time.monotonic by default);
    time_taken_ms is derived from them when the score is calculated.
    """

    start_time: float | None = None
    finished_at: float | None = None
    time_taken_ms: float = 0
    keys_pressed: list[str] = field(default_factory=list)
    score: float = 0

    def start(self, now: float) -> None:
        self.start_time = now
        self.keys_pressed = []

    def calculate_score(self, keys: Sequence[str], now: float) -> float:
        if self.start_time is None:
            raise ValueError("cannot score a player whose game never started")
        self.finished_at = now
        self.time_taken_ms = (now - self.start_time) * 1000
        self.keys_pressed = list(keys)
        self.score = score(self.time_taken_ms, self.keys_pressed)
        return self.score
