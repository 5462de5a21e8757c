from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Puzzle:
    name: str
    start_text: tuple[str, ...]
    goal_text: tuple[str, ...]

    @classmethod
    def from_text(cls, name: str, start: str, goal: str) -> Puzzle:
        return cls(name=name, start_text=tuple(start.splitlines()), goal_text=tuple(goal.splitlines()))
