"""Start/goal text pairs handed to both players of a match."""

import random

from golf.puzzles import fizz_buzz, fizz_buzz_map
from golf.puzzles.models import Puzzle

PUZZLES: tuple[Puzzle, ...] = (fizz_buzz.PUZZLE, fizz_buzz_map.PUZZLE)


def get_puzzle(name: str) -> Puzzle:
    for puzzle in PUZZLES:
        if puzzle.name == name:
            return puzzle
    raise KeyError(f"unknown puzzle {name!r}")


def generate(rng: random.Random | None = None) -> Puzzle:
    """Pick a random puzzle. Puzzles are immutable and may be shared between matches."""
    return (rng or random).choice(PUZZLES)
