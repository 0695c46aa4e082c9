"""Deterministic Number Bingo cards.

A card number always maps to the same grid, on any machine and across
restarts, so a card can be shown to players before it is claimed.

Grids are column-major: ``grid[col][row]``. Column ``c`` holds numbers from
``COLUMN_RANGES[c]``; the centre cell is the FREE space.
"""

import math
from typing import List

FREE = 0
SIZE = 5
CENTER = 2

COLUMN_RANGES = [
    (1, 15),    # B
    (16, 30),   # I
    (31, 45),   # N
    (46, 60),   # G
    (61, 75),   # O
]


class SeededRandom:
    """Linear congruential generator.

    Must stay bit-for-bit stable: changing the constants changes every card.
    """

    def __init__(self, seed: int):
        self._seed = seed

    def next(self) -> float:
        self._seed = (self._seed * 9301 + 49297) % 233280
        return self._seed / 233280

    def next_int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi)."""
        return math.floor(self.next() * (hi - lo)) + lo


def generate_card(card_number: int) -> List[List[int]]:
    rng = SeededRandom(card_number)
    grid = []
    for col, (lo, hi) in enumerate(COLUMN_RANGES):
        candidates = list(range(lo, hi + 1))
        # Fisher-Yates, last index down
        for i in range(len(candidates) - 1, 0, -1):
            j = rng.next_int(0, i + 1)
            candidates[i], candidates[j] = candidates[j], candidates[i]
        column = candidates[:SIZE]
        if col == CENTER:
            column[CENTER] = FREE
        grid.append(column)
    return grid


def new_marking() -> List[List[bool]]:
    marked = [[False] * SIZE for _ in range(SIZE)]
    marked[CENTER][CENTER] = True
    return marked


def cells_with(grid: List[List[int]], number: int) -> List[tuple]:
    """(col, row) positions holding ``number``."""
    return [
        (col, row)
        for col in range(SIZE)
        for row in range(SIZE)
        if grid[col][row] == number and number != FREE
    ]
