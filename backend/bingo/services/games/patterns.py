"""Winning patterns over a 5x5 marking matrix (``marked[col][row]``)."""

from typing import List, Optional

Marking = List[List[bool]]

SIZE = 5

PATTERNS = ('any-line', 'horizontal', 'vertical', 'diagonal', 'four-corners', 'full-house')


def has_horizontal_line(marked: Marking) -> bool:
    return any(all(marked[col][row] for col in range(SIZE)) for row in range(SIZE))


def has_vertical_line(marked: Marking) -> bool:
    return any(all(marked[col][row] for row in range(SIZE)) for col in range(SIZE))


def has_diagonal_line(marked: Marking) -> bool:
    main = all(marked[i][i] for i in range(SIZE))
    anti = all(marked[SIZE - 1 - i][i] for i in range(SIZE))
    return main or anti


def has_four_corners(marked: Marking) -> bool:
    last = SIZE - 1
    return marked[0][0] and marked[last][0] and marked[0][last] and marked[last][last]


def has_full_house(marked: Marking) -> bool:
    return all(all(column) for column in marked)


_CHECKS = {
    'horizontal': has_horizontal_line,
    'vertical': has_vertical_line,
    'diagonal': has_diagonal_line,
    'four-corners': has_four_corners,
    'full-house': has_full_house,
}


def matched_pattern(marked: Marking, winning_pattern: str) -> Optional[str]:
    """Return the pattern the marking satisfies under ``winning_pattern``.

    ``any-line`` reports the concrete line found (horizontal, then vertical,
    then diagonal). Returns None when nothing matches.
    """
    if winning_pattern == 'any-line':
        for name in ('horizontal', 'vertical', 'diagonal'):
            if _CHECKS[name](marked):
                return name
        return None
    check = _CHECKS.get(winning_pattern)
    if check is None:
        raise ValueError(f"Unknown winning pattern: {winning_pattern}")
    return winning_pattern if check(marked) else None


def satisfies(marked: Marking, winning_pattern: str) -> bool:
    return matched_pattern(marked, winning_pattern) is not None
