import secrets
import string
from typing import Callable, Hashable, Iterable, List, Optional, Sequence


class DrawPool:
    """Exhaustible set of callable values, drawn without replacement.

    The pool holds no history of its own: callers pass what has already been
    drawn and record the returned value themselves. Draws use ``secrets`` so the
    order cannot be predicted from earlier calls.
    """

    def __init__(self, domain: Iterable[Hashable], choose: Callable[[Sequence], Hashable] = secrets.choice):
        self.domain = list(domain)
        self._choose = choose

    def remaining(self, already_drawn: Iterable[Hashable]) -> List[Hashable]:
        drawn = set(already_drawn)
        return [value for value in self.domain if value not in drawn]

    def draw_next(self, already_drawn: Iterable[Hashable]) -> Optional[Hashable]:
        """Return a value not in ``already_drawn``, or None once exhausted."""
        candidates = self.remaining(already_drawn)
        if not candidates:
            return None
        return self._choose(candidates)


NUMBERS = range(1, 76)
LETTERS = string.ascii_uppercase

NUMBER_POOL = DrawPool(NUMBERS)
LETTER_POOL = DrawPool(LETTERS)
