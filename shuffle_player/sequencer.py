"""Non-repeating shuffle order with bounded back-navigation."""

import random
from typing import Optional


class ShuffleSequencer:
    """Shuffled traversal over `n` items.

    `order` is a permutation of track indices generated once per playlist.
    `history` is a stack of *positions in order* visited going forward.
    Going forward always picks the first position not yet in history, so a
    full pass reads the permutation left to right and never repeats.
    Going back pops history and never re-pushes, so it cannot reach past
    the first track of the session.
    """

    def __init__(self, rng=None):
        self._rng = rng if rng is not None else random.Random()
        self._order: list[int] = []
        self._history: list[int] = []
        self._visited: set[int] = set()

    def initialize(self, n: int) -> None:
        """Shuffle `0..n-1` with Fisher-Yates and forget the play history."""
        if n < 0:
            raise ValueError(f"track count must be >= 0, got {n}")
        order = list(range(n))
        for i in range(n - 1, 0, -1):
            j = self._rng.randint(0, i)
            order[i], order[j] = order[j], order[i]
        self._order = order
        self._history = []
        self._visited = set()

    @property
    def order(self) -> tuple:
        return tuple(self._order)

    @property
    def history(self) -> tuple:
        return tuple(self._history)

    @property
    def is_empty(self) -> bool:
        return not self._order

    @property
    def is_exhausted(self) -> bool:
        return self.peek_next() is None

    def __len__(self) -> int:
        return len(self._order)

    def track_index(self, position: int) -> int:
        """Map a position in the shuffled order to a track index."""
        if not 0 <= position < len(self._order):
            raise IndexError(f"position {position} outside order of length {len(self._order)}")
        return self._order[position]

    def peek_next(self) -> Optional[int]:
        """Return the position `advance()` would yield, without recording it."""
        for position in range(len(self._order)):
            if position not in self._visited:
                return position
        return None

    def mark_visited(self, position: int) -> None:
        """Push `position` onto the history stack."""
        if not 0 <= position < len(self._order):
            raise IndexError(f"position {position} outside order of length {len(self._order)}")
        if position in self._visited:
            return
        self._history.append(position)
        self._visited.add(position)

    def advance(self) -> Optional[int]:
        """Return the next unplayed position and record it, or None when exhausted."""
        position = self.peek_next()
        if position is not None:
            self.mark_visited(position)
        return position

    def peek_previous(self) -> Optional[int]:
        """Return the position `retreat()` would yield, without popping."""
        if len(self._history) <= 1:
            return None
        return self._history[-2]

    def retreat(self) -> Optional[int]:
        """Drop the latest history entry and return the new top, or None at the start."""
        if len(self._history) <= 1:
            return None
        self._visited.discard(self._history.pop())
        return self._history[-1]
