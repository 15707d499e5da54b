"""
Append-only conversation history.
"""
from typing import Optional

from eure.models.turn import Turn


class HistoryStore:
    """
    Ordered log of turns. `append` is the only mutator and `snapshot` hands
    out an immutable copy, so a snapshot never changes after it is taken.
    """

    def __init__(self, turns: tuple[Turn, ...] = ()):
        self._turns: list[Turn] = []
        for turn in turns:
            self.append(turn)

    def append(self, turn: Turn) -> None:
        if not isinstance(turn, Turn):
            raise TypeError(f'expected Turn, got {type(turn).__name__}')
        self._turns.append(turn)

    def snapshot(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def __len__(self) -> int:
        return len(self._turns)
