"""
Move / placement encoding shared by players and the environment.
"""

import numpy as np
from typing import Optional, Tuple

import board


class Action:
    """
    An immutable action on the 2048 board.

    - Action.slide(direction): player move
    - Action.place(position, tile): environment tile placement (tile is an exponent)
    - Action.none(): no action available (terminal state), evaluates to False
    """

    __slots__ = ("_direction", "_position", "_tile")

    def __init__(self, direction: Optional[int] = None, position: Optional[int] = None,
                 tile: Optional[int] = None):
        object.__setattr__(self, "_direction", direction)
        object.__setattr__(self, "_position", position)
        object.__setattr__(self, "_tile", tile)

    def __setattr__(self, key, value):
        raise AttributeError("Action is immutable")

    @classmethod
    def slide(cls, direction: int) -> "Action":
        if direction not in board.DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction}")
        return cls(direction=direction)

    @classmethod
    def place(cls, position: int, tile: int) -> "Action":
        if not 0 <= position < board.NUM_CELLS:
            raise ValueError(f"Invalid position: {position}")
        if tile <= 0:
            raise ValueError(f"Invalid tile: {tile}")
        return cls(position=position, tile=tile)

    @classmethod
    def none(cls) -> "Action":
        return cls()

    @property
    def direction(self) -> Optional[int]:
        return self._direction

    @property
    def position(self) -> Optional[int]:
        return self._position

    @property
    def tile(self) -> Optional[int]:
        return self._tile

    @property
    def is_slide(self) -> bool:
        return self._direction is not None

    @property
    def is_place(self) -> bool:
        return self._position is not None

    def apply(self, grid: np.ndarray) -> Tuple[int, np.ndarray]:
        """Execute the action on a copy of the board, returning (reward, new_grid)."""
        if self.is_slide:
            return board.slide(grid, self._direction)
        if self.is_place:
            return 0, board.place_tile(grid, self._position, self._tile)
        raise ValueError("Cannot apply an empty action")

    def __bool__(self) -> bool:
        return self.is_slide or self.is_place

    def __eq__(self, other) -> bool:
        if not isinstance(other, Action):
            return NotImplemented
        return (self._direction, self._position, self._tile) == \
            (other._direction, other._position, other._tile)

    def __hash__(self) -> int:
        return hash((self._direction, self._position, self._tile))

    def __str__(self) -> str:
        if self.is_slide:
            return "#" + board.DIRECTION_NAMES[self._direction][0]
        if self.is_place:
            return f"{2 ** self._tile}@{self._position}"
        return "N/A"

    def __repr__(self) -> str:
        return f"Action({self})"
