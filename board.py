"""
2048 Board Service
Pure functions over a 4x4 grid of tile exponents (0 = empty, 1 = "2", 2 = "4", ...).
Cells are addressed either as (row, col) or as a flat position 0..15 (row-major).
"""

import numpy as np
from typing import List, Tuple


UP, DOWN, LEFT, RIGHT = 0, 1, 2, 3
DIRECTIONS = (UP, DOWN, LEFT, RIGHT)
DIRECTION_NAMES = ("UP", "DOWN", "LEFT", "RIGHT")

BOARD_SIZE = 4
NUM_CELLS = BOARD_SIZE * BOARD_SIZE

ILLEGAL_MOVE = -1


def new_grid() -> np.ndarray:
    """Return an empty 4x4 board."""
    return np.zeros((BOARD_SIZE, BOARD_SIZE), dtype=np.int32)


def _merge_line(line: np.ndarray) -> Tuple[np.ndarray, int]:
    """
    Merge a line (row or column) toward the beginning.

    Args:
        line: 1D array of tile exponents

    Returns:
        Tuple of (merged_line, reward)
    """
    reward = 0
    tiles = [int(x) for x in line if x != 0]

    # Each tile merges at most once per move
    merged = []
    i = 0
    while i < len(tiles):
        if i + 1 < len(tiles) and tiles[i] == tiles[i + 1]:
            merged_value = tiles[i] + 1
            merged.append(merged_value)
            reward += 2 ** merged_value
            i += 2
        else:
            merged.append(tiles[i])
            i += 1

    padded_line = np.zeros(BOARD_SIZE, dtype=np.int32)
    padded_line[:len(merged)] = merged
    return padded_line, reward


def _move_left(grid: np.ndarray) -> Tuple[np.ndarray, int]:
    reward = 0
    for i in range(BOARD_SIZE):
        grid[i, :], row_reward = _merge_line(grid[i, :])
        reward += row_reward
    return grid, reward


def _move_right(grid: np.ndarray) -> Tuple[np.ndarray, int]:
    reward = 0
    for i in range(BOARD_SIZE):
        row, row_reward = _merge_line(grid[i, ::-1])
        grid[i, :] = row[::-1]
        reward += row_reward
    return grid, reward


def _move_up(grid: np.ndarray) -> Tuple[np.ndarray, int]:
    reward = 0
    for j in range(BOARD_SIZE):
        grid[:, j], col_reward = _merge_line(grid[:, j])
        reward += col_reward
    return grid, reward


def _move_down(grid: np.ndarray) -> Tuple[np.ndarray, int]:
    reward = 0
    for j in range(BOARD_SIZE):
        col, col_reward = _merge_line(grid[::-1, j])
        grid[:, j] = col[::-1]
        reward += col_reward
    return grid, reward


_MOVES = {
    UP: _move_up,
    DOWN: _move_down,
    LEFT: _move_left,
    RIGHT: _move_right,
}


def slide(grid: np.ndarray, direction: int) -> Tuple[int, np.ndarray]:
    """
    Slide and merge tiles in the given direction without touching the input.

    Args:
        grid: 4x4 board of exponents
        direction: 0=up, 1=down, 2=left, 3=right

    Returns:
        (reward, new_grid). Reward is the sum of the merged tiles' face values,
        or -1 when the move leaves the board unchanged (illegal move).
    """
    if direction not in _MOVES:
        raise ValueError(f"Invalid direction: {direction}")

    after, reward = _MOVES[direction](np.array(grid, dtype=np.int32, copy=True))
    if np.array_equal(after, grid):
        return ILLEGAL_MOVE, after
    return reward, after


def read_cell(grid: np.ndarray, position: int) -> int:
    """Return the exponent stored at flat position 0..15."""
    return int(grid[position // BOARD_SIZE, position % BOARD_SIZE])


def place_tile(grid: np.ndarray, position: int, tile: int) -> np.ndarray:
    """Return a copy of the board with `tile` written at an empty position."""
    if not 0 <= position < NUM_CELLS:
        raise ValueError(f"Invalid position: {position}")
    if read_cell(grid, position) != 0:
        raise ValueError(f"Cell {position} is not empty")
    after = np.array(grid, dtype=np.int32, copy=True)
    after[position // BOARD_SIZE, position % BOARD_SIZE] = tile
    return after


def space_left(grid: np.ndarray) -> int:
    """Count the empty cells."""
    return int(np.count_nonzero(grid == 0))


def empty_cells(grid: np.ndarray) -> List[int]:
    return [int(p) for p in np.flatnonzero(np.asarray(grid).ravel() == 0)]


def has_legal_move(grid: np.ndarray) -> bool:
    return any(slide(grid, op)[0] != ILLEGAL_MOVE for op in DIRECTIONS)


def max_tile(grid: np.ndarray) -> int:
    """Face value of the largest tile (0 on an empty board)."""
    top = int(np.max(grid))
    return 2 ** top if top > 0 else 0


def render(grid: np.ndarray) -> str:
    """Text rendering with face values, '.' for empty cells."""
    lines = ["-" * 25]
    for i in range(BOARD_SIZE):
        row_str = ""
        for j in range(BOARD_SIZE):
            value = int(grid[i, j])
            tile_value = "." if value == 0 else str(2 ** value)
            row_str += f"{tile_value:>5}"
        lines.append(row_str)
    lines.append("-" * 25)
    return "\n".join(lines)
