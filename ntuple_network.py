"""
N-Tuple Network for 2048
Lookup-table value function over 17 fixed 4-cell tuples, trained with
backward TD(0) over the afterstates of each finished episode.
"""

import os
import pickle
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import torch

from config import ConfigError


# 4 rows, 4 columns and 9 of the 2x2 squares (flat positions, row-major)
TUPLE_PATTERNS: Tuple[Tuple[int, ...], ...] = (
    (0, 1, 2, 3), (4, 5, 6, 7), (8, 9, 10, 11), (12, 13, 14, 15),
    (0, 4, 8, 12), (1, 5, 9, 13), (2, 6, 10, 14), (3, 7, 11, 15),
    (0, 1, 4, 5), (1, 2, 5, 6), (2, 3, 6, 7),
    (4, 5, 8, 9), (4, 5, 9, 10), (4, 5, 10, 11),
    (8, 9, 12, 13), (9, 10, 13, 14), (10, 11, 14, 15),
)
N_TUPLES = len(TUPLE_PATTERNS)
TUPLE_SIZE = 4
# Exponents >= MAX_INDEX - 1 share the last digit
MAX_INDEX = 25
TABLE_SIZE = MAX_INDEX ** TUPLE_SIZE

_PATTERN_ARRAY = np.array(TUPLE_PATTERNS, dtype=np.int64)
_PATTERN_ARRAY.setflags(write=False)
# Base-25 digit weights, first cell most significant
_DIGIT_WEIGHTS = MAX_INDEX ** np.arange(TUPLE_SIZE - 1, -1, -1, dtype=np.int64)
_ROWS = np.arange(N_TUPLES)
# Checkpoint fields written by save_tables itself
_RESERVED_KEYS = frozenset(('tables', 'n_tuples', 'tuple_size', 'max_index'))


class WeightFileError(ConfigError):
    """Weight file cannot be read/written or does not match the tuple configuration."""


def extract_feature(grid: np.ndarray, index: int) -> int:
    """Feature code of tuple `index` on `grid`, in [0, TABLE_SIZE)."""
    cells = np.asarray(grid).ravel()
    result = 0
    for pos in TUPLE_PATTERNS[index]:
        result = result * MAX_INDEX + min(int(cells[pos]), MAX_INDEX - 1)
    return result


def extract_features(grid: np.ndarray) -> np.ndarray:
    """Feature codes of all tuples at once, shape (N_TUPLES,)."""
    digits = np.minimum(np.asarray(grid, dtype=np.int64).ravel()[_PATTERN_ARRAY], MAX_INDEX - 1)
    codes = digits @ _DIGIT_WEIGHTS
    assert codes.min() >= 0 and codes.max() < TABLE_SIZE, "feature code out of range"
    return codes


class Step(NamedTuple):
    """One trajectory entry: reward earned by the move and the resulting afterstate."""
    reward: int
    after: np.ndarray


def save_tables(tables: Sequence[np.ndarray], path: str,
                metadata: Optional[Dict[str, Any]] = None) -> None:
    """Persist an ordered list of weight tables as a torch checkpoint."""
    checkpoint = {
        'tables': [torch.from_numpy(np.ascontiguousarray(t, dtype=np.float32)) for t in tables],
        'n_tuples': N_TUPLES,
        'tuple_size': TUPLE_SIZE,
        'max_index': MAX_INDEX,
    }
    if metadata:
        checkpoint.update({k: v for k, v in metadata.items() if k not in _RESERVED_KEYS})

    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        torch.save(checkpoint, path)
    except (OSError, RuntimeError) as e:
        raise WeightFileError(f"cannot write weights to {path}: {e}") from e


def load_tables(path: str) -> Tuple[List[np.ndarray], Dict[str, Any]]:
    """Restore the ordered list of weight tables and the remaining checkpoint fields."""
    try:
        checkpoint = torch.load(path, map_location='cpu', weights_only=False)
    except (OSError, RuntimeError, EOFError, pickle.UnpicklingError) as e:
        raise WeightFileError(f"cannot read weights from {path}: {e}") from e

    if not isinstance(checkpoint, dict) or 'tables' not in checkpoint:
        raise WeightFileError(f"{path} is not a weight table checkpoint")

    try:
        tables = [torch.as_tensor(t).detach().cpu().numpy().astype(np.float32)
                  for t in checkpoint['tables']]
    except (TypeError, ValueError, RuntimeError) as e:
        raise WeightFileError(f"{path} holds malformed weight tables: {e}") from e
    metadata = {k: v for k, v in checkpoint.items() if k != 'tables'}
    return tables, metadata


class NTupleNetwork:
    """
    N-tuple value function: one dense table of TABLE_SIZE float32 weights per tuple.

    V(s) = sum_x table[x][feature_x(s)]
    """

    def __init__(self, learning_rate: float = 0.005):
        """
        Args:
            learning_rate: alpha in [0, inf); 0 turns adjust() into a no-op
        """
        if not np.isfinite(learning_rate) or learning_rate < 0:
            raise ValueError(f"learning_rate must be finite and >= 0, got {learning_rate}")
        self.learning_rate = np.float32(learning_rate)
        self._weights: Optional[np.ndarray] = None

    @property
    def initialized(self) -> bool:
        return self._weights is not None

    @property
    def tables(self) -> List[np.ndarray]:
        """Ordered list of per-tuple tables (views into the weight matrix)."""
        self._require_weights()
        return list(self._weights)

    def initialize(self) -> None:
        """Allocate zero-filled tables."""
        self._weights = np.zeros((N_TUPLES, TABLE_SIZE), dtype=np.float32)

    def _require_weights(self) -> None:
        if self._weights is None:
            raise RuntimeError("weight tables are not allocated; call initialize() or load()")

    def estimate(self, grid: np.ndarray) -> float:
        self._require_weights()
        return float(self._weights[_ROWS, extract_features(grid)].sum(dtype=np.float32))

    def adjust(self, grid: np.ndarray, target: float) -> float:
        """Move V(grid) toward `target` by alpha * error on every tuple; returns the error."""
        self._require_weights()
        codes = extract_features(grid)
        error = np.float32(target) - self._weights[_ROWS, codes].sum(dtype=np.float32)
        # Tuples index distinct rows, so fancy-index += touches each weight once
        self._weights[_ROWS, codes] += self.learning_rate * error
        return float(error)

    def set_tables(self, tables: Sequence[np.ndarray]) -> None:
        if len(tables) != N_TUPLES:
            raise WeightFileError(
                f"expected {N_TUPLES} weight tables, got {len(tables)}")
        for i, table in enumerate(tables):
            if np.shape(table) != (TABLE_SIZE,):
                raise WeightFileError(
                    f"table {i} has shape {np.shape(table)}, expected ({TABLE_SIZE},)")
        self._weights = np.stack([np.asarray(t, dtype=np.float32) for t in tables])

    def save(self, path: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._require_weights()
        save_tables(self.tables, path, metadata)

    def load(self, path: str) -> Dict[str, Any]:
        """Restore tables from `path`; nothing changes if the file does not match."""
        tables, metadata = load_tables(path)
        self.set_tables(tables)
        return metadata


def td_backward_pass(network: NTupleNetwork, trajectory: Sequence[Step]) -> int:
    """
    Backward TD(0) over one finished episode.

    The last afterstate is pulled toward 0 (no future return); every earlier
    afterstate is pulled toward r(t+1) + V(after(t+1)). Returns the number of
    adjustments made.
    """
    if not trajectory or network.learning_rate == 0:
        return 0

    network.adjust(trajectory[-1].after, 0)
    for i in range(len(trajectory) - 2, -1, -1):
        nxt = trajectory[i + 1]
        network.adjust(trajectory[i].after, nxt.reward + network.estimate(nxt.after))
    return len(trajectory)
