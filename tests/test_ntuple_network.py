import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import numpy as np
import pytest
import torch

from ntuple_network import (
    N_TUPLES,
    TABLE_SIZE,
    NTupleNetwork,
    Step,
    WeightFileError,
    extract_feature,
    extract_features,
    load_tables,
    save_tables,
    td_backward_pass,
)


def random_grid(rng, high=30):
    return rng.randint(0, high, size=(4, 4)).astype(np.int32)


@pytest.fixture
def network():
    net = NTupleNetwork(learning_rate=0.005)
    net.initialize()
    return net


def test_feature_codes_in_range():
    rng = np.random.RandomState(0)
    for _ in range(200):
        grid = random_grid(rng)
        codes = extract_features(grid)
        assert codes.shape == (N_TUPLES,)
        assert codes.min() >= 0 and codes.max() <= TABLE_SIZE - 1
        assert codes.tolist() == [extract_feature(grid, x) for x in range(N_TUPLES)]


def test_feature_first_cell_most_significant():
    grid = np.zeros((4, 4), dtype=np.int32)
    grid[0] = [1, 2, 3, 4]
    assert extract_feature(grid, 0) == 1 * 25 ** 3 + 2 * 25 ** 2 + 3 * 25 + 4
    # column tuple (0, 4, 8, 12) only sees the first cell
    assert extract_feature(grid, 4) == 1 * 25 ** 3


def test_large_exponents_clamp_to_24():
    grid = np.zeros((4, 4), dtype=np.int32)
    grid[0] = [3, 0, 24, 1]
    clamped = extract_feature(grid, 0)
    grid[0, 2] = 255
    assert extract_feature(grid, 0) == clamped
    grid[0] = [255, 255, 255, 255]
    assert extract_feature(grid, 0) == TABLE_SIZE - 1


def test_zero_network_estimates_zero(network):
    rng = np.random.RandomState(1)
    for _ in range(10):
        assert network.estimate(random_grid(rng)) == 0.0


def test_uninitialized_network_raises():
    with pytest.raises(RuntimeError):
        NTupleNetwork().estimate(np.zeros((4, 4), dtype=np.int32))


def test_adjust_with_zero_alpha_is_noop():
    net = NTupleNetwork(learning_rate=0.0)
    net.initialize()
    grid = random_grid(np.random.RandomState(2))
    net.adjust(grid, 100.0)
    assert all(not t.any() for t in net.tables)


def test_adjust_moves_estimate_toward_target(network):
    rng = np.random.RandomState(3)
    for target in (50.0, -20.0, 3.5):
        grid = random_grid(rng)
        old = network.estimate(grid)
        error = network.adjust(grid, target)
        new = network.estimate(grid)
        assert error == pytest.approx(target - old)
        assert abs(new - target) < abs(old - target)


def test_tables_roundtrip(tmp_path):
    rng = np.random.RandomState(4)
    tables = [rng.randn(10).astype(np.float32) for _ in range(3)]
    path = tmp_path / "sub" / "tables.pt"

    save_tables(tables, str(path), metadata={'episodes': 7})
    loaded, metadata = load_tables(str(path))

    assert len(loaded) == 3
    for a, b in zip(tables, loaded):
        assert np.array_equal(a, b)
    assert metadata['episodes'] == 7


def test_network_save_load(network, tmp_path):
    grid = random_grid(np.random.RandomState(5))
    network.adjust(grid, 42.0)
    path = str(tmp_path / "net.pt")
    network.save(path)

    restored = NTupleNetwork()
    restored.load(path)
    assert restored.estimate(grid) == network.estimate(grid)


def test_load_rejects_wrong_table_count(tmp_path):
    path = str(tmp_path / "short.pt")
    save_tables([np.zeros(TABLE_SIZE, dtype=np.float32)] * 3, path)

    net = NTupleNetwork()
    with pytest.raises(WeightFileError):
        net.load(path)
    assert not net.initialized


def test_load_missing_file(tmp_path):
    with pytest.raises(WeightFileError):
        NTupleNetwork().load(str(tmp_path / "missing.pt"))


def test_td_empty_trajectory_changes_nothing(network):
    assert td_backward_pass(network, []) == 0
    assert all(not t.any() for t in network.tables)


def test_td_single_step_targets_zero(network):
    rng = np.random.RandomState(6)
    after = random_grid(rng)
    network.adjust(after, 10.0)

    reference = NTupleNetwork(learning_rate=0.005)
    reference.set_tables(network.tables)
    reference.adjust(after, 0.0)

    assert td_backward_pass(network, [Step(5, after)]) == 1
    for a, b in zip(network.tables, reference.tables):
        assert np.array_equal(a, b)


def test_td_walks_backwards(network):
    rng = np.random.RandomState(7)
    first, second, third = (random_grid(rng) for _ in range(3))
    trajectory = [Step(0, first), Step(4, second), Step(8, third)]

    reference = NTupleNetwork(learning_rate=0.005)
    reference.initialize()
    reference.adjust(third, 0.0)
    reference.adjust(second, 8 + reference.estimate(third))
    reference.adjust(first, 4 + reference.estimate(second))

    assert td_backward_pass(network, trajectory) == 3
    for a, b in zip(network.tables, reference.tables):
        assert np.array_equal(a, b)


def test_td_zero_alpha_is_noop():
    net = NTupleNetwork(learning_rate=0.0)
    net.initialize()
    grid = random_grid(np.random.RandomState(8))
    assert td_backward_pass(net, [Step(4, grid)]) == 0


@pytest.mark.parametrize("alpha", [float("nan"), float("inf"), -0.1])
def test_network_rejects_bad_learning_rate(alpha):
    with pytest.raises(ValueError):
        NTupleNetwork(learning_rate=alpha)


def test_save_to_unwritable_path(tmp_path):
    target = tmp_path / "weights"
    target.mkdir()
    with pytest.raises(WeightFileError):
        save_tables([np.zeros(4, dtype=np.float32)], str(target))


def test_metadata_cannot_replace_tables(tmp_path):
    path = str(tmp_path / "tables.pt")
    tables = [np.arange(4, dtype=np.float32)]
    save_tables(tables, path, metadata={'tables': 'bogus', 'n_tuples': 99, 'episodes': 2})

    loaded, metadata = load_tables(path)

    assert np.array_equal(loaded[0], tables[0])
    assert metadata['n_tuples'] == N_TUPLES
    assert metadata['episodes'] == 2


def test_load_accepts_numpy_tables(tmp_path):
    path = str(tmp_path / "numpy.pt")
    torch.save({'tables': [np.ones(3, dtype=np.float64)]}, path)
    loaded, _ = load_tables(path)
    assert loaded[0].dtype == np.float32
    assert loaded[0].tolist() == [1.0, 1.0, 1.0]


def test_load_rejects_malformed_tables(tmp_path):
    path = str(tmp_path / "broken.pt")
    torch.save({'tables': [None]}, path)
    with pytest.raises(WeightFileError):
        load_tables(path)
