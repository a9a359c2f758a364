import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import pytest

from config import AgentConfig, ConfigError, parse_args


def test_parse_args_overrides_and_flags():
    options = parse_args("name=TD alpha=0.1 init alpha=0.2")
    assert options == {"name": "TD", "alpha": "0.2", "init": "init"}


def test_from_args_applies_defaults_then_args():
    config = AgentConfig.from_args("alpha=0.01 seed=42", defaults="name=TD role=player alpha=0.005")
    assert config.name == "TD"
    assert config.role == "player"
    assert config.alpha == pytest.approx(0.01)
    assert config.seed == 42
    assert config.load is None


def test_defaults():
    config = AgentConfig.from_args("")
    assert config.name == "unknown"
    assert config.alpha == pytest.approx(0.005)
    assert config.seed is None


@pytest.mark.parametrize("args", ["alpha=abc", "alpha=-0.5", "alpha=nan", "alpha=inf",
                                  "seed=1.5", "role=spectator"])
def test_malformed_values_raise(args):
    with pytest.raises(ConfigError):
        AgentConfig.from_args(args)


def test_extra_options_are_kept():
    config = AgentConfig.from_args("name=TD comment=run1")
    assert config.option("comment") == "run1"
    assert config.option("alpha") == "0.005"
    with pytest.raises(KeyError):
        config.option("load")


def test_with_update_revalidates():
    config = AgentConfig.from_args("name=TD")
    updated = config.with_update("alpha=0.25")
    assert updated.alpha == pytest.approx(0.25)
    assert config.alpha == pytest.approx(0.005)
    with pytest.raises(ConfigError):
        config.with_update("alpha=fast")


def test_summary_is_sorted():
    config = AgentConfig.from_args("role=player name=TD")
    assert config.summary() == "alpha=0.005;name=TD;role=player;"
