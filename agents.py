"""
Agents for 2048: players (learned TD and baseline strategies) and the random environment.

Every agent is configured by a 'key=value ...' argument string, e.g.

    player = make_agent("name=TD init alpha=0.0025 save=weights/td.pt")
    env = make_agent("role=environment seed=7")

and owns its own random source, options and (for TD) value network.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

import numpy as np

import board
from action import Action
from config import AgentConfig, ConfigError, parse_args
from ntuple_network import NTupleNetwork, Step, td_backward_pass


class Agent(ABC):
    """Common interface: episode hooks, take_action(grid) and option access."""

    def __init__(self, args: str = "", defaults: str = ""):
        self.config = AgentConfig.from_args(args, defaults="name=unknown role=unknown " + defaults)
        print(self.config.summary())

    def open_episode(self, flag: str = "") -> None:
        pass

    def close_episode(self, flag: str = "") -> None:
        pass

    @abstractmethod
    def take_action(self, grid: np.ndarray) -> Action:
        """Return the chosen action, or Action.none() when nothing can be done."""

    def check_for_win(self, grid: np.ndarray) -> bool:
        return False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def role(self) -> str:
        return self.config.role

    def option(self, key: str) -> str:
        return self.config.option(key)

    def notify(self, message: str) -> None:
        """Apply a 'key=value' update to the agent options."""
        self.config = self.config.with_update(message)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def _make_rng(config: AgentConfig) -> np.random.RandomState:
    return np.random.RandomState(config.seed)


class TDPlayer(Agent):
    """
    Player driven by an n-tuple value network.

    Each move picks the legal direction maximising reward + V(afterstate) and
    records the afterstate; close_episode() trains the network with a backward
    TD(0) pass over the recorded episode.
    """

    def __init__(self, args: str = ""):
        super().__init__(args, defaults="name=TD role=player alpha=0.005")
        if self.name != "TD":
            raise ConfigError(f"{self.name} is not a valid TD player name")

        self.network = NTupleNetwork(learning_rate=self.config.alpha)
        self.history: List[Step] = []
        self.episodes = 0

        if self.config.init is not None:
            self.network.initialize()
        if self.config.load is not None:
            self.load_weights(self.config.load)
        if not self.network.initialized:
            raise ConfigError("TD player needs weight tables: pass 'init' or 'load=<path>'")

    @property
    def alpha(self) -> float:
        return float(self.network.learning_rate)

    def open_episode(self, flag: str = "") -> None:
        self.history.clear()

    def close_episode(self, flag: str = "") -> None:
        td_backward_pass(self.network, self.history)
        self.episodes += 1

    def take_action(self, grid: np.ndarray) -> Action:
        best_op = None
        best_reward = 0
        best_score = float("-inf")
        best_after = None
        for op in board.DIRECTIONS:
            reward, after = board.slide(grid, op)
            if reward == board.ILLEGAL_MOVE:
                continue
            score = reward + self.network.estimate(after)
            if score > best_score:
                best_op, best_reward, best_score, best_after = op, reward, score, after

        if best_op is None:
            return Action.none()
        self.history.append(Step(best_reward, best_after))
        return Action.slide(best_op)

    def load_weights(self, path: str) -> None:
        metadata = self.network.load(path)
        self.episodes = int(metadata.get('episodes', 0))

        saved_hparams = metadata.get('hyperparameters', {})
        if 'alpha' in saved_hparams and saved_hparams['alpha'] != self.config.alpha:
            print(f"\n{'='*60}")
            print("WARNING: Hyperparameter mismatch detected!")
            print(f"  alpha: saved={saved_hparams['alpha']}, current={self.config.alpha}")
            print(f"{'='*60}\n")

        print(f"Weights loaded from {path} ({self.episodes} episodes)")

    def save_weights(self, path: str) -> None:
        self.network.save(path, metadata={
            'episodes': self.episodes,
            'hyperparameters': {'alpha': self.config.alpha},
        })
        print(f"Weights saved to {path}")

    def close(self) -> None:
        if self.config.save is not None:
            self.save_weights(self.config.save)


class BaselinePlayer(Agent):
    """
    Non-learning players selected by name:
    - dummy: random legal move
    - greedy_score: largest immediate reward
    - greedy_pos: largest immediate reward, ties go to the fuller resulting board
    """

    STRATEGIES = ("dummy", "greedy_score", "greedy_pos")

    def __init__(self, args: str = ""):
        super().__init__(args, defaults="name=dummy role=player")
        strategies: Dict[str, Callable[[np.ndarray], Action]] = {
            "dummy": self.dummy_action,
            "greedy_score": self.greedy_score_action,
            "greedy_pos": self.greedy_pos_action,
        }
        if self.name not in strategies:
            raise ConfigError(f"{self.name} is not a valid player name")
        self._strategy = strategies[self.name]
        self.rng = _make_rng(self.config)
        self._opcode = list(board.DIRECTIONS)

    def take_action(self, grid: np.ndarray) -> Action:
        return self._strategy(grid)

    def dummy_action(self, grid: np.ndarray) -> Action:
        self.rng.shuffle(self._opcode)
        for op in self._opcode:
            reward, _ = board.slide(grid, op)
            if reward != board.ILLEGAL_MOVE:
                return Action.slide(op)
        return Action.none()

    def greedy_score_action(self, grid: np.ndarray) -> Action:
        best_reward = board.ILLEGAL_MOVE
        best_op = None
        for op in board.DIRECTIONS:
            reward, _ = board.slide(grid, op)
            if reward > best_reward:
                best_op, best_reward = op, reward
        if best_op is None:
            return Action.none()
        return Action.slide(best_op)

    def greedy_pos_action(self, grid: np.ndarray) -> Action:
        best_reward = board.ILLEGAL_MOVE
        best_space = board.NUM_CELLS + 1
        best_op = None
        for op in board.DIRECTIONS:
            reward, after = board.slide(grid, op)
            if reward == board.ILLEGAL_MOVE:
                continue
            space = board.space_left(after)
            if reward > best_reward or (reward == best_reward and space < best_space):
                best_op, best_reward, best_space = op, reward, space
        if best_op is None:
            return Action.none()
        return Action.slide(best_op)


class RandomEnvironment(Agent):
    """
    Random environment: add a new tile to a random empty cell.
    2-tile: 90%, 4-tile: 10%
    """

    def __init__(self, args: str = ""):
        super().__init__(args, defaults="name=random role=environment")
        if self.role != "environment":
            raise ConfigError(f"random environment cannot take role={self.role}")
        self.rng = _make_rng(self.config)
        self._space = list(range(board.NUM_CELLS))

    def take_action(self, grid: np.ndarray) -> Action:
        self.rng.shuffle(self._space)
        for pos in self._space:
            if board.read_cell(grid, pos) != 0:
                continue
            tile = 1 if self.rng.randint(0, 10) else 2
            return Action.place(pos, tile)
        return Action.none()


def make_agent(args: str = "") -> Agent:
    """
    Build the agent described by `args`.

    role=environment (or name=random) gives a RandomEnvironment, name=TD (the
    default) a TDPlayer, and a baseline strategy name a BaselinePlayer.
    """
    options = parse_args(args)
    name: Optional[str] = options.get("name")
    if options.get("role") == "environment" or name == "random":
        return RandomEnvironment(args)
    if name is None or name == "TD":
        return TDPlayer(args)
    if name in BaselinePlayer.STRATEGIES:
        return BaselinePlayer(args)
    raise ConfigError(f"{name} is not a valid player name")
