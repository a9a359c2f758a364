"""
2048 Game Implementation as a Gymnasium Environment
The player's slide and the environment agent's tile placement make up one step.
"""

import numpy as np
import gymnasium as gym
from gymnasium import spaces
from typing import Optional, Tuple, Dict, Any

import board
from action import Action
from agents import Agent, RandomEnvironment


class Game2048(gym.Env):
    """
    2048 Game Environment compatible with Gymnasium API.

    - Actions: 0=up, 1=down, 2=left, 3=right
    - Observation: 4x4 grid of tile exponents (0 = empty, 1 = 2, 2 = 4, ...)
    - Reward: Sum of merged tiles in each step
    - Episode termination: When no more moves are possible
    """

    metadata = {"render_modes": ["human"], "render_fps": 4}

    def __init__(self, render_mode: Optional[str] = None, seed: Optional[int] = None,
                 environment: Optional[Agent] = None):
        """
        Initialize the 2048 game environment.

        Args:
            render_mode: Optional render mode ('human' or None)
            seed: Seed for the default random environment agent
            environment: Agent placing new tiles (defaults to RandomEnvironment)
        """
        super().__init__()

        self.render_mode = render_mode
        if environment is None:
            args = "role=environment" if seed is None else f"role=environment seed={seed}"
            environment = RandomEnvironment(args)
        self.environment = environment

        self.grid: np.ndarray = board.new_grid()
        self.score: int = 0
        self.moves_made: int = 0

        self.action_space = spaces.Discrete(4)
        self.observation_space = spaces.Box(low=0, high=24, shape=(4, 4), dtype=np.int32)

        self._initialize_game()

    def _initialize_game(self) -> None:
        """Initialize the game board with two random tiles."""
        self.grid = board.new_grid()
        self.score = 0
        self.moves_made = 0

        self._spawn_tile()
        self._spawn_tile()

    def _spawn_tile(self) -> bool:
        """Let the environment agent place a tile; False when the board is full."""
        placement = self.environment.take_action(self.grid)
        if not placement:
            return False
        _, self.grid = placement.apply(self.grid)
        return True

    def _is_game_over(self) -> bool:
        return not board.has_legal_move(self.grid)

    def _info(self, grid_changed: bool = False) -> Dict[str, Any]:
        return {
            "score": self.score,
            "moves": self.moves_made,
            "max_tile": board.max_tile(self.grid),
            "grid_changed": grid_changed,
        }

    def step(self, action: int) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        """
        Execute one step of the environment.

        Args:
            action: 0=up, 1=down, 2=left, 3=right

        Returns:
            observation, reward, terminated, truncated, info
        """
        if not isinstance(action, (int, np.integer)):
            raise ValueError(f"Invalid action type: {type(action)}")

        if action < 0 or action >= self.action_space.n:
            raise ValueError(f"Invalid action: {action}")

        reward, after = Action.slide(int(action)).apply(self.grid)
        grid_changed = reward != board.ILLEGAL_MOVE

        if grid_changed:
            self.grid = after
            self.score += reward
            self.moves_made += 1
            self._spawn_tile()
        else:
            reward = 0

        terminated = self._is_game_over()
        observation = self.grid.astype(np.int32)

        return observation, float(reward), terminated, False, self._info(grid_changed)

    def reset(self, seed: Optional[int] = None, options: Optional[Dict] = None) -> Tuple[np.ndarray, Dict[str, Any]]:
        """
        Reset the environment to initial state.

        Args:
            seed: Reseed the environment agent's random source
            options: Unused

        Returns:
            Tuple of (observation, info)
        """
        super().reset(seed=seed)
        if seed is not None and hasattr(self.environment, "rng"):
            self.environment.rng.seed(seed)

        self._initialize_game()
        return self.grid.astype(np.int32), self._info()

    def render(self) -> Optional[str]:
        if self.render_mode == "human":
            output = self._render_string()
            print(output)
            return output

        return None

    def _render_string(self) -> str:
        """Generate string representation of the game state."""
        lines = ["\n2048 Game State:"]
        lines.append(f"Score: {self.score} | Moves: {self.moves_made}")
        lines.append(board.render(self.grid))
        return "\n".join(lines)
