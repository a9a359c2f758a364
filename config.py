from __future__ import annotations

import math
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


class ConfigError(ValueError):
    """Fatal agent configuration problem (bad option, unknown strategy, weight file)."""


def parse_args(args: str) -> Dict[str, str]:
    """Split 'key=value' tokens. A bare token is a flag whose value is its own name.

    Later tokens override earlier ones.
    """
    options: Dict[str, str] = {}
    for pair in args.split():
        key, sep, value = pair.partition("=")
        options[key] = value if sep else pair
    return options


class AgentConfig(BaseModel):
    """Typed agent options parsed from a 'key=value ...' argument string."""

    # Unrecognised keys are kept as raw strings and remain readable via option().
    model_config = ConfigDict(extra="allow")

    name: str = "unknown"
    role: Literal["player", "environment", "unknown"] = "unknown"
    # Learning rate; 0 disables learning (evaluation only).
    alpha: float = 0.005
    # Allocate fresh zero weight tables.
    init: Optional[str] = None
    # Weight file to restore at construction / persist at close.
    load: Optional[str] = None
    save: Optional[str] = None
    seed: Optional[int] = None

    @field_validator("alpha")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if not math.isfinite(v) or v < 0.0:
            raise ValueError("alpha must be a finite value >= 0")
        return v

    @classmethod
    def from_options(cls, options: Dict[str, str]) -> "AgentConfig":
        try:
            return cls.model_validate(options)
        except ValidationError as e:
            bad = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise ConfigError(f"invalid agent options {bad}: {e}") from e

    @classmethod
    def from_args(cls, args: str = "", defaults: str = "") -> "AgentConfig":
        """Build a config from `defaults` then `args`; values in `args` win."""
        options = parse_args(defaults)
        options.update(parse_args(args))
        return cls.from_options(options)

    def as_options(self) -> Dict[str, str]:
        return {k: str(v) for k, v in self.model_dump().items() if v is not None}

    def option(self, key: str) -> str:
        options = self.as_options()
        if key not in options:
            raise KeyError(key)
        return options[key]

    def with_update(self, message: str) -> "AgentConfig":
        """Return a new config with 'key=value' from `message` applied."""
        options = self.as_options()
        options.update(parse_args(message))
        return self.from_options(options)

    def summary(self) -> str:
        return "".join(f"{k}={v};" for k, v in sorted(self.as_options().items()))
