"""Evaluation contexts read by fitness functions: target colors and arenas."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

from evosim.errors import ConfigurationError
from evosim.model.trait import TRIBUTE_TRAITS


@dataclass(frozen=True)
class TargetColor:
    """RGB target for the color simulation. Channels are bytes."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for channel in ("r", "g", "b"):
            value = getattr(self, channel)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 255:
                msg = f"Target channel {channel}={value!r} must be an int in [0, 255]"
                raise ConfigurationError(msg)

    @classmethod
    def random(cls, rng: random.Random) -> TargetColor:
        return cls(rng.randint(0, 255), rng.randint(0, 255), rng.randint(0, 255))

    @classmethod
    def from_hex(cls, value: str) -> TargetColor:
        """Parse ``#rrggbb`` (leading ``#`` optional)."""
        digits = value.removeprefix("#")
        if len(digits) != 6:
            msg = f"Invalid hex color: {value!r}"
            raise ConfigurationError(msg)
        try:
            return cls(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
        except ValueError as e:
            msg = f"Invalid hex color: {value!r}"
            raise ConfigurationError(msg) from e

    def as_traits(self) -> dict[str, float]:
        return {"r": float(self.r), "g": float(self.g), "b": float(self.b)}

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"


@dataclass(frozen=True)
class Environment:
    """Arena for the tribute simulation: one fitness multiplier per trait."""

    key: str
    name: str
    weights: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if set(self.weights) != set(TRIBUTE_TRAITS):
            missing = sorted(set(TRIBUTE_TRAITS) - set(self.weights))
            unknown = sorted(set(self.weights) - set(TRIBUTE_TRAITS))
            msg = (
                f"Environment '{self.key}' weights must cover exactly "
                f"{list(TRIBUTE_TRAITS)} (missing={missing}, unknown={unknown})"
            )
            raise ConfigurationError(msg)
        for trait, weight in self.weights.items():
            if not math.isfinite(weight) or weight < 0:
                msg = f"Environment '{self.key}' weight {trait}={weight} must be >= 0"
                raise ConfigurationError(msg)

    @property
    def max_weight(self) -> float:
        return max(self.weights.values())


def _env(key: str, name: str, *weights: float) -> Environment:
    return Environment(key=key, name=name, weights=dict(zip(TRIBUTE_TRAITS, weights, strict=True)))


# Weights in TRIBUTE_TRAITS order: combat, stealth, speed, survival, intelligence
ENVIRONMENTS: dict[str, Environment] = {
    env.key: env
    for env in (
        _env("balanced", "Balanced Arena", 1.0, 1.0, 1.0, 1.0, 1.0),
        _env("forest", "Dense Forest", 0.7, 1.5, 0.8, 1.3, 1.1),
        _env("desert", "Desert Wasteland", 1.1, 0.6, 1.2, 1.8, 1.0),
        _env("urban", "Ruined City", 1.3, 1.0, 1.4, 0.8, 1.3),
        _env("arctic", "Frozen Tundra", 0.9, 0.8, 0.7, 2.0, 1.2),
    )
}

DISTRICTS = (
    "Agriculture",
    "Masonry",
    "Technology",
    "Fishing",
    "Power",
    "Transportation",
    "Lumber",
    "Textiles",
    "Grain",
    "Livestock",
    "Electronics",
    "Mining",
)

DEFAULT_TARGET = TargetColor(255, 100, 150)


def get_environment(key: str) -> Environment:
    """Look up a preset arena by key.

    Raises:
        ConfigurationError: If the key is not a known preset.
    """
    try:
        return ENVIRONMENTS[key]
    except KeyError:
        valid = ", ".join(ENVIRONMENTS)
        msg = f"Unknown environment: {key}. Valid environments: {valid}"
        raise ConfigurationError(msg) from None
