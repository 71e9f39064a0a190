"""TraitSpec and TraitSchema: named, bounded numeric traits."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

from evosim.errors import ConfigurationError


@dataclass(frozen=True)
class TraitSpec:
    """A single bounded trait.

    Integral traits (color channels) are drawn as whole numbers and rounded
    after every variation step.
    """

    name: str
    min_val: float = 0.0
    max_val: float = 1.0
    integral: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        if not (math.isfinite(self.min_val) and math.isfinite(self.max_val)):
            msg = f"Trait '{self.name}' bounds must be finite"
            raise ConfigurationError(msg)
        if self.min_val >= self.max_val:
            msg = (
                f"Trait '{self.name}' has min_val={self.min_val} "
                f">= max_val={self.max_val}"
            )
            raise ConfigurationError(msg)

    def bound(self, value: float) -> float:
        """Clamp (never wrap) a value into [min_val, max_val]."""
        return max(self.min_val, min(self.max_val, value))

    def clamp(self, value: float) -> float:
        """Bound a value and round it when the trait is integral."""
        value = self.bound(value)
        if self.integral:
            value = float(round(value))
        return value

    def sample(self, rng: random.Random) -> float:
        """Draw a uniform random value within bounds."""
        if self.integral:
            return float(rng.randint(int(self.min_val), int(self.max_val)))
        return rng.uniform(self.min_val, self.max_val)

    def contains(self, value: float) -> bool:
        return self.min_val <= value <= self.max_val


@dataclass(frozen=True)
class TraitSchema:
    """Ordered set of traits shared by every individual of a simulation."""

    name: str
    traits: dict[str, TraitSpec] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.traits:
            msg = f"Schema '{self.name}' defines no traits"
            raise ConfigurationError(msg)
        for key, spec in self.traits.items():
            if key != spec.name:
                msg = f"Schema '{self.name}' maps key '{key}' to trait '{spec.name}'"
                raise ConfigurationError(msg)

    @property
    def names(self) -> list[str]:
        return list(self.traits)

    def random_traits(self, rng: random.Random) -> dict[str, float]:
        """Assign each trait an independent uniform value within its bound."""
        return {name: spec.sample(rng) for name, spec in self.traits.items()}

    def clamp(self, traits: dict[str, float]) -> dict[str, float]:
        return {name: self.traits[name].clamp(value) for name, value in traits.items()}

    def in_bounds(self, traits: dict[str, float]) -> bool:
        """True when traits has exactly this schema's keys, all within bounds."""
        if set(traits) != set(self.traits):
            return False
        return all(self.traits[name].contains(value) for name, value in traits.items())


COLOR_SCHEMA = TraitSchema(
    name="color",
    traits={
        channel: TraitSpec(
            name=channel,
            min_val=0.0,
            max_val=255.0,
            integral=True,
            description=f"{label} channel",
        )
        for channel, label in (("r", "Red"), ("g", "Green"), ("b", "Blue"))
    },
)

TRIBUTE_TRAITS = ("combat", "stealth", "speed", "survival", "intelligence")

TRIBUTE_SCHEMA = TraitSchema(
    name="tribute",
    traits={name: TraitSpec(name=name, min_val=0.0, max_val=100.0) for name in TRIBUTE_TRAITS},
)
