"""Crossover and mutation policies.

The two variants deliberately recombine differently: the color simulation
blends parents with one random factor per child, the tribute simulation
takes the plain average. Both mutate each trait independently with a
uniform perturbation and clamp to the trait's bound.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from evosim.errors import ConfigurationError

if TYPE_CHECKING:
    import random

    from evosim.model.trait import TraitSchema


class VariationPolicy(ABC):
    """Produces child traits from two parents' traits."""

    def __init__(self, schema: TraitSchema, mutation_rate: float, mutation_span: float) -> None:
        """Initialize the policy.

        Args:
            schema: Trait bounds used for clamping.
            mutation_rate: Per-trait mutation probability in [0, 1].
            mutation_span: Width of the uniform perturbation, centered on 0.

        Raises:
            ConfigurationError: If rate or span is out of range.
        """
        if not 0.0 <= mutation_rate <= 1.0:
            msg = f"mutation_rate must be in [0, 1], got {mutation_rate}"
            raise ConfigurationError(msg)
        if mutation_span < 0:
            msg = f"mutation_span must be >= 0, got {mutation_span}"
            raise ConfigurationError(msg)
        self.schema = schema
        self.mutation_rate = mutation_rate
        self.mutation_span = mutation_span

    @abstractmethod
    def crossover(
        self,
        parent1: dict[str, float],
        parent2: dict[str, float],
        rng: random.Random,
    ) -> dict[str, float]:
        """Combine two parents' traits into a child's."""

    def mutate(self, traits: dict[str, float], rng: random.Random) -> dict[str, float]:
        """Perturb each trait with probability ``mutation_rate``, then clamp.

        Mutated values are bounded but never rounded, so steps smaller than
        one unit survive on integral traits. Returns a new dict; the input is
        not modified.
        """
        mutated = dict(traits)
        for name, value in mutated.items():
            if rng.random() < self.mutation_rate:
                value += (rng.random() - 0.5) * self.mutation_span
                mutated[name] = self.schema.traits[name].bound(value)
        return mutated

    def breed(
        self,
        parent1: dict[str, float],
        parent2: dict[str, float],
        rng: random.Random,
    ) -> dict[str, float]:
        """Crossover followed by mutation."""
        return self.mutate(self.crossover(parent1, parent2, rng), rng)


class BlendVariation(VariationPolicy):
    """``alpha * p1 + (1 - alpha) * p2`` with one alpha drawn per child."""

    def crossover(
        self,
        parent1: dict[str, float],
        parent2: dict[str, float],
        rng: random.Random,
    ) -> dict[str, float]:
        alpha = rng.random()
        child = {
            name: alpha * parent1[name] + (1 - alpha) * parent2[name] for name in self.schema.traits
        }
        return self.schema.clamp(child)


class AverageVariation(VariationPolicy):
    """Per-trait arithmetic mean of both parents; no blend factor."""

    def crossover(
        self,
        parent1: dict[str, float],
        parent2: dict[str, float],
        rng: random.Random,
    ) -> dict[str, float]:
        child = {name: (parent1[name] + parent2[name]) / 2 for name in self.schema.traits}
        return self.schema.clamp(child)
