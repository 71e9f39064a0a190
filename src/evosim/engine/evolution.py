"""Generation-step engines for the color and tribute simulations."""

from __future__ import annotations

import dataclasses
import logging
import random
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from evosim.engine.elimination import BattleRecord, EliminationPolicy
from evosim.engine.fitness import FitnessFunction, color_fitness, tribute_fitness
from evosim.engine.selection import DEFAULT_TOURNAMENT_SIZE, tournament_select, uniform_select
from evosim.engine.variation import AverageVariation, BlendVariation, VariationPolicy
from evosim.errors import ConfigurationError
from evosim.model.context import (
    DEFAULT_TARGET,
    DISTRICTS,
    ENVIRONMENTS,
    Environment,
    TargetColor,
)
from evosim.model.individual import Individual, Population
from evosim.model.trait import COLOR_SCHEMA, TRIBUTE_SCHEMA, TraitSchema

if TYPE_CHECKING:
    from evosim.config import SimulationSettings

logger = logging.getLogger(__name__)


class Variant(StrEnum):
    """Available simulations."""

    COLOR = "color"
    TRIBUTES = "tributes"


class TickStatus(StrEnum):
    """Outcome of a tick."""

    OK = "ok"
    EXTINCT = "extinct"  # no living tributes; initialize() required


@dataclass(frozen=True)
class GenerationStats:
    """Fitness statistics for one generation."""

    generation: int
    best_fitness: float
    avg_fitness: float
    min_fitness: float
    population_size: int
    living: int


@dataclass(frozen=True)
class Snapshot:
    """Published engine state after initialize() or tick().

    Holds copies of the individuals, so later ticks never alter it.
    """

    variant: Variant
    generation: int
    population: tuple[Individual, ...]
    best_fitness: float
    context: TargetColor | Environment
    stats: GenerationStats | None = None
    status: TickStatus = TickStatus.OK
    battle_log: tuple[BattleRecord, ...] = ()
    total_deaths: int = 0
    average_traits: dict[str, float] = field(default_factory=dict)

    @property
    def living(self) -> int:
        return sum(1 for ind in self.population if ind.alive)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        data = dataclasses.asdict(self)
        data["variant"] = self.variant.value
        data["status"] = self.status.value
        data["living"] = self.living
        if isinstance(self.context, TargetColor):
            data["context"]["hex"] = self.context.to_hex()
            for ind, raw in zip(self.population, data["population"], strict=True):
                raw["hex"] = ind.to_hex()
        return data


class EvolutionEngine(ABC):
    """Shared state and bookkeeping for a generation-based simulation.

    Subclasses define how individuals are created and scored and what one
    tick does. All randomness flows through ``self.rng`` so a seeded engine
    is fully reproducible.
    """

    variant: ClassVar[Variant]
    schema: ClassVar[TraitSchema]

    def __init__(
        self,
        population_size: int,
        variation: VariationPolicy,
        fitness_fn: FitnessFunction,
        rng: random.Random | None = None,
        stats_history_size: int = 100,
    ) -> None:
        self._validate_size(population_size)
        self.population_size = population_size
        self.variation = variation
        self.fitness_fn = fitness_fn
        self.rng = rng if rng is not None else random.Random()

        self.population: Population = []
        self.generation = 0
        self.best_fitness = 0.0
        self.stats_history: deque[GenerationStats] = deque(maxlen=stats_history_size)
        self._next_id = 1

    # Configuration

    def _validate_size(self, size: int) -> None:
        if size <= 0:
            msg = f"Population size must be > 0, got {size}"
            raise ConfigurationError(msg)

    @property
    @abstractmethod
    def context(self) -> TargetColor | Environment:
        """Evaluation context currently in effect."""

    @abstractmethod
    def set_context(self, context: Any) -> None:
        """Replace the evaluation context used from the next evaluation on."""

    # Individuals

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    @abstractmethod
    def create_random(self, individual_id: int) -> Individual:
        """Build an individual with uniformly random traits."""

    def evaluate(self, individual: Individual) -> float:
        """Fitness of an individual under the current context."""
        return self.fitness_fn(individual.traits, self.context)

    def refresh_fitness(self) -> None:
        """Recompute cached fitness for every individual."""
        for individual in self.population:
            individual.fitness = self.evaluate(individual)

    # Lifecycle

    def initialize(self, size: int | None = None, seed: int | None = None) -> Population:
        """Build a fresh random population and reset all counters.

        Args:
            size: New population size. Defaults to the configured size.
            seed: Reseed the random source for a reproducible run.

        Returns:
            Population: Copies of the new population.

        Raises:
            ConfigurationError: If the size is invalid for this engine.
        """
        if size is not None:
            self._validate_size(size)
            self.population_size = size
        if seed is not None:
            self.rng.seed(seed)

        self.generation = 0
        self.stats_history.clear()
        self._next_id = 1
        self._reset_counters()

        self.population = [self.create_random(self._new_id()) for _ in range(self.population_size)]
        self.refresh_fitness()
        self.best_fitness = max(ind.fitness for ind in self.population)
        self._record_stats()

        logger.info(
            "Initialized %s population: size=%d, best_fitness=%.4f",
            self.variant.value,
            self.population_size,
            self.best_fitness,
            extra={"variant": self.variant.value, "generation": self.generation},
        )
        return [ind.copy() for ind in self.population]

    def _reset_counters(self) -> None:  # noqa: B027
        """Hook for variant-specific counters cleared by initialize()."""

    @abstractmethod
    def tick(self) -> Snapshot:
        """Advance one generation and return the published state."""

    def _require_population(self) -> None:
        if not self.population:
            msg = "Population not initialized - call initialize first"
            raise ValueError(msg)

    # Observation

    def _record_stats(self) -> GenerationStats:
        scores = [ind.fitness for ind in self.population]
        stats = GenerationStats(
            generation=self.generation,
            best_fitness=max(scores),
            avg_fitness=sum(scores) / len(scores),
            min_fitness=min(scores),
            population_size=len(self.population),
            living=sum(1 for ind in self.population if ind.alive),
        )
        self.stats_history.append(stats)
        return stats

    def average_traits(self) -> dict[str, float]:
        """Mean of each trait over living individuals (empty if none)."""
        living = [ind for ind in self.population if ind.alive]
        if not living:
            return {}
        return {
            name: sum(ind.traits[name] for ind in living) / len(living)
            for name in self.schema.traits
        }

    def best_individual(self) -> Individual | None:
        if not self.population:
            return None
        return max(self.population, key=lambda ind: ind.fitness)

    def snapshot(self, status: TickStatus = TickStatus.OK) -> Snapshot:
        """Immutable view of the current state."""
        return Snapshot(
            variant=self.variant,
            generation=self.generation,
            population=tuple(ind.copy() for ind in self.population),
            best_fitness=self.best_fitness,
            context=self.context,
            stats=self.stats_history[-1] if self.stats_history else None,
            status=status,
            average_traits=self.average_traits(),
            **self._snapshot_extras(),
        )

    def _snapshot_extras(self) -> dict[str, Any]:
        return {}


class ColorEvolutionEngine(EvolutionEngine):
    """Evolves RGB triples toward a target color.

    Each tick keeps the single best individual unchanged (elitism), then
    fills the rest of the generation with tournament-selected, blended and
    mutated children.
    """

    variant = Variant.COLOR
    schema = COLOR_SCHEMA

    def __init__(
        self,
        population_size: int = 20,
        target: TargetColor = DEFAULT_TARGET,
        variation: VariationPolicy | None = None,
        tournament_size: int = DEFAULT_TOURNAMENT_SIZE,
        rng: random.Random | None = None,
        stats_history_size: int = 100,
    ) -> None:
        if variation is None:
            variation = BlendVariation(COLOR_SCHEMA, mutation_rate=0.1, mutation_span=60.0)
        super().__init__(population_size, variation, color_fitness, rng, stats_history_size)
        if tournament_size < 1:
            msg = f"Tournament size must be >= 1, got {tournament_size}"
            raise ConfigurationError(msg)
        self.tournament_size = tournament_size
        self.target = target
        self.set_target(target)

    @property
    def context(self) -> TargetColor:
        return self.target

    def set_target(self, target: TargetColor) -> None:
        """Replace the target color. Existing fitness is refreshed on the next tick."""
        if not isinstance(target, TargetColor):
            msg = f"Color simulation needs a TargetColor, got {type(target).__name__}"
            raise ConfigurationError(msg)
        self.target = target
        logger.info("Target color set to %s", target.to_hex())

    def set_context(self, context: Any) -> None:
        self.set_target(context)

    def create_random(self, individual_id: int) -> Individual:
        return Individual(id=individual_id, traits=self.schema.random_traits(self.rng))

    def tick(self) -> Snapshot:
        """Run one generation: rank, carry the elite, breed the rest.

        Raises:
            ValueError: If the population was never initialized.
        """
        self._require_population()

        # The target may have changed since the last tick
        self.refresh_fitness()
        ranked = sorted(self.population, key=lambda ind: ind.fitness, reverse=True)

        next_generation = [ranked[0]]
        while len(next_generation) < self.population_size:
            parent1 = tournament_select(self.population, self.rng, self.tournament_size)
            parent2 = tournament_select(self.population, self.rng, self.tournament_size)
            child = Individual(
                id=self._new_id(),
                traits=self.variation.breed(parent1.traits, parent2.traits, self.rng),
            )
            child.fitness = self.evaluate(child)
            next_generation.append(child)

        self.population = next_generation
        self.generation += 1
        self.best_fitness = max(ind.fitness for ind in self.population)
        stats = self._record_stats()

        logger.debug(
            "Color generation %d: best=%.4f avg=%.4f",
            stats.generation,
            stats.best_fitness,
            stats.avg_fitness,
            extra={"variant": self.variant.value, "generation": stats.generation},
        )
        return self.snapshot()


class TributeEvolutionEngine(EvolutionEngine):
    """Evolves five-trait tributes through elimination contests.

    Each tick eliminates living tributes down to ``survivors`` via
    pairwise contests, ages the survivors, and breeds children from
    uniformly chosen survivor pairs until the population is full again.
    """

    variant = Variant.TRIBUTES
    schema = TRIBUTE_SCHEMA

    def __init__(
        self,
        population_size: int = 24,
        survivors: int = 12,
        environment: Environment | None = None,
        variation: VariationPolicy | None = None,
        luck_max: float = 30.0,
        battle_log_size: int = 5,
        rng: random.Random | None = None,
        stats_history_size: int = 100,
    ) -> None:
        if variation is None:
            variation = AverageVariation(TRIBUTE_SCHEMA, mutation_rate=0.15, mutation_span=40.0)
        self.elimination = EliminationPolicy(survivors=survivors, luck_max=luck_max)
        super().__init__(population_size, variation, tribute_fitness, rng, stats_history_size)
        self.environment = ENVIRONMENTS["balanced"]
        self.set_environment(environment if environment is not None else self.environment)
        self.battle_log: deque[BattleRecord] = deque(maxlen=battle_log_size)
        self.total_deaths = 0

    @property
    def survivors(self) -> int:
        return self.elimination.survivors

    def _validate_size(self, size: int) -> None:
        super()._validate_size(size)
        if self.elimination.survivors >= size:
            msg = (
                f"Survivor count ({self.elimination.survivors}) must be smaller than "
                f"population size ({size})"
            )
            raise ConfigurationError(msg)

    @property
    def context(self) -> Environment:
        return self.environment

    def set_environment(self, environment: Environment) -> None:
        """Replace the arena used for contests and fitness from the next tick."""
        if not isinstance(environment, Environment):
            msg = f"Tribute simulation needs an Environment, got {type(environment).__name__}"
            raise ConfigurationError(msg)
        self.environment = environment
        logger.info("Environment set to %s", environment.name)

    def set_context(self, context: Any) -> None:
        self.set_environment(context)

    def _reset_counters(self) -> None:
        self.battle_log.clear()
        self.total_deaths = 0

    def create_random(self, individual_id: int) -> Individual:
        return Individual(
            id=individual_id,
            traits=self.schema.random_traits(self.rng),
            name=f"Tribute-{individual_id}",
            district=self.rng.choice(DISTRICTS),
        )

    def _breed(self, parent1: Individual, parent2: Individual) -> Individual:
        child_id = self._new_id()
        district = parent1.district if self.rng.random() < 0.5 else parent2.district
        return Individual(
            id=child_id,
            traits=self.variation.breed(parent1.traits, parent2.traits, self.rng),
            name=f"Tribute-{child_id}",
            district=district,
        )

    def tick(self) -> Snapshot:
        """Run one generation: contests, aging, breeding.

        An all-dead population is reported as ``TickStatus.EXTINCT`` and the
        generation does not advance.

        Raises:
            ValueError: If the population was never initialized.
        """
        self._require_population()

        if not any(ind.alive for ind in self.population):
            logger.warning(
                "No living tributes at generation %d - reinitialize to continue",
                self.generation,
                extra={"variant": self.variant.value, "generation": self.generation},
            )
            return self.snapshot(status=TickStatus.EXTINCT)

        battles = self.elimination.eliminate(self.population, self.environment, self.rng)
        self.battle_log.extend(battles)
        self.total_deaths += len(battles)

        survivors = [ind for ind in self.population if ind.alive]
        for survivor in survivors:
            survivor.age += 1

        next_generation = list(survivors)
        while len(next_generation) < self.population_size:
            parent1 = uniform_select(survivors, self.rng)
            parent2 = uniform_select(survivors, self.rng)
            next_generation.append(self._breed(parent1, parent2))

        self.population = next_generation
        self.refresh_fitness()
        self.generation += 1
        self.best_fitness = max(ind.fitness for ind in self.population)
        stats = self._record_stats()

        logger.debug(
            "Tribute generation %d: %d contests, best=%.2f, total_deaths=%d",
            stats.generation,
            len(battles),
            stats.best_fitness,
            self.total_deaths,
            extra={"variant": self.variant.value, "generation": stats.generation},
        )
        return self.snapshot()

    def _snapshot_extras(self) -> dict[str, Any]:
        return {"battle_log": tuple(self.battle_log), "total_deaths": self.total_deaths}


def build_engine(
    variant: Variant | str,
    settings: SimulationSettings,
    rng: random.Random | None = None,
) -> EvolutionEngine:
    """Construct an engine for a variant from settings.

    The engine is returned uninitialized; call ``initialize()`` before ticking.

    Raises:
        ConfigurationError: If the variant is unknown or the settings are invalid.
    """
    try:
        variant = Variant(variant)
    except ValueError:
        valid = ", ".join(v.value for v in Variant)
        msg = f"Unknown simulation: {variant}. Valid simulations: {valid}"
        raise ConfigurationError(msg) from None

    if rng is None:
        rng = random.Random(settings.seed)

    if variant is Variant.COLOR:
        return ColorEvolutionEngine(
            population_size=settings.color_population_size,
            variation=BlendVariation(
                COLOR_SCHEMA,
                mutation_rate=settings.color_mutation_rate,
                mutation_span=settings.color_mutation_span,
            ),
            tournament_size=settings.tournament_size,
            rng=rng,
            stats_history_size=settings.stats_history_size,
        )
    return TributeEvolutionEngine(
        population_size=settings.tribute_population_size,
        survivors=settings.tribute_survivors,
        variation=AverageVariation(
            TRIBUTE_SCHEMA,
            mutation_rate=settings.tribute_mutation_rate,
            mutation_span=settings.tribute_mutation_span,
        ),
        luck_max=settings.luck_max,
        battle_log_size=settings.battle_log_size,
        rng=rng,
        stats_history_size=settings.stats_history_size,
    )
