"""Pairwise elimination contests for the tribute simulation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from evosim.engine.fitness import tribute_fitness
from evosim.errors import ConfigurationError

if TYPE_CHECKING:
    import random

    from evosim.model.context import Environment
    from evosim.model.individual import Individual, Population

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BattleRecord:
    """Outcome of a single contest. Fitness values exclude the luck term."""

    winner: str
    loser: str
    winner_fitness: float
    loser_fitness: float


@dataclass
class EliminationPolicy:
    """Reduces the living population to ``survivors`` by random contests.

    Each contest pairs two distinct living individuals chosen uniformly.
    Both score their environment fitness plus an independent luck draw
    from [0, luck_max]; the higher adjusted score wins and ties go to the
    second pick. The loser is marked dead and the winner gains a kill.
    """

    survivors: int = 12
    luck_max: float = 30.0

    def __post_init__(self) -> None:
        if self.survivors < 1:
            msg = f"survivors must be >= 1, got {self.survivors}"
            raise ConfigurationError(msg)
        if self.luck_max < 0:
            msg = f"luck_max must be >= 0, got {self.luck_max}"
            raise ConfigurationError(msg)

    def contest(
        self,
        first: Individual,
        second: Individual,
        environment: Environment,
        rng: random.Random,
    ) -> BattleRecord:
        """Run one contest and apply its outcome to both individuals."""
        first_fitness = tribute_fitness(first.traits, environment)
        second_fitness = tribute_fitness(second.traits, environment)
        first_score = first_fitness + rng.random() * self.luck_max
        second_score = second_fitness + rng.random() * self.luck_max

        if first_score > second_score:
            winner, loser = first, second
            winner_fitness, loser_fitness = first_fitness, second_fitness
        else:
            winner, loser = second, first
            winner_fitness, loser_fitness = second_fitness, first_fitness

        loser.alive = False
        winner.kills += 1
        return BattleRecord(
            winner=winner.name,
            loser=loser.name,
            winner_fitness=winner_fitness,
            loser_fitness=loser_fitness,
        )

    def eliminate(
        self,
        population: Population,
        environment: Environment,
        rng: random.Random,
    ) -> list[BattleRecord]:
        """Hold contests until exactly ``survivors`` remain alive.

        A population already at or below the target holds no contests.

        Args:
            population: Individuals; only living ones take part.
            environment: Arena whose weights score each contestant.
            rng: Random source.

        Returns:
            list[BattleRecord]: Every contest in the order it was held.
        """
        living = [ind for ind in population if ind.alive]
        battles: list[BattleRecord] = []

        while len(living) > self.survivors:
            first_idx, second_idx = rng.sample(range(len(living)), 2)
            first, second = living[first_idx], living[second_idx]
            record = self.contest(first, second, environment, rng)
            battles.append(record)
            del living[second_idx if first.alive else first_idx]

        logger.debug("Elimination held %d contests, %d alive", len(battles), len(living))
        return battles
