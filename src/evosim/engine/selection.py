"""Parent selection policies."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import random
    from collections.abc import Sequence

    from evosim.model.individual import Individual

DEFAULT_TOURNAMENT_SIZE = 3


def tournament_select(
    population: Sequence[Individual],
    rng: random.Random,
    k: int = DEFAULT_TOURNAMENT_SIZE,
) -> Individual:
    """Pick the fittest of ``k`` candidates drawn uniformly with replacement.

    Ties go to the earliest draw. With ``k=1`` this is a uniform choice.
    Only cached ``fitness`` is read, so it must be current.

    Args:
        population: Candidates with up-to-date fitness.
        rng: Random source.
        k: Tournament size.

    Returns:
        Individual: The selected parent (not copied).

    Raises:
        ValueError: If the population is empty or k < 1.
    """
    if not population:
        msg = "Cannot select from an empty population"
        raise ValueError(msg)
    if k < 1:
        msg = f"Tournament size must be >= 1, got {k}"
        raise ValueError(msg)

    best = population[rng.randrange(len(population))]
    for _ in range(k - 1):
        competitor = population[rng.randrange(len(population))]
        if competitor.fitness > best.fitness:
            best = competitor
    return best


def uniform_select(population: Sequence[Individual], rng: random.Random) -> Individual:
    """Pick one individual uniformly at random, ignoring fitness.

    Raises:
        ValueError: If the population is empty.
    """
    if not population:
        msg = "Cannot select from an empty population"
        raise ValueError(msg)
    return population[rng.randrange(len(population))]
