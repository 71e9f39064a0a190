"""Variant-specific fitness functions.

Fitness functions compute a scalar score for a set of traits under an
evaluation context. They are pure: the same (traits, context) pair always
yields the same score, and nothing is cached here.

Each fitness function follows the signature:
    fitness_fn(traits: dict[str, float], context) -> float
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from evosim.model.context import Environment, TargetColor

FitnessFunction = Callable[[dict[str, float], Any], float]

MAX_COLOR_DISTANCE = math.sqrt(3 * 255**2)


def color_fitness(traits: dict[str, float], target: TargetColor) -> float:
    """Closeness of an RGB triple to the target color.

    Fitness formula:
        fitness = 1 - euclidean_distance(traits, target) / sqrt(3 * 255^2)

    Args:
        traits: Mapping with ``r``, ``g`` and ``b`` in [0, 255].
        target: Target color.

    Returns:
        float: Score in [0, 1]; 1.0 only for an exact match.
    """
    distance = math.sqrt(
        (traits["r"] - target.r) ** 2
        + (traits["g"] - target.g) ** 2
        + (traits["b"] - target.b) ** 2
    )
    # Guard against float drift pushing the ratio past 1
    return max(0.0, 1.0 - distance / MAX_COLOR_DISTANCE)


def tribute_fitness(traits: dict[str, float], environment: Environment) -> float:
    """Environment-weighted average of the five tribute traits.

    Fitness formula:
        fitness = sum(trait_i * weight_i) / 5

    Bounded above by ``100 * environment.max_weight``.
    """
    weights = environment.weights
    return sum(traits[name] * weights[name] for name in weights) / len(weights)
