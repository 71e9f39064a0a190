"""Domain model: Individual, trait schemas, evaluation contexts."""

from evosim.model.context import (
    DEFAULT_TARGET,
    DISTRICTS,
    ENVIRONMENTS,
    Environment,
    TargetColor,
    get_environment,
)
from evosim.model.individual import Individual, Population
from evosim.model.trait import (
    COLOR_SCHEMA,
    TRIBUTE_SCHEMA,
    TRIBUTE_TRAITS,
    TraitSchema,
    TraitSpec,
)

__all__ = [
    "COLOR_SCHEMA",
    "DEFAULT_TARGET",
    "DISTRICTS",
    "ENVIRONMENTS",
    "TRIBUTE_SCHEMA",
    "TRIBUTE_TRAITS",
    "Environment",
    "Individual",
    "Population",
    "TargetColor",
    "TraitSchema",
    "TraitSpec",
    "get_environment",
]
