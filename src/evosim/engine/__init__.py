"""Evolution engines and the policies they compose: fitness, selection, variation, elimination."""

from evosim.engine.elimination import BattleRecord, EliminationPolicy
from evosim.engine.evolution import (
    ColorEvolutionEngine,
    EvolutionEngine,
    GenerationStats,
    Snapshot,
    TickStatus,
    TributeEvolutionEngine,
    Variant,
    build_engine,
)
from evosim.engine.fitness import MAX_COLOR_DISTANCE, color_fitness, tribute_fitness
from evosim.engine.selection import tournament_select, uniform_select
from evosim.engine.variation import AverageVariation, BlendVariation, VariationPolicy

__all__ = [
    "MAX_COLOR_DISTANCE",
    "AverageVariation",
    "BattleRecord",
    "BlendVariation",
    "ColorEvolutionEngine",
    "EliminationPolicy",
    "EvolutionEngine",
    "GenerationStats",
    "Snapshot",
    "TickStatus",
    "TributeEvolutionEngine",
    "VariationPolicy",
    "Variant",
    "build_engine",
    "color_fitness",
    "tournament_select",
    "tribute_fitness",
    "uniform_select",
]
