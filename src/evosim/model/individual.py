"""Individual: one candidate solution in a population."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Individual:
    """A candidate solution: named traits plus bookkeeping.

    ``alive``, ``kills`` and ``age`` are only meaningful for the competitive
    (tribute) variant. Traits are never changed after creation; ``fitness``
    is a cache owned by the engine and refreshed whenever traits or the
    evaluation context change.
    """

    id: int
    traits: dict[str, float] = field(default_factory=dict)
    fitness: float = 0.0
    alive: bool = True
    kills: int = 0
    age: int = 0
    name: str = ""
    district: str = ""

    def copy(self) -> Individual:
        """Independent copy (traits dict included)."""
        return dataclasses.replace(self, traits=dict(self.traits))

    def to_hex(self) -> str:
        """Render r/g/b traits as ``#rrggbb``.

        Raises:
            KeyError: If the individual has no color traits.
        """
        return "#" + "".join(f"{round(self.traits[c]):02x}" for c in ("r", "g", "b"))

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


Population = list[Individual]
