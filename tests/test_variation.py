"""Tests for crossover and mutation policies (evosim.engine.variation)."""

from __future__ import annotations

import random

import pytest

from evosim.engine.variation import AverageVariation, BlendVariation
from evosim.errors import ConfigurationError
from evosim.model import COLOR_SCHEMA, TRIBUTE_SCHEMA, TRIBUTE_TRAITS


class FixedRandom(random.Random):
    """random() always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class SequenceRandom(random.Random):
    """random() replays a fixed sequence of draws."""

    def __init__(self, values: list[float]) -> None:
        super().__init__(0)
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0)


@pytest.fixture
def blend() -> BlendVariation:
    return BlendVariation(COLOR_SCHEMA, mutation_rate=0.1, mutation_span=60.0)


@pytest.fixture
def average() -> AverageVariation:
    return AverageVariation(TRIBUTE_SCHEMA, mutation_rate=0.15, mutation_span=40.0)


class TestConfiguration:
    """Tests for policy parameter validation."""

    @pytest.mark.parametrize("rate", [-0.1, 1.1])
    def test_invalid_rate(self, rate: float) -> None:
        with pytest.raises(ConfigurationError, match="mutation_rate"):
            BlendVariation(COLOR_SCHEMA, mutation_rate=rate, mutation_span=60.0)

    def test_negative_span(self) -> None:
        with pytest.raises(ConfigurationError, match="mutation_span"):
            AverageVariation(TRIBUTE_SCHEMA, mutation_rate=0.1, mutation_span=-1.0)


class TestBlendCrossover:
    """Tests for the color blend crossover."""

    def test_single_alpha_per_child(self, blend: BlendVariation) -> None:
        p1 = {"r": 200.0, "g": 0.0, "b": 100.0}
        p2 = {"r": 0.0, "g": 200.0, "b": 100.0}
        child = blend.crossover(p1, p2, FixedRandom(0.25))
        assert child == {"r": 50.0, "g": 150.0, "b": 100.0}

    def test_child_between_parents(self, blend: BlendVariation) -> None:
        rng = random.Random(9)
        p1 = {"r": 10.0, "g": 250.0, "b": 128.0}
        p2 = {"r": 240.0, "g": 5.0, "b": 128.0}
        for _ in range(100):
            child = blend.crossover(p1, p2, rng)
            for name in "rgb":
                lo, hi = sorted((p1[name], p2[name]))
                assert lo <= child[name] <= hi

    def test_channels_are_whole_numbers(self, blend: BlendVariation) -> None:
        child = blend.crossover(
            {"r": 1.0, "g": 2.0, "b": 3.0}, {"r": 4.0, "g": 7.0, "b": 10.0}, random.Random(4)
        )
        assert all(v == int(v) for v in child.values())


class TestAverageCrossover:
    """Tests for the tribute average crossover."""

    def test_plain_average(self, average: AverageVariation) -> None:
        p1 = dict.fromkeys(TRIBUTE_TRAITS, 20.0)
        p2 = dict.fromkeys(TRIBUTE_TRAITS, 61.0)
        child = average.crossover(p1, p2, random.Random(0))
        assert child == dict.fromkeys(TRIBUTE_TRAITS, 40.5)

    def test_consumes_no_randomness(self, average: AverageVariation) -> None:
        rng = random.Random(5)
        state = rng.getstate()
        low, high = dict.fromkeys(TRIBUTE_TRAITS, 1.0), dict.fromkeys(TRIBUTE_TRAITS, 3.0)
        average.crossover(low, high, rng)
        assert rng.getstate() == state


class TestMutation:
    """Tests for per-trait mutation."""

    def test_rate_zero_is_identity(self) -> None:
        policy = AverageVariation(TRIBUTE_SCHEMA, mutation_rate=0.0, mutation_span=40.0)
        traits = dict.fromkeys(TRIBUTE_TRAITS, 50.0)
        assert policy.mutate(traits, random.Random(1)) == traits

    def test_does_not_modify_input(self, average: AverageVariation) -> None:
        traits = dict.fromkeys(TRIBUTE_TRAITS, 50.0)
        average.mutate(traits, FixedRandom(0.0))
        assert traits == dict.fromkeys(TRIBUTE_TRAITS, 50.0)

    def test_perturbation_formula(self) -> None:
        policy = AverageVariation(TRIBUTE_SCHEMA, mutation_rate=1.0, mutation_span=40.0)
        # random() == 0.75 -> delta = (0.75 - 0.5) * 40 = +10
        mutated = policy.mutate(dict.fromkeys(TRIBUTE_TRAITS, 50.0), FixedRandom(0.75))
        assert mutated == dict.fromkeys(TRIBUTE_TRAITS, 60.0)

    def test_clamped_at_upper_bound(self) -> None:
        policy = AverageVariation(TRIBUTE_SCHEMA, mutation_rate=1.0, mutation_span=40.0)
        mutated = policy.mutate(dict.fromkeys(TRIBUTE_TRAITS, 95.0), FixedRandom(0.99))
        assert mutated == dict.fromkeys(TRIBUTE_TRAITS, 100.0)

    def test_clamped_at_lower_bound(self) -> None:
        policy = BlendVariation(COLOR_SCHEMA, mutation_rate=1.0, mutation_span=60.0)
        mutated = policy.mutate({"r": 5.0, "g": 5.0, "b": 5.0}, FixedRandom(0.0))
        assert mutated == {"r": 0.0, "g": 0.0, "b": 0.0}

    def test_small_color_step_not_rounded_away(self) -> None:
        policy = BlendVariation(COLOR_SCHEMA, mutation_rate=1.0, mutation_span=60.0)
        # r mutates by (0.505 - 0.5) * 60 = +0.3; g and b draw 1.0 and are skipped
        rng = SequenceRandom([0.0, 0.505, 1.0, 1.0])
        mutated = policy.mutate({"r": 100.0, "g": 100.0, "b": 100.0}, rng)
        assert mutated["r"] == pytest.approx(100.3)
        assert mutated["g"] == 100.0
        assert mutated["b"] == 100.0

    def test_bred_color_rounds_only_at_crossover(self) -> None:
        policy = BlendVariation(COLOR_SCHEMA, mutation_rate=1.0, mutation_span=60.0)
        # alpha 0.5 blends r to 15.5, rounded to 16; mutation then adds +0.3
        rng = SequenceRandom([0.5, 0.0, 0.505, 1.0, 1.0])
        child = policy.breed(
            {"r": 10.0, "g": 20.0, "b": 30.0}, {"r": 21.0, "g": 20.0, "b": 30.0}, rng
        )
        assert child["r"] == pytest.approx(16.3)
        assert child["g"] == 20.0
        assert child["b"] == 30.0

    @pytest.mark.parametrize("seed", range(20))
    def test_bred_traits_stay_in_bounds(
        self, seed: int, blend: BlendVariation, average: AverageVariation
    ) -> None:
        rng = random.Random(seed)
        for _ in range(50):
            color = blend.breed(
                COLOR_SCHEMA.random_traits(rng), COLOR_SCHEMA.random_traits(rng), rng
            )
            assert COLOR_SCHEMA.in_bounds(color)
            tribute = average.breed(
                TRIBUTE_SCHEMA.random_traits(rng), TRIBUTE_SCHEMA.random_traits(rng), rng
            )
            assert TRIBUTE_SCHEMA.in_bounds(tribute)

    def test_mutation_frequency_tracks_rate(self) -> None:
        policy = AverageVariation(TRIBUTE_SCHEMA, mutation_rate=0.15, mutation_span=40.0)
        rng = random.Random(123)
        base = dict.fromkeys(TRIBUTE_TRAITS, 50.0)
        changed = 0
        trials = 2000
        for _ in range(trials):
            mutated = policy.mutate(base, rng)
            changed += sum(1 for name in TRIBUTE_TRAITS if mutated[name] != 50.0)
        rate = changed / (trials * len(TRIBUTE_TRAITS))
        assert 0.12 < rate < 0.18
