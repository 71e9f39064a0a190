"""FastAPI server driving the simulations on a timer.

Provides:
- REST API to read engine state and play/pause/reset/step each simulation
- Reconfiguration of the target color, the tribute arena and the tick interval
- WebSocket /ws/{variant}/snapshots: stream published snapshots
- WebSocket /ws/{variant}/control: receive play/pause/reset/set_interval commands
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field

from evosim.config import MAX_TICK_INTERVAL_MS, MIN_TICK_INTERVAL_MS, get_settings
from evosim.engine.evolution import EvolutionEngine, Snapshot, TickStatus, Variant, build_engine
from evosim.errors import ConfigurationError
from evosim.model.context import ENVIRONMENTS, TargetColor, get_environment

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


class SimulationRunner:
    """Thread-safe timer loop around one engine.

    The background thread is the only caller of ``engine.tick()`` besides
    explicit ``step()`` requests, and both hold the lock, so ticks never
    overlap. Readers get the last published snapshot.
    """

    def __init__(self, engine: EvolutionEngine, interval_ms: int = 200) -> None:
        """Initialize runner; the engine is (re)initialized here.

        Args:
            engine: Engine to drive.
            interval_ms: Milliseconds between ticks while playing.
        """
        self._engine = engine
        self._lock = threading.Lock()
        self._paused = True  # Start paused
        self._running = False
        self._interval_ms = self._clamp_interval(interval_ms)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        engine.initialize()
        self._latest = engine.snapshot()

    @staticmethod
    def _clamp_interval(value: float) -> int:
        return int(max(MIN_TICK_INTERVAL_MS, min(MAX_TICK_INTERVAL_MS, value)))

    @property
    def variant(self) -> Variant:
        return self._engine.variant

    @property
    def engine(self) -> EvolutionEngine:
        """Underlying engine. Mutate only through the runner."""
        return self._engine

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._paused

    @paused.setter
    def paused(self, value: bool) -> None:
        with self._lock:
            self._paused = value

    @property
    def interval_ms(self) -> int:
        with self._lock:
            return self._interval_ms

    @interval_ms.setter
    def interval_ms(self, value: float) -> None:
        """Set tick interval (clamped to 50-3000 ms)."""
        with self._lock:
            self._interval_ms = self._clamp_interval(value)

    @property
    def latest(self) -> Snapshot:
        with self._lock:
            return self._latest

    def step(self) -> Snapshot:
        """Advance one generation.

        An extinct population pauses the runner; it stays paused until reset.
        """
        with self._lock:
            snapshot = self._engine.tick()
            self._latest = snapshot
            if snapshot.status is TickStatus.EXTINCT:
                self._paused = True
            return snapshot

    def reset(self, seed: int | None = None) -> Snapshot:
        """Reinitialize the population and counters."""
        with self._lock:
            self._engine.initialize(seed=seed)
            self._latest = self._engine.snapshot()
            return self._latest

    def set_context(self, context: Any, reset: bool = False) -> Snapshot:
        """Replace the evaluation context, optionally reseeding the population.

        Raises:
            ConfigurationError: If the context does not fit this simulation.
        """
        with self._lock:
            self._engine.set_context(context)
            if reset:
                self._engine.initialize()
            self._latest = self._engine.snapshot()
            return self._latest

    def start(self) -> None:
        """Start the background tick thread."""
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name=f"{self.variant.value}-ticker", daemon=True
        )
        self._thread.start()
        logger.info("%s runner started", self.variant.value)

    def stop(self) -> None:
        """Stop the background tick thread."""
        if not self._running:
            return
        self._running = False
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        logger.info("%s runner stopped", self.variant.value)

    def _run_loop(self) -> None:
        while self._running and not self._stop_event.is_set():
            if not self.paused:
                self.step()
            self._stop_event.wait(timeout=self.interval_ms / 1000.0)


# Global runners, one per variant
_runners: dict[Variant, SimulationRunner] | None = None


def create_runners() -> dict[Variant, SimulationRunner]:
    """Build one runner per variant from the loaded settings."""
    settings = get_settings()
    rng = random.Random(settings.seed)
    return {
        Variant.COLOR: SimulationRunner(
            build_engine(Variant.COLOR, settings, random.Random(rng.random())),
            interval_ms=settings.color_tick_interval_ms,
        ),
        Variant.TRIBUTES: SimulationRunner(
            build_engine(Variant.TRIBUTES, settings, random.Random(rng.random())),
            interval_ms=settings.tribute_tick_interval_ms,
        ),
    }


def get_runners() -> dict[Variant, SimulationRunner]:
    """Get or create the global runners."""
    global _runners
    if _runners is None:
        _runners = create_runners()
    return _runners


def get_runner(variant: str) -> SimulationRunner:
    """Look up a runner by variant name.

    Raises:
        HTTPException: 404 if the variant is unknown.
    """
    try:
        return get_runners()[Variant(variant)]
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Simulation '{variant}' not found",
        ) from None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager: start/stop runner threads."""
    runners = get_runners()
    for runner in runners.values():
        runner.start()
    yield
    for runner in runners.values():
        runner.stop()


app = FastAPI(
    title="evosim",
    description="Interactive evolutionary simulations",
    version="0.1.0",
    lifespan=lifespan,
)


# Pydantic models for REST requests/responses


class IndividualResponse(BaseModel):
    """Response model for one individual."""

    id: int = Field(description="Individual ID")
    traits: dict[str, float] = Field(description="Trait values")
    fitness: float = Field(description="Fitness under the current context")
    alive: bool = Field(description="Whether the individual is alive")
    kills: int = Field(default=0, description="Contests won")
    age: int = Field(default=0, description="Generations survived")
    name: str = Field(default="", description="Display name")
    district: str = Field(default="", description="Home district")
    hex: str | None = Field(default=None, description="Color as #rrggbb (color only)")


class BattleResponse(BaseModel):
    """Response model for one contest."""

    winner: str
    loser: str
    winner_fitness: float
    loser_fitness: float


class StatsResponse(BaseModel):
    """Response model for generation statistics."""

    generation: int
    best_fitness: float
    avg_fitness: float
    min_fitness: float
    population_size: int
    living: int


class StateResponse(BaseModel):
    """Response model for a published snapshot plus controller state."""

    variant: str = Field(description="Simulation name")
    status: str = Field(description="Tick status: ok or extinct")
    generation: int = Field(description="Generation index")
    best_fitness: float = Field(description="Best fitness in the population")
    paused: bool = Field(description="Whether the timer is paused")
    interval_ms: int = Field(description="Milliseconds between ticks")
    living: int = Field(description="Living individuals")
    context: dict[str, Any] = Field(description="Target color or environment")
    population: list[IndividualResponse] = Field(description="Current population")
    stats: StatsResponse | None = Field(default=None, description="Latest generation stats")
    average_traits: dict[str, float] = Field(default_factory=dict)
    battle_log: list[BattleResponse] = Field(default_factory=list)
    total_deaths: int = Field(default=0, description="Contests lost since reset")


class SimulationSummary(BaseModel):
    """Response model for the simulation list."""

    variant: str
    generation: int
    best_fitness: float
    paused: bool
    interval_ms: int


class ControlCommandResponse(BaseModel):
    """Response for control commands."""

    success: bool = Field(description="Whether command succeeded")
    message: str = Field(description="Status message")


class TargetRequest(BaseModel):
    """Request model for changing the target color.

    Give r/g/b, a hex string, or set random=true.
    """

    r: int | None = Field(default=None, ge=0, le=255)
    g: int | None = Field(default=None, ge=0, le=255)
    b: int | None = Field(default=None, ge=0, le=255)
    hex: str | None = Field(default=None, description="#rrggbb")
    random: bool = Field(default=False, description="Pick a random target")
    reset: bool = Field(default=False, description="Reinitialize the population too")


class EnvironmentRequest(BaseModel):
    """Request model for switching the tribute arena."""

    environment: str = Field(description="Environment key, e.g. 'forest'")
    reset: bool = Field(default=False, description="Reinitialize the population too")


class EnvironmentResponse(BaseModel):
    """Response model for an arena preset."""

    key: str
    name: str
    weights: dict[str, float]


def _state_response(snapshot: Snapshot, runner: SimulationRunner) -> StateResponse:
    data = snapshot.to_dict()
    return StateResponse(
        variant=data["variant"],
        status=data["status"],
        generation=data["generation"],
        best_fitness=data["best_fitness"],
        paused=runner.paused,
        interval_ms=runner.interval_ms,
        living=data["living"],
        context=data["context"],
        population=[IndividualResponse(**ind) for ind in data["population"]],
        stats=StatsResponse(**data["stats"]) if data["stats"] else None,
        average_traits=data["average_traits"],
        battle_log=[BattleResponse(**b) for b in data["battle_log"]],
        total_deaths=data["total_deaths"],
    )


# REST endpoints


@app.get("/api/simulations", response_model=list[SimulationSummary], tags=["simulations"])
async def list_simulations() -> list[SimulationSummary]:
    """List available simulations and their controller state."""
    summaries = []
    for variant, runner in get_runners().items():
        snapshot = runner.latest
        summaries.append(
            SimulationSummary(
                variant=variant.value,
                generation=snapshot.generation,
                best_fitness=snapshot.best_fitness,
                paused=runner.paused,
                interval_ms=runner.interval_ms,
            )
        )
    return summaries


@app.get("/api/environments", response_model=list[EnvironmentResponse], tags=["tributes"])
async def list_environments() -> list[EnvironmentResponse]:
    """List arena presets."""
    return [
        EnvironmentResponse(key=env.key, name=env.name, weights=env.weights)
        for env in ENVIRONMENTS.values()
    ]


@app.get("/api/{variant}/state", response_model=StateResponse, tags=["simulations"])
async def get_state(variant: str) -> StateResponse:
    """Get the latest published state of a simulation."""
    runner = get_runner(variant)
    return _state_response(runner.latest, runner)


@app.post("/api/{variant}/play", response_model=ControlCommandResponse, tags=["simulations"])
async def play_simulation(variant: str) -> ControlCommandResponse:
    """Resume the simulation timer."""
    runner = get_runner(variant)
    if runner.latest.status is TickStatus.EXTINCT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Population is extinct - reset before playing",
        )
    runner.paused = False
    return ControlCommandResponse(success=True, message="Simulation playing")


@app.post("/api/{variant}/pause", response_model=ControlCommandResponse, tags=["simulations"])
async def pause_simulation(variant: str) -> ControlCommandResponse:
    """Pause the simulation timer."""
    runner = get_runner(variant)
    runner.paused = True
    return ControlCommandResponse(success=True, message="Simulation paused")


@app.post("/api/{variant}/reset", response_model=StateResponse, tags=["simulations"])
async def reset_simulation(variant: str, seed: int | None = None) -> StateResponse:
    """Reinitialize the population.

    Args:
        variant: Simulation name.
        seed: Optional seed for a reproducible run.
    """
    runner = get_runner(variant)
    snapshot = runner.reset(seed=seed)
    logger.info("%s simulation reset (seed=%s)", variant, seed)
    return _state_response(snapshot, runner)


@app.post("/api/{variant}/step", response_model=StateResponse, tags=["simulations"])
async def step_simulation(variant: str) -> StateResponse:
    """Advance exactly one generation."""
    runner = get_runner(variant)
    return _state_response(runner.step(), runner)


@app.post("/api/{variant}/interval", response_model=ControlCommandResponse, tags=["simulations"])
async def set_interval(variant: str, interval_ms: int = 200) -> ControlCommandResponse:
    """Set milliseconds between ticks (clamped to 50-3000)."""
    runner = get_runner(variant)
    runner.interval_ms = interval_ms
    return ControlCommandResponse(
        success=True, message=f"Interval set to {runner.interval_ms}ms"
    )


@app.post("/api/color/target", response_model=StateResponse, tags=["color"])
async def set_target(request: TargetRequest) -> StateResponse:
    """Change the target color.

    Raises:
        HTTPException: 400 if no usable color was given.
    """
    runner = get_runner(Variant.COLOR.value)
    channels = (request.r, request.g, request.b)
    try:
        if request.random:
            target = TargetColor.random(random.Random())
        elif request.hex is not None:
            target = TargetColor.from_hex(request.hex)
        elif all(c is not None for c in channels):
            target = TargetColor(request.r, request.g, request.b)
        else:
            msg = "Provide r, g and b, a hex value, or random=true"
            raise ConfigurationError(msg)
        snapshot = runner.set_context(target, reset=request.reset)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return _state_response(snapshot, runner)


@app.post("/api/tributes/environment", response_model=StateResponse, tags=["tributes"])
async def set_environment(request: EnvironmentRequest) -> StateResponse:
    """Switch the tribute arena."""
    runner = get_runner(Variant.TRIBUTES.value)
    try:
        snapshot = runner.set_context(get_environment(request.environment), reset=request.reset)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return _state_response(snapshot, runner)


@app.get("/api/tributes/battles", response_model=list[BattleResponse], tags=["tributes"])
async def get_battles() -> list[BattleResponse]:
    """Most recent contests, oldest first."""
    snapshot = get_runner(Variant.TRIBUTES.value).latest
    return [
        BattleResponse(
            winner=b.winner,
            loser=b.loser,
            winner_fitness=b.winner_fitness,
            loser_fitness=b.loser_fitness,
        )
        for b in snapshot.battle_log
    ]


# WebSocket endpoints


@app.websocket("/ws/{variant}/snapshots")
async def websocket_snapshots(websocket: WebSocket, variant: str) -> None:
    """Stream a snapshot whenever a new one is published.

    The first message is always the current snapshot.
    """
    try:
        runner = get_runner(variant)
    except HTTPException:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    last_sent: Snapshot | None = None
    try:
        while True:
            snapshot = runner.latest
            if snapshot is not last_sent:
                await websocket.send_json(snapshot.to_dict())
                last_sent = snapshot
            await asyncio.sleep(MIN_TICK_INTERVAL_MS / 1000.0)
    except WebSocketDisconnect:
        logger.info("Snapshot client disconnected from %s", variant)
    except Exception as e:
        logger.error("Snapshot streaming error: %s", str(e))


@app.websocket("/ws/{variant}/control")
async def websocket_control(websocket: WebSocket, variant: str) -> None:
    """Receive control commands.

    Accepts commands:
    - {"type": "play"} - Resume the timer
    - {"type": "pause"} - Pause the timer
    - {"type": "step"} - Advance one generation
    - {"type": "reset", "seed": 7} - Reinitialize (seed optional)
    - {"type": "set_interval", "interval_ms": 500} - Set tick interval
    """
    try:
        runner = get_runner(variant)
    except HTTPException:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    try:
        while True:
            data = await websocket.receive_json()
            cmd_type = str(data.get("type", "")).lower()

            if cmd_type == "play":
                if runner.latest.status is TickStatus.EXTINCT:
                    response = {"success": False, "message": "Population is extinct - reset first"}
                else:
                    runner.paused = False
                    response = {"success": True, "message": "Simulation playing"}
            elif cmd_type == "pause":
                runner.paused = True
                response = {"success": True, "message": "Simulation paused"}
            elif cmd_type == "step":
                snapshot = runner.step()
                response = {"success": True, "message": f"Generation {snapshot.generation}"}
            elif cmd_type == "reset":
                seed = data.get("seed")
                if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
                    response = {"success": False, "message": "Invalid seed"}
                else:
                    runner.reset(seed=seed)
                    response = {"success": True, "message": "Simulation reset"}
            elif cmd_type == "set_interval":
                try:
                    runner.interval_ms = float(data.get("interval_ms", 200))
                    response = {
                        "success": True,
                        "message": f"Interval set to {runner.interval_ms}ms",
                    }
                except (TypeError, ValueError):
                    response = {"success": False, "message": "Invalid interval value"}
            else:
                response = {"success": False, "message": f"Unknown command: {cmd_type}"}

            await websocket.send_json(response)

    except WebSocketDisconnect:
        logger.info("Control client disconnected from %s", variant)
    except Exception as e:
        logger.error("Control WebSocket error: %s", str(e))


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
