"""Command-line interface for evosim."""

import argparse
import random
import sys

import uvicorn

from evosim.config import get_settings
from evosim.engine.evolution import TickStatus, Variant, build_engine
from evosim.errors import ConfigurationError
from evosim.logging_config import configure_logging
from evosim.model.context import ENVIRONMENTS, TargetColor, get_environment


def _serve(parsed: argparse.Namespace) -> int:
    print(f"Starting evosim server at http://{parsed.host}:{parsed.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "evosim.server.app:app",
        host=parsed.host,
        port=parsed.port,
        reload=parsed.reload,
    )
    return 0


def _run(parsed: argparse.Namespace) -> int:
    """Run a simulation headless and print one line per generation."""
    settings = get_settings()
    seed = parsed.seed if parsed.seed is not None else settings.seed
    try:
        engine = build_engine(parsed.variant, settings, random.Random(seed))
        if parsed.variant == Variant.COLOR and parsed.target:
            engine.set_context(TargetColor.from_hex(parsed.target))
        if parsed.variant == Variant.TRIBUTES:
            engine.set_context(get_environment(parsed.environment))
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    engine.initialize()
    for _ in range(parsed.generations):
        snapshot = engine.tick()
        if snapshot.status is TickStatus.EXTINCT:
            print(f"generation {snapshot.generation}: population extinct", file=sys.stderr)
            return 1
        stats = snapshot.stats
        line = (
            f"generation {snapshot.generation:4d}  "
            f"best={stats.best_fitness:.4f}  avg={stats.avg_fitness:.4f}"
        )
        if snapshot.variant is Variant.TRIBUTES:
            line += f"  deaths={snapshot.total_deaths}"
        print(line)

    best = engine.best_individual()
    if best is not None:
        traits = ", ".join(f"{k}={v:.1f}" for k, v in best.traits.items())
        print(f"best individual #{best.id}: fitness={best.fitness:.4f} ({traits})")
    return 0


def main(args: list[str] | None = None) -> int:
    """Run the evosim command line.

    Args:
        args: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(
        prog="evosim",
        description="evosim - interactive evolutionary simulations",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    serve.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    serve.set_defaults(handler=_serve)

    run = subparsers.add_parser("run", help="Run a simulation headless")
    run.add_argument("variant", choices=[v.value for v in Variant])
    run.add_argument(
        "--generations",
        type=int,
        default=50,
        help="Number of generations to run (default: 50)",
    )
    run.add_argument("--seed", type=int, default=None, help="Random seed")
    run.add_argument("--target", default=None, help="Target color as #rrggbb (color only)")
    run.add_argument(
        "--environment",
        default="balanced",
        choices=list(ENVIRONMENTS),
        help="Arena for the tribute simulation (default: balanced)",
    )
    run.set_defaults(handler=_run)

    parsed = parser.parse_args(args)
    configure_logging()
    return parsed.handler(parsed)


if __name__ == "__main__":
    sys.exit(main())
