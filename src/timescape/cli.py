"""Timescape CLI.

Usage:
    timescape run         Open the camera and start the installation
    timescape config      Print the effective configuration as YAML
    timescape counter     Show or reset the snapshot counter
    timescape benchmark   Render synthetic frames headless and report timings
"""

from __future__ import annotations

import logging
import tempfile
import time
from pathlib import Path
from typing import Optional

import typer

from timescape.config import EngineConfig

app = typer.Typer(
    name="timescape",
    help="Gesture-driven tesseract over a warping star field.",
    add_completion=False,
)


def _load_config(path: Optional[str]) -> EngineConfig:
    if path is None:
        return EngineConfig()
    try:
        return EngineConfig.from_yaml(path)
    except (OSError, ValueError) as e:
        typer.echo(f"Invalid config {path}: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def run(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    camera: Optional[int] = typer.Option(None, help="Camera index (overrides config)"),
    debug: Optional[bool] = typer.Option(None, "--debug/--no-debug", help="Show the debug overlay"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Open the camera and run the live installation."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    from timescape.engine import Engine

    cfg = _load_config(config)
    if camera is not None:
        cfg.camera_index = camera
    if debug is not None:
        cfg.show_debug = debug

    typer.echo(f"Starting Timescape on camera {cfg.camera_index} ({cfg.width}x{cfg.height})")
    typer.echo("   D: debug overlay | S: snapshot | Esc/Q: quit")
    try:
        Engine(cfg).run()
    except RuntimeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("config")
def show_config(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Print the effective configuration."""
    typer.echo(_load_config(config).to_yaml())


@app.command()
def counter(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    reset: bool = typer.Option(False, "--reset", help="Reset the counter to 1"),
):
    """Show (or reset) the persistent snapshot counter."""
    from timescape.capture import SnapshotStore

    cfg = _load_config(config)
    store = SnapshotStore(cfg.snapshot_dir, cfg.counter_file, cfg.filename_style)
    if reset:
        store.save_counter(1)
        typer.echo(f"Counter reset in {cfg.counter_file}")
    value = store.load_counter()
    typer.echo(f"Next snapshot: #{value} -> {store.filename(value)}")


def _render_synthetic(cfg: EngineConfig, frames: int, hands: int, seed: int) -> tuple[list[float], dict]:
    import numpy as np
    from timescape.context import EngineContext
    from timescape.renderer import FrameRenderer

    ctx = EngineContext.create(cfg)
    renderer = FrameRenderer(ctx)
    rng = np.random.default_rng(seed)

    base = [
        rng.uniform(0.2, 0.45, size=(21, 2)) * (cfg.video_width, cfg.video_height),
        rng.uniform(0.55, 0.8, size=(21, 2)) * (cfg.video_width, cfg.video_height),
    ][:max(0, min(hands, 2))]

    typer.echo(f"Rendering {frames} frames at {cfg.width}x{cfg.height} with {len(base)} hand(s)")
    latencies = []
    now = 0.0
    for _ in range(frames):
        jittered = [h + rng.normal(0, 2.0, size=h.shape) for h in base]
        t0 = time.perf_counter()
        renderer.render(jittered, now)
        latencies.append((time.perf_counter() - t0) * 1000)
        now += 1.0 / cfg.reference_fps
    return latencies, ctx.profiler.summary()


@app.command()
def benchmark(
    frames: int = typer.Option(300, help="Number of frames to render"),
    hands: int = typer.Option(2, help="Synthetic hands per frame (0-2)"),
    width: int = typer.Option(640, help="View width"),
    height: int = typer.Option(360, help="View height"),
    seed: int = typer.Option(0, help="Random seed"),
):
    """Render synthetic frames without a camera and report stage timings.

    Random hands can form a fist and fire a snapshot, so snapshots and the
    counter go to a scratch directory that is removed afterwards.
    """
    with tempfile.TemporaryDirectory(prefix="timescape-bench-") as scratch:
        cfg = EngineConfig(
            width=width,
            height=height,
            seed=seed,
            snapshot_dir=scratch,
            counter_file=str(Path(scratch) / "counter.json"),
        )
        latencies, summary = _render_synthetic(cfg, frames, hands, seed)

    latencies.sort()
    avg_ms = sum(latencies) / len(latencies) if latencies else 0.0
    p95_ms = latencies[int(len(latencies) * 0.95)] if latencies else 0.0
    typer.echo("\nResults:")
    typer.echo(f"   Average frame: {avg_ms:.2f} ms")
    typer.echo(f"   P95 frame:     {p95_ms:.2f} ms")
    typer.echo(f"   Throughput:    {1000 / avg_ms if avg_ms else 0:.0f} FPS")

    typer.echo("\nStage breakdown:")
    for name, stats in summary.items():
        typer.echo(f"   {name:12s} avg={stats['avg_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms")


def main():
    app()


if __name__ == "__main__":
    main()
