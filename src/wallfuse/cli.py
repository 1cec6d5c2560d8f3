"""CLI entry point for wallfuse.

Usage:
    wallfuse run session.json              # Replay a recorded session
    wallfuse info --config fusion.yaml     # Show effective configuration
    wallfuse schema                        # Print the config JSON schema
    wallfuse visualize session.json -t 3   # Plot sample points on a raster
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from wallfuse.core.errors import WallFuseError
from wallfuse.core.logging import setup_logging

app = typer.Typer(name="wallfuse", help="Wall detection by fusing segmentation with tracked surfaces")
console = Console()


def _load_config(config: Optional[Path]):
    from wallfuse.core.pipeline_runner import load_fusion_config

    try:
        return load_fusion_config(config)
    except (OSError, ValidationError) as e:
        console.print(f"[red]Invalid config {config}: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def run(
    session: Path = typer.Argument(..., help="Session file (JSON or YAML)"),
    config: Optional[Path] = typer.Option(None, help="Fusion config YAML"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write replay report JSON"),
    log_level: Optional[str] = typer.Option(None, help="Override the config log level"),
) -> None:
    """Replay a recorded session through the fusion engine."""
    fusion_cfg = _load_config(config)
    setup_logging(log_level or fusion_cfg.log_level)
    from wallfuse.core.pipeline_runner import run_session

    try:
        report = run_session(session, fusion_cfg, output_path=output)
    except (OSError, ValidationError, WallFuseError) as e:
        console.print(f"[red]Replay failed: {e}[/red]")
        raise typer.Exit(1)

    diag = report["diagnostics"]
    table = Table(title=f"Session: {session.name}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in diag.items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)

    if report["ticks"]:
        walls = [r["surface_id"] for r in report["ticks"][-1]["records"] if r["is_wall"]]
        console.print(f"[green]Visible walls:[/green] {', '.join(walls) if walls else '-'}")


@app.command()
def info(config: Optional[Path] = typer.Option(None, help="Fusion config YAML")) -> None:
    """Show the effective fusion configuration."""
    fusion_cfg = _load_config(config)
    table = Table(title=f"Fusion config: {config or 'defaults'}")
    table.add_column("Section", style="dim")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in fusion_cfg.model_dump().items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                table.add_row(key, sub_key, str(sub_value))
        else:
            table.add_row("-", key, str(value))
    console.print(table)


@app.command()
def schema() -> None:
    """Print the JSON schema of the fusion config."""
    from wallfuse.core.contracts import FusionConfig

    console.print_json(json.dumps(FusionConfig.model_json_schema()))


@app.command()
def visualize(
    session: Path = typer.Argument(..., help="Session file (JSON or YAML)"),
    tick: int = typer.Option(-1, "--tick", "-t", help="Tick index to inspect (-1 = last)"),
    config: Optional[Path] = typer.Option(None, help="Fusion config YAML"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save PNG instead of showing"),
) -> None:
    """Plot the stabilized raster with each surface's projected samples."""
    setup_logging("WARNING")
    from wallfuse.core.pipeline_runner import load_session, replay_to_tick
    from wallfuse.utils.visualization import plot_raster_samples

    fusion_cfg = _load_config(config)
    try:
        index = tick if tick >= 0 else len(load_session(session).ticks) + tick
        engine, camera = replay_to_tick(session, index, fusion_cfg)
    except (IndexError, OSError, ValidationError, WallFuseError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    raster = engine.stabilizer.current()
    state = camera()
    if raster is None or state is None:
        console.print(f"[yellow]No raster or camera at tick {index}[/yellow]")
        raise typer.Exit(1)

    from wallfuse.steps.s04_sample_projection.projector import generate_sample_points

    projector = engine.classifier.projector
    samples = {
        s.id: projector.project_points(
            generate_sample_points(s, projector.config), state, (raster.width, raster.height),
        )
        for s in engine.registry.all_tracking()
    }
    walls = engine.visibility.visible_walls()
    plot_raster_samples(
        raster.normalized(), samples, walls=walls,
        title=f"{session.name} tick {index}", save_path=output,
    )
    engine.close()
    if output:
        console.print(f"[green]Saved {output}[/green]")


if __name__ == "__main__":
    app()
