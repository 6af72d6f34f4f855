"""
CLI entry point — Click-based command-line interface.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.group()
@click.version_option(version="0.1.0", prog_name="tetherfield")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool):
    """TETHERFIELD — obstacle distance, gradient and curl fields.

    Compute and sample proximity fields around 2D obstacles.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )


@cli.command()
@click.argument("config_path", type=click.Path(exists=True))
@click.option("--ticks", "-t", default=None, type=int, help="Override max ticks.")
@click.option("--no-progress", is_flag=True, help="Disable progress bar.")
@click.option("--realtime/--fast", default=False, help="Sleep one frame per tick.")
@click.option("--output", "-o", default=None, type=click.Path(), help="Output metrics JSON.")
def run(config_path: str, ticks: int | None, no_progress: bool, realtime: bool, output: str | None):
    """Run the tick loop for a YAML scenario."""
    from tetherfield.config import build_engine, load_config, parse_probes

    console.print(f"[bold blue]Loading scenario:[/bold blue] {config_path}")
    try:
        config = load_config(config_path)
        engine = build_engine(config)
        probes = parse_probes(config)
    except (KeyError, ValueError) as exc:
        raise click.ClickException(f"Invalid scenario: {exc}") from exc

    region = engine.region
    console.print(
        f"[bold green]Starting:[/bold green] "
        f"{region.width}x{region.height} field, "
        f"{len(engine.obstacles)} obstacles, "
        f"{engine.clock.pending} scheduled events"
    )

    try:
        history = engine.run(max_ticks=ticks, show_progress=not no_progress, realtime=realtime)
        # Deliver whatever is still in flight so the summary reflects it
        while engine.scheduler.pending:
            engine.scheduler.wait()
            field = engine.scheduler.poll()
            if field is not None:
                engine.store.publish(field)
    finally:
        engine.close()

    summary = engine.summary()
    _print_summary(summary)
    if probes:
        _print_probes(engine.store.current, probes)

    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_data = {
            "summary": summary,
            "tick_count": len(history),
            "history": [
                {
                    "tick": s.tick,
                    "time": s.time,
                    "triggered": s.triggered,
                    "published": s.published,
                    "computing": s.computing,
                    "field_version": s.field_version,
                    "obstacle_version": s.obstacle_version,
                }
                for s in history
            ],
        }
        out_path.write_text(json.dumps(metrics_data, indent=2))
        console.print(f"[dim]Metrics saved to {output}[/dim]")


@cli.command()
@click.argument("config_path", type=click.Path(exists=True))
@click.option("--output", "-o", required=True, type=click.Path(), help="Output .npz file.")
def compute(config_path: str, output: str):
    """Compute a field synchronously with every obstacle of a scenario."""
    from tetherfield.config import build_region, build_snapshot, load_config
    from tetherfield.field.kernel import compute_field
    from tetherfield.field.store import save_field

    try:
        config = load_config(config_path)
        region = build_region(config)
        snapshot = build_snapshot(config)
    except (KeyError, ValueError) as exc:
        raise click.ClickException(f"Invalid scenario: {exc}") from exc

    with console.status(f"Computing {region.width}x{region.height} field..."):
        field = compute_field(region, snapshot)

    out_path = Path(output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    save_field(field, out_path)
    console.print(
        f"[bold green]Field computed[/bold green] in {field.computed_in:.3f}s "
        f"({len(snapshot)} obstacles) → {output}"
    )


@cli.command()
@click.argument("field_path", type=click.Path(exists=True))
@click.argument("x", type=float)
@click.argument("y", type=float)
def sample(field_path: str, x: float, y: float):
    """Sample a saved field at world point (X, Y)."""
    from tetherfield.field.store import load_field

    field = load_field(field_path)
    _print_probes(field, [(x, y)])


def _print_summary(summary: dict):
    """Pretty-print run summary."""
    table = Table(title="Field Engine Results", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Total Ticks", str(summary["ticks"]))
    table.add_row("Simulated Time", f'{summary["time_seconds"]:.2f}s')
    table.add_row("Obstacles", str(summary["obstacles"]))
    table.add_row("Computations Launched", str(summary["computations_launched"]))
    table.add_row("Triggers Coalesced", str(summary["triggers_coalesced"]))
    table.add_row("Fields Published", str(summary["fields_published"]))
    table.add_row("Field / Obstacle Version", f'{summary["field_version"]} / {summary["obstacle_version"]}')
    if "mean_kernel_seconds" in summary:
        table.add_row("Mean Kernel Time", f'{summary["mean_kernel_seconds"]:.3f}s')
        table.add_row("Max Latency", f'{summary["max_latency_ticks"]} ticks')

    console.print(table)


def _print_probes(field, probes):
    """Pretty-print checked samples of every layer at each probe point."""
    table = Table(title="Field Samples")
    table.add_column("Point")
    table.add_column("Distance", justify="right")
    table.add_column("Gradient", justify="right")
    table.add_column("Curl", justify="right")

    for point in probes:
        label = f"({point[0]:g}, {point[1]:g})"
        distance = field.sample_checked(point, "distance")
        if distance is None:
            table.add_row(label, "[yellow]outside field[/yellow]", "", "")
            continue
        gradient = field.sample_checked(point, "gradient")
        curl = field.sample_checked(point, "curl")
        table.add_row(
            label,
            f"{distance:.3f}",
            f"({gradient[0]:.3f}, {gradient[1]:.3f})",
            f"{curl:.4f}",
        )

    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
