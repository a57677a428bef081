"""
CLI interface using Click.

Developer surface over the detection pipeline and action executor.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from playpilot import __version__
from playpilot.actuator import ActionExecutor, ActionRequest, ActionResult, DryRunDevice
from playpilot.config import (
    ConfigurationError,
    PlayPilotConfig,
    get_default_config_path,
    load_config,
    save_config,
)
from playpilot.errors import PlayPilotError
from playpilot.geometry import ScreenGeometry
from playpilot.logging import get_logger, setup_logging
from playpilot.perception import (
    CustomElement,
    DetectionOptions,
    DetectionPipeline,
    DetectionResult,
    ScreenCapture,
)

console = Console()
logger = get_logger(__name__)


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to config file")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), help="Also write JSON-lines logs to this file")
@click.pass_context
def main(
    ctx: click.Context,
    version: bool,
    verbose: bool,
    config_path: Optional[str],
    log_file: Optional[Path],
) -> None:
    """PlayPilot - find and drive on-screen video player controls."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path

    setup_logging(level="DEBUG" if verbose else "WARNING", log_file=log_file)

    if version:
        console.print(f"playpilot v{__version__}")
        sys.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _load(ctx: click.Context) -> PlayPilotConfig:
    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


def _probe_geometry(config: PlayPilotConfig) -> Optional[ScreenGeometry]:
    """Real screen size for dry runs, if a display is reachable."""
    try:
        return ScreenCapture(config.capture).geometry()
    except PlayPilotError as e:
        logger.debug("No display for dry run, using default geometry", error=str(e))
        return None


def _executor(config: PlayPilotConfig, dry_run: bool) -> ActionExecutor:
    if dry_run:
        device = DryRunDevice(geometry=_probe_geometry(config))
        return ActionExecutor(config.mouse, device=device, dry_run=True)
    return ActionExecutor(config.mouse)


def _parse_template(value: str) -> CustomElement:
    element_type, sep, path = value.partition("=")
    if not sep or not element_type or not path:
        raise click.BadParameter(f"expected TYPE=PATH, got {value!r}", param_hint="--template")
    return CustomElement(type=element_type, template=Path(path))


def _print_detection(result: DetectionResult) -> None:
    table = Table(title=f"Detection ({result.element_count} elements)")
    table.add_column("Kind", style="cyan")
    table.add_column("Type")
    table.add_column("Text")
    table.add_column("Center", justify="right")
    table.add_column("Confidence", justify="right")

    for kind, elements in (("button", result.buttons), ("video", result.videos), ("custom", result.elements)):
        for element in elements:
            d = element.to_dict()
            table.add_row(
                kind,
                d["type"],
                element.text or "-",
                f"{element.center[0]}, {element.center[1]}",
                f"{element.confidence:.2f}",
            )

    console.print(table)
    console.print(f"[dim]{len(result.text_regions)} text regions[/dim]")
    if result.screenshot_path:
        console.print(f"[dim]Screenshot: {result.screenshot_path}[/dim]")


def _print_results(results: List[ActionResult]) -> None:
    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Action", style="cyan")
    table.add_column("Status")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Detail")

    for i, result in enumerate(results, 1):
        status = "[green]✓[/green]" if result.success else "[red]✗[/red]"
        detail = result.error or ", ".join(f"{k}={v}" for k, v in result.params.items() if v is not None)
        table.add_row(str(i), result.action_type, status, str(result.duration_ms), detail)

    console.print(table)


@main.command()
@click.option("--no-text", is_flag=True, help="Skip OCR")
@click.option("--no-buttons", is_flag=True, help="Skip keyword button detection")
@click.option("--no-videos", is_flag=True, help="Skip dark-region video detection")
@click.option("--template", "-t", "templates", multiple=True, help="Custom element as TYPE=PATH")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def detect(
    ctx: click.Context,
    no_text: bool,
    no_buttons: bool,
    no_videos: bool,
    templates: Tuple[str, ...],
    as_json: bool,
) -> None:
    """Run one detection cycle on the current screen."""
    config = _load(ctx)
    options = DetectionOptions(
        detect_text=not no_text,
        detect_buttons=not no_buttons,
        detect_videos=not no_videos,
        custom_elements=[_parse_template(t) for t in templates],
    )

    async def _run() -> DetectionResult:
        async with DetectionPipeline(config) as pipeline:
            return await pipeline.detect(options)

    try:
        result = asyncio.run(_run())
    except PlayPilotError as e:
        console.print(f"[red]Detection failed: {e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_detection(result)


@main.command()
@click.pass_context
def screen(ctx: click.Context) -> None:
    """Show screen geometry and pointer position."""
    config = _load(ctx)
    try:
        executor = ActionExecutor(config.mouse)
        position = executor.current_position()
    except PlayPilotError as e:
        console.print(f"[red]Input layer unavailable: {e}[/red]")
        sys.exit(1)

    geometry = executor.screen_geometry
    margin = config.mouse.safety_margin

    table = Table(show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Screen Size", f"{geometry.width} x {geometry.height}")
    table.add_row("Safe Area", f"{margin}..{geometry.width - margin} x {margin}..{geometry.height - margin}")
    table.add_row("Pointer", f"{position[0]}, {position[1]}")
    console.print(table)


@main.command(name="click")
@click.argument("x", type=int)
@click.argument("y", type=int)
@click.option("--retries", "-r", type=int, default=None, help="Attempts before giving up (default: config)")
@click.option("--human", is_flag=True, help="Add human-like latency and jitter")
@click.option("--dry-run", is_flag=True, help="Log actions without executing")
@click.pass_context
def click_cmd(
    ctx: click.Context,
    x: int,
    y: int,
    retries: Optional[int],
    human: bool,
    dry_run: bool,
) -> None:
    """Click at screen coordinates X Y."""
    config = _load(ctx)

    async def _run() -> ActionResult:
        executor = _executor(config, dry_run)
        if human:
            return await executor.human_like_action(ActionRequest.click(x, y))
        return await executor.smart_click(x, y, retries=retries)

    try:
        result = asyncio.run(_run())
    except PlayPilotError as e:
        console.print(f"[red]Click failed: {e}[/red]")
        sys.exit(1)

    _print_results([result])


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Log actions without executing")
@click.pass_context
def batch(ctx: click.Context, file: str, dry_run: bool) -> None:
    """Run a YAML list of actions from FILE."""
    config = _load(ctx)

    try:
        with open(file, "r", encoding="utf-8") as f:
            actions = yaml.safe_load(f) or []
    except yaml.YAMLError as e:
        console.print(f"[red]Invalid YAML in {file}: {e}[/red]")
        sys.exit(1)

    if not isinstance(actions, list) or not all(isinstance(a, dict) for a in actions):
        console.print("[red]Batch file must contain a list of action mappings[/red]")
        sys.exit(1)

    async def _run() -> List[ActionResult]:
        executor = _executor(config, dry_run)
        return await executor.perform_batch(actions)

    try:
        results = asyncio.run(_run())
    except PlayPilotError as e:
        console.print(f"[red]Batch failed: {e}[/red]")
        sys.exit(1)

    _print_results(results)
    if dry_run:
        console.print("\n[dim]Note: This was a dry-run. No actual input was sent.[/dim]")
    if not all(r.success for r in results):
        sys.exit(1)


@main.command()
@click.option("--init", "init_file", is_flag=True, help="Write the default config file")
@click.pass_context
def config(ctx: click.Context, init_file: bool) -> None:
    """Show the effective configuration or write a default one."""
    config_path = ctx.obj.get("config_path")

    if init_file:
        target = Path(config_path) if config_path else get_default_config_path()
        if target.exists() and not click.confirm(f"{target} exists. Overwrite?"):
            console.print("Cancelled.")
            return
        path = save_config(PlayPilotConfig(), str(target))
        console.print(f"[green]✓ Config written to {path}[/green]")
        return

    effective = _load(ctx)
    text = yaml.safe_dump(effective.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
    console.print(Syntax(text, "yaml"))


if __name__ == "__main__":
    main()
