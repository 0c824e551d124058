"""ChainTest CLI entry point."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from chaintest import __version__

console = Console()


@click.group()
@click.version_option(__version__, prog_name="chaintest")
def cli() -> None:
    """ChainTest - queued asynchronous assertions."""
    pass


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option(
    "--project",
    "-p",
    type=click.Path(exists=True, path_type=Path),
    help="Project root directory. Defaults to current directory.",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to chaintest.yaml config file.",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug logging and start every test in debug mode.",
)
@click.option(
    "--show-passed",
    is_flag=True,
    help="Report passing assertions too.",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Stop each test at its first failed assertion.",
)
def run(
    paths: tuple[Path, ...],
    project: Path | None,
    config: Path | None,
    debug: bool,
    show_passed: bool,
    strict: bool,
) -> None:
    """Run the test groups defined in Python files.

    PATHS are files or directories; directories are searched for chain_*.py.
    Without PATHS the configured test_paths are used.
    """
    from chaintest.config import load_config, resolve_paths
    from chaintest.reporters import ConsoleReporter
    from chaintest.runner import LoadError, discover, format_results, load_groups
    from chaintest.runner import run as run_groups
    from chaintest.test import DEFAULT_TIMEOUT_SECONDS

    project_root = project or Path.cwd()

    cfg = resolve_paths(load_config(config_path=config, project_root=project_root), project_root)

    overrides = {
        key: True
        for key, enabled in (("debug", debug), ("show_passed", show_passed), ("strict", strict))
        if enabled
    }
    if overrides:
        cfg = cfg.model_copy(update=overrides)

    if cfg.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
        console.print(f"[dim]Config: {cfg.model_dump_json(indent=2)}[/dim]\n")

    files = discover(paths or cfg.test_paths)
    if not files:
        console.print("[yellow]No test files found.[/yellow]")
        raise SystemExit(1)

    groups = []
    try:
        for file in files:
            groups.extend(load_groups(file))
    except LoadError as e:
        console.print(f"[red]Error loading tests:[/red] {e}")
        raise SystemExit(1)

    enabled = [key for key in ("debug", "strict", "show_passed") if getattr(cfg, key)]
    for group in groups:
        if cfg.timeout_seconds != DEFAULT_TIMEOUT_SECONDS and group.timeout_seconds == DEFAULT_TIMEOUT_SECONDS:
            group.timeout_seconds = cfg.timeout_seconds
            for test in group.tests:
                if test.timeout_seconds == DEFAULT_TIMEOUT_SECONDS:
                    test.timeout_seconds = cfg.timeout_seconds
        if cfg.post_mortem:
            group.configure(post_mortem=True)
        for key in enabled:
            setattr(group, key, True)
            for test in group.tests:
                setattr(test, key, True)

    console.print(f"[dim]Running {len(groups)} group(s) from {len(files)} file(s)[/dim]\n")

    run_groups(groups, reporters=[ConsoleReporter(console, show_passed=cfg.show_passed)])

    output = format_results(groups, show_passed=cfg.show_passed)

    if all(group.passed for group in groups):
        console.print(Panel(output, title="[green]Tests Passed[/green]", border_style="green"))
    else:
        console.print(Panel(output, title="[red]Tests Failed[/red]", border_style="red"))
        raise SystemExit(1)


@cli.command()
def init() -> None:
    """Initialize ChainTest in the current directory.

    Creates:
    - chains/
    - chaintest.yaml
    """
    project_root = Path.cwd()

    chains = project_root / "chains"
    chains.mkdir(parents=True, exist_ok=True)
    console.print(f"[green]✓[/green] Created {chains.relative_to(project_root)}/")

    config_file = project_root / "chaintest.yaml"
    if not config_file.exists():
        config_file.write_text(
            """\
# ChainTest configuration
version: "0.1"

# Per-assertion timeout in seconds (0 disables it)
# timeout_seconds: 10

# Start every test in debug mode
# debug: false

# Stop a test at its first failed assertion
# strict: false

# Report passing assertions as well as failures
# show_passed: false

# Open pdb on unexpected errors while a test is in debug mode
# post_mortem: false

# Files or directories to search for chain_*.py modules
# test_paths:
#   - chains
"""
        )
        console.print(f"[green]✓[/green] Created {config_file.name}")
    else:
        console.print(f"[yellow]-[/yellow] {config_file.name} already exists")

    console.print("\n[dim]ChainTest initialized. Create test groups in chains/chain_*.py[/dim]")


@cli.command()
@click.option(
    "--project",
    "-p",
    type=click.Path(exists=True, path_type=Path),
    help="Project root directory. Defaults to current directory.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to chaintest.yaml config file.",
)
def config(project: Path | None, config_path: Path | None) -> None:
    """Show the current configuration."""
    from chaintest.config import load_config

    project_root = project or Path.cwd()
    cfg = load_config(config_path=config_path, project_root=project_root)

    console.print(Panel(cfg.model_dump_json(indent=2), title="ChainTest Config"))


if __name__ == "__main__":
    cli()
