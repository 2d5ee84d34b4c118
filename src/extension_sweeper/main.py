"""Main entry point for the extension sweeper."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .application import SweepApplication
from .config import SweepConfig
from .errors import CombinedDeletionError, DirectoryValidationError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments.

    """
    parser = argparse.ArgumentParser(
        prog="ext-sweep",
        description="Delete every file with a given extension from a directory",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Delete matching files in a directory")
    run_parser.add_argument("directory", type=Path, help="Directory to sweep")
    run_parser.add_argument("--extension", "-e", default=None, help="File extension to delete (e.g. .rdp)")
    run_parser.add_argument("--workers", "-w", type=int, default=None, help="Number of concurrent workers")
    run_parser.add_argument("--retries", "-r", type=int, default=None, help="Retries per file")
    run_parser.add_argument("--timeout", "-t", type=float, default=None, help="Seconds per delete attempt")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "--init",
        action="store_true",
        help="Create default configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )

    return parser.parse_args(argv)


def _apply_overrides(config: SweepConfig, args: argparse.Namespace) -> None:
    """Copy command line overrides onto the loaded config."""
    if args.extension is not None:
        config.extension = args.extension
    if args.workers is not None:
        config.worker_count = args.workers
    if args.retries is not None:
        config.max_retries = args.retries
    if args.timeout is not None:
        config.attempt_timeout = args.timeout


def cmd_run(config: SweepConfig, args: argparse.Namespace, console: Console | None = None) -> int:
    """Execute run command.

    Args:
        config: Sweeper configuration.
        args: Parsed arguments.
        console: Console for output.

    Returns:
        Exit code.

    """
    console = console or Console()
    _apply_overrides(config, args)

    try:
        app = SweepApplication(config, console=console)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        return 1
    except OSError as e:
        console.print(f"[red]Cannot open log file: {e}[/red]")
        return 1

    try:
        report = asyncio.run(app.run(args.directory))
        report.raise_for_errors()
    except DirectoryValidationError as e:
        console.print(f"[red]Error validating directory: {e}[/red]")
        return 1
    except CombinedDeletionError as e:
        console.print(f"[red]Error deleting files: {e}[/red]")
        return 1
    except OSError as e:
        console.print(f"[red]Error reading directory: {e}[/red]")
        return 1

    console.print(
        f"[green]All files with the specified extension deleted successfully "
        f"({report.removed_count} files).[/green]"
    )
    return 0


def cmd_config(config: SweepConfig, args: argparse.Namespace, console: Console | None = None) -> int:
    """Execute config command.

    Args:
        config: Sweeper configuration.
        args: Parsed arguments.
        console: Console for output.

    Returns:
        Exit code.

    """
    console = console or Console()
    config_path = args.config or SweepConfig.get_config_path()

    if args.init:
        if config_path.exists():
            console.print(f"[yellow]Config already exists: {config_path}[/yellow]")
            return 1
        config.save(config_path)
        console.print(f"[green]Created config: {config_path}[/green]")
        return 0

    if args.show:
        table = Table(title="Current Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Extension", config.extension)
        table.add_row("Workers", str(config.worker_count))
        table.add_row("Max retries", str(config.max_retries))
        table.add_row("Attempt timeout", f"{config.attempt_timeout}s")
        table.add_row("Directory prompts", str(config.max_directory_prompts))
        table.add_row("Log file", str(config.log_file) if config.log_file else "-")
        table.add_row("Log level", config.log_level)

        console.print(table)
        return 0

    console.print("[yellow]Use --init or --show[/yellow]")
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)
    config = SweepConfig.load(args.config)

    if args.command == "run":
        return cmd_run(config, args)
    elif args.command == "config":
        return cmd_config(config, args)
    else:
        print("Usage: ext-sweep run <directory_path>")
        return 1


if __name__ == "__main__":
    sys.exit(main())
