"""Shared helpers for platformgen.

Rich-based console output, logging setup, content hashing and small JSON
helpers used by the writer and the CLI.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.rule import Rule
from rich.table import Table

console = Console()


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def configure_logging(verbose: bool = False) -> None:
    """Route ``logging`` output through Rich.

    Args:
        verbose: Emit DEBUG records instead of WARNING and above.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose, rich_tracebacks=True)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Hashing / JSON
# ---------------------------------------------------------------------------


def content_hash(content: str | bytes) -> str:
    """Return the hex SHA-256 digest of *content* (UTF-8 for text)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def dump_json(data: Any) -> str:
    """Serialize *data* as pretty-printed JSON with a trailing newline.

    Key order follows insertion order.
    """
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def load_json(path: str | Path) -> dict[str, Any]:
    """Load and parse a JSON file that must contain an object.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the top level is not an object.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_phase_header(name: str, color: str = "bright_cyan") -> None:
    """Print a full-width rule announcing a phase of the run."""
    console.print(Rule(f"[bold {color}] {name} [/bold {color}]", style=color))


def print_summary_table(data: dict[str, Any], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_path_list(paths: list[str], title: str, style: str = "yellow") -> None:
    """Print a titled, indented list of paths."""
    console.print(f"[bold {style}]{title}[/bold {style}]")
    for path in paths:
        console.print(f"  [{style}]-[/{style}] {path}")


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
