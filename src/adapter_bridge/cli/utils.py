"""
Utility functions for CLI commands.

This module provides helpers for formatting output and writing fetched
records to disk.
"""

import json
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from adapter_bridge.elements import Record, ReferenceExpression

console = Console()


def echo_success(message: str) -> None:
    """Print success message in green."""
    click.secho(f"✓ {message}", fg="green")


def echo_warning(message: str) -> None:
    """Print warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    """Print info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def format_count(count: int) -> str:
    """
    Format large numbers with thousands separator.

    Args:
        count: Number to format

    Returns:
        Formatted number (e.g., "1,234,567")
    """
    return f"{count:,}"


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[Any]],
    show_header: bool = True,
) -> None:
    """
    Print a formatted table using rich.

    Args:
        title: Table title
        columns: Column headers
        rows: List of row data
        show_header: Whether to show header row
    """
    table = Table(title=title, show_header=show_header)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*[str(cell) for cell in row])

    console.print(table)


def to_serializable(value: Any) -> Any:
    """Turn a record value into JSON-compatible data; references become ``{"ref": id}``."""
    if isinstance(value, ReferenceExpression):
        return {"ref": value.elem_id.full_name}
    if isinstance(value, dict):
        return {key: to_serializable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_serializable(item) for item in value]
    return value


def record_to_dict(record: Record) -> dict[str, Any]:
    data: dict[str, Any] = {
        "elem_id": record.elem_id.full_name,
        "kind": record.kind,
        "value": to_serializable(record.value),
    }
    if record.annotations:
        data["annotations"] = to_serializable(record.annotations)
    if record.fields:
        data["fields"] = to_serializable(record.fields)
    return data


def write_records(records: list[Record], output_dir: Path) -> int:
    """Write each record as JSON under ``output_dir`` following its path.

    Returns:
        Number of files written
    """
    written = 0
    for record in records:
        segments = record.path or (record.elem_id.adapter, record.kind, record.name)
        path = output_dir.joinpath(*segments).with_suffix(".json")
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(record_to_dict(record), f, indent=2, default=str)
        written += 1
    return written
