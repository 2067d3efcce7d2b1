"""Utility functions and helpers for the planctl application."""
from typing import Any, Dict, List, TextIO

import typer

REDACT_KEYS = ("password", "secret", "token", "key")


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if any(
                redact_key in str(k).lower()
                for redact_key in REDACT_KEYS
            ) and isinstance(v, str) and v else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    return data


def print_header(out: TextIO, title: str, underline: str = '=') -> None:
    """Print a section title followed by an underline of the same width."""
    typer.echo(f"\n{title}\n{underline * len(title)}", file=out)


def print_ok(out: TextIO, message: str) -> None:
    typer.echo(f"✅ {message}", file=out)


def print_table(out: TextIO, rows: Dict[str, List[str]]) -> None:
    """Print a two column table of host and roles."""
    if not rows:
        return
    width = max(len(k) for k in rows)
    for host in rows:
        typer.echo(f"  {host.ljust(width)}  {', '.join(rows[host])}", file=out)
