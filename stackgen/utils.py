"""Shared utility functions for stackgen.

Provides the subprocess runner used by the install, format and git plugins,
npm-style JSON helpers, file-system helpers and the Rich console output
used by the pipeline.  Console output can be muted globally with
:func:`set_quiet`, which the generator does when ``GeneratorSettings.quiet``
is set.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.rule import Rule
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Subprocesses
# ---------------------------------------------------------------------------


async def run_command(
    argv: Sequence[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run an external tool inside the project and collect its output.

    The child never gets a terminal: stdin is ``/dev/null`` so package
    managers cannot stop on a prompt.

    Args:
        argv: Executable followed by its arguments.  No shell is involved.
        cwd: Directory the tool runs in, normally the project directory.
        timeout: Seconds to wait before the child is killed.
        env: Variables layered over the current environment.

    Returns:
        ``(returncode, stdout, stderr)`` with both streams decoded and
        stripped.  A killed child reports ``-1`` and a "timed out" stderr.

    Raises:
        FileNotFoundError: If ``argv[0]`` cannot be executed.
    """
    child_env = {**os.environ, **env} if env else None
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=None if cwd is None else os.fspath(cwd),
        env=child_env,
    )

    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return -1, "", f"{argv[0]} timed out after {timeout}s"

    def _decode(raw: bytes | None) -> str:
        return (raw or b"").decode("utf-8", errors="replace").strip()

    return process.returncode or 0, _decode(out), _decode(err)


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

_UNSAFE_NAME_CHARS = re.compile(r"[^a-z0-9._-]+")


def sanitize_name(name: str) -> str:
    """Turn a project name into something npm accepts as a package name.

    Examples::

        sanitize_name("My Cool App") -> "my-cool-app"
        sanitize_name("  Shop (v2)  ") -> "shop-v2"
    """
    slug = _UNSAFE_NAME_CHARS.sub("-", name.strip().lower())
    slug = re.sub(r"-{2,}", "-", slug).strip("-._")
    return slug or "app"


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------


def load_json(path: str | Path) -> dict[str, Any]:
    """Read a JSON manifest such as ``package.json``.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the top-level value is not an object.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data


def dump_json(data: dict[str, Any] | list[Any]) -> str:
    """Serialise *data* the way npm writes manifests (2-space indent, newline)."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------


def ensure_dir(path: str | Path) -> Path:
    """Create *path* with any missing parents and return it resolved."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory.resolve()


def is_empty_dir(path: Path) -> bool:
    """Return ``True`` if *path* is a directory without any entries."""
    return path.is_dir() and not any(path.iterdir())


def write_text_file(path: Path, content: str) -> None:
    # Blocking; callers run it through asyncio.to_thread.
    ensure_dir(path.parent)
    path.write_text(content, encoding="utf-8")


def format_duration(seconds: float) -> str:
    """Short human form of a duration: ``250ms``, ``3.7s``, ``1m 5s``."""
    if seconds < 1:
        return f"{max(int(seconds * 1000), 0)}ms"
    minutes, rest = divmod(seconds, 60)
    if minutes:
        return f"{int(minutes)}m {int(rest)}s"
    return f"{rest:.1f}s"


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------


def set_quiet(quiet: bool) -> None:
    """Mute (or restore) all console output produced by stackgen."""
    console.quiet = quiet


def print_stage_header(index: int, total: int, name: str) -> None:
    console.print(Rule(f"[bold cyan]{name}[/bold cyan] [dim]({index}/{total})[/dim]", style="cyan"))


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Render *data* as a two-column table (field, value)."""
    table = Table(title=title, title_justify="left", show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    for field, value in data.items():
        table.add_row(field, str(value))
    console.print(table)


def print_success(message: str) -> None:
    console.print(f"[green]✔[/green] {message}")


def print_error(message: str) -> None:
    console.print(f"[bold red]✖ {message}[/bold red]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]! {message}[/yellow]")


def print_step(message: str) -> None:
    console.print(f"  [dim]{message}[/dim]")
