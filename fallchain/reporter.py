"""
Reporter - renders an ExecutionResult for humans and for log capture.

- render(): plain-text summary
- render_kv(): key=value lines, one per fact
- render_json(): JSON document from ExecutionResult.to_dict()
- print_result(): coloured console output via rich

For exhausted or cancelled results every diagnostic is shown in attempted
order. The root cause is often in the preferred path, while the last
attempt's error is often just "not applicable here".
"""

import json
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fallchain.schemas import (
    Cancelled,
    Diagnostic,
    ExecutionResult,
    Exhausted,
    Succeeded,
)


def _format_diagnostic(diagnostic: Diagnostic, indent: str = "  ") -> list[str]:
    rank = diagnostic.implementation_rank
    head = f"rank {rank}" if rank is not None else "?"
    if diagnostic.implementation:
        head += f" ({diagnostic.implementation})"
    lines = [
        f"{indent}- {head}: [{diagnostic.category.value}] "
        f"{diagnostic.error_type}: {diagnostic.message}"
    ]
    if diagnostic.location:
        lines.append(f"{indent}    at {diagnostic.location}")

    depth = 1
    for cause in list(diagnostic.chain())[1:]:
        pad = indent + "    " * depth
        lines.append(
            f"{pad}caused by [{cause.category.value}] {cause.error_type}: {cause.message}"
        )
        depth += 1
    return lines


def render(result: ExecutionResult) -> str:
    """
    Render a human-readable summary of an execution result.

    Args:
        result: Succeeded, Exhausted or Cancelled

    Returns:
        Multi-line text summary
    """
    lines: list[str] = []

    if isinstance(result, Succeeded):
        lines.append(
            f"{result.operation}: succeeded via rank {result.rank} "
            f"({result.implementation}) in {result.duration_ms}ms"
        )
        if result.used_fallback:
            lines.append(f"Fell back after {len(result.diagnostics)} failed attempt(s):")
            for diagnostic in result.diagnostics:
                lines.extend(_format_diagnostic(diagnostic))
        return "\n".join(lines)

    if isinstance(result, Cancelled):
        lines.append(
            f"{result.operation}: cancelled after {len(result.attempt_list)} attempt(s) "
            f"in {result.duration_ms}ms"
        )
    elif isinstance(result, Exhausted):
        lines.append(
            f"{result.operation}: exhausted, all {len(result.diagnostics)} "
            f"implementation(s) failed in {result.duration_ms}ms"
        )
    else:
        lines.append(f"{result.operation}: {result.status}")

    for diagnostic in getattr(result, "diagnostics", ()):
        lines.extend(_format_diagnostic(diagnostic))
    return "\n".join(lines)


def _kv_value(value: object) -> str:
    text = "" if value is None else str(value)
    if not text or any(ch.isspace() for ch in text) or '"' in text or "=" in text:
        return json.dumps(text)
    return text


def render_kv(result: ExecutionResult) -> str:
    """
    Render an execution result as key=value lines for log capture.

    Values containing whitespace, quotes or '=' are JSON-quoted. Per-attempt
    keys are prefixed with attempt.<n>.
    """
    pairs: list[tuple[str, object]] = [
        ("operation", result.operation),
        ("status", result.status),
        ("duration_ms", result.duration_ms),
        ("attempts", len(result.attempt_list)),
    ]
    if isinstance(result, Succeeded):
        pairs.append(("rank", result.rank))
        pairs.append(("implementation", result.implementation))

    for n, attempt in enumerate(result.attempt_list):
        prefix = f"attempt.{n}"
        pairs.append((f"{prefix}.rank", attempt.rank))
        pairs.append((f"{prefix}.implementation", attempt.implementation))
        pairs.append((f"{prefix}.status", attempt.status.value))
        pairs.append((f"{prefix}.duration_ms", attempt.duration_ms))
        if attempt.diagnostic is not None:
            diagnostic = attempt.diagnostic
            pairs.append((f"{prefix}.category", diagnostic.category.value))
            pairs.append((f"{prefix}.error_type", diagnostic.error_type))
            pairs.append((f"{prefix}.message", diagnostic.message))
            for depth, cause in enumerate(list(diagnostic.chain())[1:], start=1):
                pairs.append((f"{prefix}.cause.{depth}", f"{cause.error_type}: {cause.message}"))

    return "\n".join(f"{key}={_kv_value(value)}" for key, value in pairs)


def render_json(result: ExecutionResult, indent: Optional[int] = 2) -> str:
    """Render an execution result as JSON. Non-serializable values use str()."""
    return json.dumps(result.to_dict(), indent=indent, default=str)


_STATUS_STYLE = {
    "succeeded": "green",
    "failed": "red",
    "timed_out": "red",
    "abandoned": "yellow",
}


def print_result(result: ExecutionResult, console: Optional[Console] = None) -> None:
    """Print an execution result to the console with rich formatting."""
    if console is None:
        from fallchain.utils import console

    if isinstance(result, Succeeded):
        style = "yellow" if result.used_fallback else "green"
        console.print(
            f"[{style}]✓[/{style}] [bold]{escape(result.operation)}[/bold] "
            f"succeeded via rank {result.rank} ({escape(result.implementation)})"
        )
    elif isinstance(result, Cancelled):
        console.print(f"[yellow]⊘[/yellow] [bold]{escape(result.operation)}[/bold] cancelled")
    else:
        console.print(
            f"[red]✗[/red] [bold]{escape(result.operation)}[/bold] exhausted: "
            "no implementation succeeded"
        )

    if not result.attempt_list:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Rank", justify="right")
    table.add_column("Implementation")
    table.add_column("Status")
    table.add_column("ms", justify="right")
    table.add_column("Error")
    for attempt in result.attempt_list:
        style = _STATUS_STYLE.get(attempt.status.value, "")
        error = ""
        if attempt.diagnostic is not None:
            error = f"[{attempt.diagnostic.category.value}] {attempt.diagnostic.message}"
            root = attempt.diagnostic.root_cause
            if root is not attempt.diagnostic:
                error += f"\n  root cause: {root.error_type}: {root.message}"
        table.add_row(
            str(attempt.rank),
            escape(attempt.implementation),
            f"[{style}]{attempt.status.value}[/{style}]" if style else attempt.status.value,
            str(attempt.duration_ms),
            escape(error),
        )
    console.print(table)
