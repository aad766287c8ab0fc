"""
Diagnostics collector - converts a raised exception into a Diagnostic.

from_error() classifies the exception into a stable ErrorCategory, captures
the message and the innermost stack frame, and unwraps the causal chain
(explicit `raise ... from`, otherwise the implicit context) into nested
Diagnostics. The walk stops at the first exception already seen, so the
chain is always finite.
"""

import asyncio
import concurrent.futures
import socket
import subprocess
import traceback
from typing import Optional

from fallchain.errors import ImplementationFailure, TimeoutFailure
from fallchain.schemas import Diagnostic, ErrorCategory


# Ordered: first isinstance match wins, so subclasses precede their bases.
_CATEGORY_BY_TYPE: tuple[tuple[tuple[type[BaseException], ...], ErrorCategory], ...] = (
    ((TimeoutFailure, TimeoutError, concurrent.futures.TimeoutError), ErrorCategory.TIMEOUT),
    ((ConnectionError, socket.gaierror, socket.herror), ErrorCategory.NETWORK),
    ((PermissionError,), ErrorCategory.PERMISSION),
    ((FileNotFoundError, ImportError), ErrorCategory.MISSING_DEPENDENCY),
    ((NotImplementedError,), ErrorCategory.NOT_APPLICABLE),
    ((subprocess.CalledProcessError, subprocess.TimeoutExpired), ErrorCategory.SUBPROCESS),
    ((OSError,), ErrorCategory.OS),
    ((ValueError, TypeError, KeyError, LookupError), ErrorCategory.INVALID_INPUT),
)

# Fallback for user-defined exception classes that follow common naming.
_CATEGORY_BY_NAME: tuple[tuple[str, ErrorCategory], ...] = (
    ("timeout", ErrorCategory.TIMEOUT),
    ("network", ErrorCategory.NETWORK),
    ("connection", ErrorCategory.NETWORK),
    ("dns", ErrorCategory.NETWORK),
    ("permission", ErrorCategory.PERMISSION),
)


def classify(err: BaseException) -> ErrorCategory:
    """Return the ErrorCategory for an exception."""
    if isinstance(err, TimeoutFailure):
        return ErrorCategory.TIMEOUT
    if isinstance(err, ImplementationFailure):
        return err.category

    # asyncio.CancelledError is a BaseException raised from inside a coroutine
    if isinstance(err, asyncio.CancelledError):
        return ErrorCategory.CANCELLED

    # subprocess.TimeoutExpired is a SubprocessError, not a TimeoutError
    if isinstance(err, subprocess.TimeoutExpired):
        return ErrorCategory.TIMEOUT

    for types, category in _CATEGORY_BY_TYPE:
        if isinstance(err, types):
            return category

    for cls in type(err).__mro__:
        name = cls.__name__.lower()
        for needle, category in _CATEGORY_BY_NAME:
            if needle in name:
                return category

    return ErrorCategory.UNKNOWN


def _error_type(err: BaseException) -> str:
    cls = type(err)
    if cls.__module__ in ("builtins", "__main__"):
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _message(err: BaseException) -> str:
    if isinstance(err, subprocess.CalledProcessError):
        message = f"Command {err.cmd!r} exited with status {err.returncode}"
        stderr = err.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode(errors="replace")
        if stderr:
            message += f": {stderr.strip()}"
        return message

    message = str(err)
    if isinstance(err, KeyError) and err.args:
        # KeyError str() wraps the key in quotes
        message = f"missing key {err.args[0]!r}"
    return message or type(err).__name__


def _location(err: BaseException) -> Optional[str]:
    """Innermost frame of the exception's traceback as 'file:line in func'."""
    if err.__traceback__ is None:
        return None
    frames = traceback.extract_tb(err.__traceback__)
    if not frames:
        return None
    frame = frames[-1]
    return f"{frame.filename}:{frame.lineno} in {frame.name}"


def _next_cause(err: BaseException) -> Optional[BaseException]:
    if err.__cause__ is not None:
        return err.__cause__
    if err.__suppress_context__:
        return None
    return err.__context__


def from_error(
    err: BaseException,
    operation: Optional[str] = None,
    implementation_rank: Optional[int] = None,
    implementation: Optional[str] = None,
) -> Diagnostic:
    """
    Build a Diagnostic from an exception.

    The outermost Diagnostic carries the operation and implementation
    context; nested causes carry only their own category, message, type and
    location.

    Args:
        err: The exception raised by the implementation
        operation: Operation being executed
        implementation_rank: Rank of the failing implementation
        implementation: Description of the failing implementation

    Returns:
        Diagnostic with the full causal chain attached
    """
    # Collect the chain outermost-first, guarding against cycles
    chain: list[BaseException] = []
    seen: set[int] = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        current = _next_cause(current)

    # Build innermost-first so each Diagnostic can reference its cause
    cause: Optional[Diagnostic] = None
    for exc in reversed(chain[1:]):
        cause = Diagnostic(
            category=classify(exc),
            message=_message(exc),
            error_type=_error_type(exc),
            location=_location(exc),
            cause=cause,
        )

    return Diagnostic(
        category=classify(err),
        message=_message(err),
        error_type=_error_type(err),
        operation=operation,
        implementation_rank=implementation_rank,
        implementation=implementation,
        location=_location(err),
        cause=cause,
    )
