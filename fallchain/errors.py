"""
Error classes for fallchain execution.

Two families of errors exist, and they are handled at different boundaries:

Configuration / environment errors (fatal, never caught by the executor):
- EnvironmentMismatch: current platform does not satisfy the requirement
- UnknownOperation: nothing was registered under the requested name
- DuplicateRank: a rank is already occupied for an operation
- RegistryFrozenError: registration attempted after execution began
- DefinitionError: a definitions file could not be loaded
- ConfigError: fallchain config.yaml is invalid

Implementation failures (expected, recovered through the fallback chain):
- ImplementationFailure: base class implementations raise to label a failure
- TransientError: safe to retry later (rate limits, flaky network)
- PermanentError: will not succeed on this host (bad input, missing resource)
- NotApplicableError: this mechanism does not apply here
- TimeoutFailure: the implementation exceeded its timeout
- AttemptAbandoned: execution was cancelled while the implementation ran

Implementations are free to raise any exception. The executor catches at the
per-rank boundary and converts it into a Diagnostic; callers only ever see
the aggregated ExecutionResult.
"""

from typing import Optional

from fallchain.schemas.diagnostic import ErrorCategory


class FallchainError(Exception):
    """Base exception for fallchain."""
    pass


class ConfigurationError(FallchainError):
    """Registry or definitions misconfiguration, raised at setup time."""
    pass


class UnknownOperation(ConfigurationError):
    """Raised when no implementation was ever registered for an operation."""

    def __init__(self, operation: str, known: Optional[list[str]] = None):
        self.operation = operation
        self.known = list(known or [])
        message = f"Unknown operation: {operation}"
        if self.known:
            message += f". Registered: {self.known}"
        super().__init__(message)


class DuplicateRank(ConfigurationError):
    """Raised when a rank is already occupied for an operation."""

    def __init__(self, operation: str, rank: int, existing: str = ""):
        self.operation = operation
        self.rank = rank
        self.existing = existing
        message = f"Rank {rank} already registered for operation '{operation}'"
        if existing:
            message += f" ({existing})"
        super().__init__(message)


class RegistryFrozenError(ConfigurationError):
    """Raised when the registry is modified after it was frozen."""
    pass


class DefinitionError(ConfigurationError):
    """Raised when an operation definitions file is invalid."""
    pass


class EnvironmentMismatch(FallchainError):
    """
    Current platform does not satisfy the declared requirement.

    This is fatal and short-circuits before any implementation runs. It is
    never retried or diagnosed through the fallback chain.
    """

    def __init__(self, current: str, required: str):
        self.current = current
        self.required = required
        super().__init__(
            f"Environment mismatch: running on '{current}', requires '{required}'"
        )


class ImplementationFailure(FallchainError):
    """
    Failure of a single implementation attempt.

    Implementations raise this (or a subclass) to attach an explicit
    category to a failure. The executor never lets it escape; it becomes a
    Diagnostic and the chain continues with the next rank.
    """

    category: ErrorCategory = ErrorCategory.IMPLEMENTATION

    def __init__(self, message: str = "", category: Optional[ErrorCategory] = None):
        if category is not None:
            self.category = category
        super().__init__(message)


class TransientError(ImplementationFailure):
    """
    Transient error - the mechanism may work if tried again later.

    Examples:
    - Rate limit exceeded
    - Network timeout
    - Service temporarily unavailable
    """

    category = ErrorCategory.TRANSIENT


class PermanentError(ImplementationFailure):
    """
    Permanent error - the mechanism will not work on this host.

    Examples:
    - Invalid input/parameters
    - Required API not available on this platform
    - Resource not found (404)
    """

    category = ErrorCategory.PERMANENT


class NotApplicableError(ImplementationFailure):
    """The mechanism does not apply in the current situation."""

    category = ErrorCategory.NOT_APPLICABLE


class TimeoutFailure(ImplementationFailure):
    """Implementation did not complete within its timeout."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, timeout: float, message: str = ""):
        self.timeout = timeout
        super().__init__(message or f"Timed out after {timeout:g}s")


class AttemptAbandoned(ImplementationFailure):
    """Execution was cancelled while this implementation was still running."""

    category = ErrorCategory.CANCELLED
