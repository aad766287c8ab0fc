"""
ExecutionResult - terminal outcome of executing an operation.

Three outcomes exist:

- Succeeded(rank, value): an implementation completed; later ranks never ran
- Exhausted(diagnostics): every implementation failed, in rank order
- Cancelled(diagnostics): an external signal stopped the chain early

Exhausted and Cancelled are normal terminal states, not programming errors.
Callers branch on `result.ok` (or isinstance) instead of catching exceptions.
"""

from dataclasses import dataclass, field
from typing import Any

from fallchain.schemas.attempt import ExecutionAttempt
from fallchain.schemas.diagnostic import Diagnostic


@dataclass(frozen=True)
class ExecutionResult:
    """Common base for all execution outcomes."""
    operation: str

    status = "unknown"

    @property
    def ok(self) -> bool:
        return False

    @property
    def attempt_list(self) -> tuple[ExecutionAttempt, ...]:
        return getattr(self, "attempts", ())

    @property
    def duration_ms(self) -> int:
        """Total time spent across all attempts, in milliseconds."""
        return sum(a.duration_ms for a in self.attempt_list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "operation": self.operation,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "attempts": [a.to_dict() for a in self.attempt_list],
        }


@dataclass(frozen=True)
class Succeeded(ExecutionResult):
    """
    An implementation completed successfully.

    Attributes:
        rank: Rank of the implementation that succeeded
        value: Whatever that implementation returned
        attempts: Every attempt made, failures first, success last
    """
    rank: int = 0
    value: Any = None
    attempts: tuple[ExecutionAttempt, ...] = field(default_factory=tuple)

    status = "succeeded"

    @property
    def ok(self) -> bool:
        return True

    @property
    def implementation(self) -> str:
        """Description of the implementation that succeeded."""
        if self.attempts:
            return self.attempts[-1].implementation
        return ""

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        """Diagnostics of the lower ranks that failed before success."""
        return tuple(a.diagnostic for a in self.attempts if a.diagnostic is not None)

    @property
    def used_fallback(self) -> bool:
        return len(self.diagnostics) > 0

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["rank"] = self.rank
        result["implementation"] = self.implementation
        result["value"] = self.value
        result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return result


@dataclass(frozen=True)
class Exhausted(ExecutionResult):
    """
    No implementation in the chain succeeded.

    Attributes:
        diagnostics: One diagnostic per implementation, in rank order
        attempts: Every attempt made, in rank order
    """
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)
    attempts: tuple[ExecutionAttempt, ...] = field(default_factory=tuple)

    status = "exhausted"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return result


@dataclass(frozen=True)
class Cancelled(ExecutionResult):
    """
    Execution was cancelled before the chain was exhausted.

    Attributes:
        diagnostics: Diagnostics of the ranks that failed before cancellation
        attempts: Attempts made before cancellation was observed
    """
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)
    attempts: tuple[ExecutionAttempt, ...] = field(default_factory=tuple)

    status = "cancelled"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return result
