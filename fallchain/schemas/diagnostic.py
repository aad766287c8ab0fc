"""
Diagnostic schema - structured record of why an implementation attempt failed.

A Diagnostic captures the error category, message, the operation and
implementation that raised it, the innermost stack location, and the causal
chain of underlying errors as nested Diagnostics.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional


class ErrorCategory(str, Enum):
    """Classification of the root cause of a failed attempt."""
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    NOT_APPLICABLE = "not_applicable"
    NETWORK = "network"
    PERMISSION = "permission"
    MISSING_DEPENDENCY = "missing_dependency"
    SUBPROCESS = "subprocess"
    OS = "os"
    INVALID_INPUT = "invalid_input"
    IMPLEMENTATION = "implementation"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Diagnostic:
    """
    Structured failure information for one implementation attempt.

    Attributes:
        category: Classification of the root cause
        message: Human-readable error message
        error_type: Qualified class name of the exception
        operation: Operation being executed (None for nested causes)
        implementation_rank: Rank of the implementation that failed
        implementation: Description of the implementation's mechanism
        location: Innermost stack frame as "file:line in function"
        cause: Diagnostic of the underlying error, if any
    """
    category: ErrorCategory
    message: str
    error_type: str
    operation: Optional[str] = None
    implementation_rank: Optional[int] = None
    implementation: Optional[str] = None
    location: Optional[str] = None
    cause: Optional["Diagnostic"] = None

    def chain(self) -> Iterator["Diagnostic"]:
        """Iterate this diagnostic followed by each nested cause."""
        current: Optional[Diagnostic] = self
        while current is not None:
            yield current
            current = current.cause

    @property
    def root_cause(self) -> "Diagnostic":
        """The innermost diagnostic in the cause chain."""
        last = self
        for last in self.chain():
            pass
        return last

    @property
    def depth(self) -> int:
        """Number of diagnostics in the chain, including this one."""
        return sum(1 for _ in self.chain())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "category": self.category.value,
            "message": self.message,
            "error_type": self.error_type,
        }
        if self.operation is not None:
            result["operation"] = self.operation
        if self.implementation_rank is not None:
            result["implementation_rank"] = self.implementation_rank
        if self.implementation is not None:
            result["implementation"] = self.implementation
        if self.location is not None:
            result["location"] = self.location
        if self.cause is not None:
            result["cause"] = self.cause.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Diagnostic":
        """Deserialize from dictionary."""
        return cls(
            category=ErrorCategory(data["category"]),
            message=data["message"],
            error_type=data["error_type"],
            operation=data.get("operation"),
            implementation_rank=data.get("implementation_rank"),
            implementation=data.get("implementation"),
            location=data.get("location"),
            cause=cls.from_dict(data["cause"]) if data.get("cause") else None,
        )
