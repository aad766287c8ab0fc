"""
Operation schemas - named units of work and their ranked implementations.

An OperationDef groups the Implementations registered under one stable
string key. Rank 0 is the preferred mechanism; ranks 1..N are fallbacks,
tried in ascending order.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

# Implementations take the caller's args dict and return any value.
ImplementationFn = Callable[[dict], Any]


@dataclass(frozen=True)
class Implementation:
    """
    One concrete mechanism for performing an operation.

    Attributes:
        operation: Name of the operation this implementation belongs to
        fn: Callable invoked with the args dict; may be a coroutine function
        rank: Preference order (0 = preferred)
        description: Human-readable description of the mechanism
        timeout: Per-implementation timeout override in seconds
    """
    operation: str
    fn: ImplementationFn
    rank: int
    description: str = ""
    timeout: Optional[float] = None

    def __post_init__(self):
        if not callable(self.fn):
            raise TypeError(f"Implementation for '{self.operation}' is not callable: {self.fn!r}")
        if isinstance(self.rank, bool) or not isinstance(self.rank, int) or self.rank < 0:
            raise ValueError(f"rank must be a non-negative integer, got {self.rank!r}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout!r}")

    @property
    def label(self) -> str:
        """Description, or the callable's qualified name when none was given."""
        if self.description:
            return self.description
        return getattr(self.fn, "__qualname__", None) or repr(self.fn)

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.fn)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "operation": self.operation,
            "rank": self.rank,
            "description": self.label,
        }
        if self.timeout is not None:
            result["timeout"] = self.timeout
        return result


@dataclass(frozen=True)
class OperationDef:
    """
    A named operation and its implementation chain.

    Attributes:
        name: Stable operation key (e.g. "resolve-artifact-url")
        description: What the operation achieves, independent of mechanism
        required_platform: Platform family the operation may run on (None = any)
        implementations: Implementations sorted ascending by rank
    """
    name: str
    description: str = ""
    required_platform: Optional[str] = None
    implementations: tuple[Implementation, ...] = field(default_factory=tuple)

    @property
    def ranks(self) -> tuple[int, ...]:
        return tuple(impl.rank for impl in self.implementations)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "implementations": [impl.to_dict() for impl in self.implementations],
        }
        if self.description:
            result["description"] = self.description
        if self.required_platform:
            result["required_platform"] = self.required_platform
        return result
