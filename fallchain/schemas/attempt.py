"""
Attempt schemas - tracking individual implementation attempts.

ExecutionAttempt records which implementation was tried for an operation,
how it ended, how long it took, and the Diagnostic when it failed.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from fallchain.schemas.diagnostic import Diagnostic


class AttemptStatus(str, Enum):
    """Outcome of one implementation attempt."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class ExecutionAttempt:
    """
    A single attempt of one implementation within an execute() call.

    Attributes:
        operation: Operation being executed
        rank: Rank of the implementation tried
        implementation: Description of the implementation's mechanism
        status: How the attempt ended
        started_at: When the implementation was invoked
        completed_at: When the attempt ended (returned, raised or timed out)
        diagnostic: Failure details; required unless status is succeeded
        duration_ms: Elapsed time measured on a monotonic clock. Derived
                     from the timestamps (clamped at 0) when not given.
    """
    operation: str
    rank: int
    implementation: str
    status: AttemptStatus
    started_at: datetime
    completed_at: datetime
    diagnostic: Optional[Diagnostic] = None
    duration_ms: Optional[int] = None

    def __post_init__(self):
        # Wall-clock timestamps are for display; they may step backwards
        if self.duration_ms is None:
            delta = self.completed_at - self.started_at
            object.__setattr__(self, "duration_ms", max(0, int(delta.total_seconds() * 1000)))
        elif self.duration_ms < 0:
            raise ValueError(f"duration_ms must not be negative, got {self.duration_ms!r}")
        if self.status == AttemptStatus.SUCCEEDED:
            if self.diagnostic is not None:
                raise ValueError("Succeeded attempts must not carry a diagnostic")
        elif self.diagnostic is None:
            raise ValueError(f"{self.status.value} attempts must carry a diagnostic")

    @property
    def succeeded(self) -> bool:
        return self.status == AttemptStatus.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "operation": self.operation,
            "rank": self.rank,
            "implementation": self.implementation,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
        }
        if self.diagnostic is not None:
            result["diagnostic"] = self.diagnostic.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecutionAttempt":
        """Deserialize from dictionary."""
        return cls(
            operation=data["operation"],
            rank=data["rank"],
            implementation=data["implementation"],
            status=AttemptStatus(data["status"]),
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(data["completed_at"]),
            diagnostic=Diagnostic.from_dict(data["diagnostic"]) if data.get("diagnostic") else None,
            duration_ms=data.get("duration_ms"),
        )
