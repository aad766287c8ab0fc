"""
fallchain.schemas - Data model for the fallback engine.

OperationDef -> Implementation -> ExecutionAttempt -> Diagnostic -> ExecutionResult

Lifecycle:
1. OperationDef / Implementation: registered once at startup, immutable after
2. ExecutionAttempt: created per implementation tried during execute()
3. Diagnostic: created from each failed attempt's exception, with its cause chain
4. ExecutionResult: Succeeded, Exhausted or Cancelled; owns its attempts

Attempts and diagnostics are frozen and never shared between results.
"""

from .diagnostic import (
    Diagnostic,
    ErrorCategory,
)
from .operation import (
    Implementation,
    ImplementationFn,
    OperationDef,
)
from .attempt import (
    AttemptStatus,
    ExecutionAttempt,
)
from .result import (
    ExecutionResult,
    Succeeded,
    Exhausted,
    Cancelled,
)

__all__ = [
    # Diagnostic
    "Diagnostic",
    "ErrorCategory",
    # Operation
    "Implementation",
    "ImplementationFn",
    "OperationDef",
    # Attempt
    "AttemptStatus",
    "ExecutionAttempt",
    # Result
    "ExecutionResult",
    "Succeeded",
    "Exhausted",
    "Cancelled",
]
