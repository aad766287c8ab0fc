"""Tests for fallchain schemas.

Tests cover:
- Implementation validation
- ExecutionAttempt status invariants and duration
- Diagnostic chains and serialization
- ExecutionResult variants
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from fallchain.schemas import (
    AttemptStatus,
    Cancelled,
    Diagnostic,
    ErrorCategory,
    ExecutionAttempt,
    Exhausted,
    Implementation,
    OperationDef,
    Succeeded,
)


T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _noop(args):
    return None


def _diag(message="boom", rank=0, cause=None):
    return Diagnostic(
        category=ErrorCategory.UNKNOWN,
        message=message,
        error_type="RuntimeError",
        operation="op",
        implementation_rank=rank,
        cause=cause,
    )


def _failed(rank, message="boom"):
    return ExecutionAttempt(
        operation="op",
        rank=rank,
        implementation=f"impl {rank}",
        status=AttemptStatus.FAILED,
        started_at=T0,
        completed_at=T0 + timedelta(milliseconds=10),
        diagnostic=_diag(message, rank),
    )


class TestImplementation:
    """Tests for Implementation validation."""

    def test_negative_rank_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            Implementation(operation="op", fn=_noop, rank=-1)

    def test_bool_rank_rejected(self):
        with pytest.raises(ValueError):
            Implementation(operation="op", fn=_noop, rank=True)

    def test_not_callable_rejected(self):
        with pytest.raises(TypeError, match="not callable"):
            Implementation(operation="op", fn="nope", rank=0)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError, match="timeout"):
            Implementation(operation="op", fn=_noop, rank=0, timeout=0)

    def test_label_falls_back_to_qualname(self):
        """Label uses the description, else the callable's name."""
        assert Implementation(operation="op", fn=_noop, rank=0).label == "_noop"
        assert Implementation(operation="op", fn=_noop, rank=0, description="d").label == "d"

    def test_is_async(self):
        async def coro(args):
            return 1

        assert Implementation(operation="op", fn=coro, rank=0).is_async
        assert not Implementation(operation="op", fn=_noop, rank=0).is_async

    def test_operation_def_ranks(self):
        op = OperationDef(
            name="op",
            implementations=(
                Implementation(operation="op", fn=_noop, rank=0),
                Implementation(operation="op", fn=_noop, rank=3),
            ),
        )
        assert op.ranks == (0, 3)
        assert op.to_dict()["implementations"][1]["rank"] == 3


class TestExecutionAttempt:
    """Tests for ExecutionAttempt invariants."""

    def test_duration_ms(self):
        attempt = _failed(0)
        assert attempt.duration_ms == 10

    def test_failed_requires_diagnostic(self):
        with pytest.raises(ValueError, match="must carry a diagnostic"):
            ExecutionAttempt(
                operation="op", rank=0, implementation="i",
                status=AttemptStatus.FAILED, started_at=T0, completed_at=T0,
            )

    def test_succeeded_rejects_diagnostic(self):
        with pytest.raises(ValueError, match="must not carry a diagnostic"):
            ExecutionAttempt(
                operation="op", rank=0, implementation="i",
                status=AttemptStatus.SUCCEEDED, started_at=T0, completed_at=T0,
                diagnostic=_diag(),
            )

    def test_clock_stepping_backwards_clamps_duration(self):
        """Wall-clock timestamps out of order never make an attempt invalid."""
        attempt = ExecutionAttempt(
            operation="op", rank=0, implementation="i",
            status=AttemptStatus.SUCCEEDED,
            started_at=T0, completed_at=T0 - timedelta(seconds=1),
        )
        assert attempt.duration_ms == 0

    def test_measured_duration_wins(self):
        attempt = ExecutionAttempt(
            operation="op", rank=0, implementation="i",
            status=AttemptStatus.SUCCEEDED,
            started_at=T0, completed_at=T0 - timedelta(seconds=1),
            duration_ms=42,
        )
        assert attempt.duration_ms == 42
        assert attempt.to_dict()["duration_ms"] == 42

    def test_negative_duration_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            ExecutionAttempt(
                operation="op", rank=0, implementation="i",
                status=AttemptStatus.SUCCEEDED,
                started_at=T0, completed_at=T0, duration_ms=-1,
            )

    def test_dict_round_trip(self):
        attempt = _failed(2, "dns failure")
        restored = ExecutionAttempt.from_dict(attempt.to_dict())
        assert restored == attempt

    def test_frozen(self):
        attempt = _failed(0)
        with pytest.raises(AttributeError):
            attempt.rank = 5


class TestDiagnostic:
    """Tests for Diagnostic chains."""

    def test_chain_and_root_cause(self):
        root = _diag("root")
        middle = _diag("middle", cause=root)
        top = _diag("top", cause=middle)

        assert [d.message for d in top.chain()] == ["top", "middle", "root"]
        assert top.root_cause is root
        assert top.depth == 3

    def test_root_cause_of_single(self):
        diag = _diag()
        assert diag.root_cause is diag
        assert diag.depth == 1

    def test_to_dict_nests_cause(self):
        top = _diag("top", cause=_diag("root"))
        data = top.to_dict()
        assert data["category"] == "unknown"
        assert data["cause"]["message"] == "root"
        assert "cause" not in data["cause"]
        assert Diagnostic.from_dict(data) == top


class TestExecutionResult:
    """Tests for the Succeeded / Exhausted / Cancelled variants."""

    def test_succeeded_after_fallback(self):
        success = ExecutionAttempt(
            operation="op", rank=1, implementation="impl 1",
            status=AttemptStatus.SUCCEEDED,
            started_at=T0, completed_at=T0 + timedelta(milliseconds=5),
        )
        result = Succeeded("op", rank=1, value="v", attempts=(_failed(0), success))

        assert result.ok
        assert result.status == "succeeded"
        assert result.implementation == "impl 1"
        assert result.used_fallback
        assert len(result.diagnostics) == 1
        assert result.duration_ms == 15

    def test_exhausted(self):
        attempts = (_failed(0), _failed(1))
        result = Exhausted("op", diagnostics=tuple(a.diagnostic for a in attempts), attempts=attempts)

        assert not result.ok
        assert result.status == "exhausted"
        assert [d.implementation_rank for d in result.diagnostics] == [0, 1]

    def test_cancelled(self):
        result = Cancelled("op")
        assert not result.ok
        assert result.status == "cancelled"
        assert result.duration_ms == 0

    def test_to_dict_is_json_ready(self):
        result = Exhausted("op", diagnostics=(_diag(),), attempts=(_failed(0),))
        data = json.loads(json.dumps(result.to_dict()))
        assert data["status"] == "exhausted"
        assert data["attempts"][0]["status"] == "failed"
        assert data["diagnostics"][0]["message"] == "boom"
