"""
Executor - runs an operation's fallback chain.

The FallbackExecutor implements:
- Platform gating (executor-wide and per-operation requirements)
- Chain resolution via the CapabilityRegistry
- Sequential, short-circuiting execution in rank order
- Per-implementation timeouts
- Cancellation via a threading.Event
- Attempt tracking and diagnostics collection

Execution flow:
1. Check the platform gate (EnvironmentMismatch propagates)
2. Resolve the implementation chain (UnknownOperation propagates)
3. For each implementation, in ascending rank:
   a. Stop with Cancelled if cancellation has been observed
   b. Invoke with args, under its effective timeout
   c. On success: return Succeeded immediately; higher ranks never run
   d. On failure: build a Diagnostic, record the attempt, then stop with
      Cancelled if cancellation was requested meanwhile, else continue
4. Return Exhausted with one diagnostic per rank

Implementations run on the calling thread when neither a timeout nor a
cancel event applies. Otherwise each runs on a daemon worker thread that
the executor waits on. Threads cannot be killed, so an implementation that
times out (or is cancelled mid-call) is abandoned and left to finish on its
own while the next rank starts with the same args dict. Long-running
implementations should poll abandoned() and stop, and must not leave partial
resources behind.

Called from inside a running event loop, every implementation runs on a
worker thread so coroutine implementations get a loop of their own.
"""

import asyncio
import inspect
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fallchain import diagnostics
from fallchain.errors import AttemptAbandoned, TimeoutFailure
from fallchain.platform_gate import check_environment
from fallchain.registry import CapabilityRegistry
from fallchain.schemas import (
    AttemptStatus,
    Cancelled,
    Diagnostic,
    ErrorCategory,
    ExecutionAttempt,
    ExecutionResult,
    Exhausted,
    Implementation,
    Succeeded,
)

logger = logging.getLogger(__name__)

# How often a waiting executor re-checks the cancel event, in seconds
CANCEL_POLL_INTERVAL = 0.05


_local = threading.local()


def abandoned() -> bool:
    """
    Check whether the calling implementation's attempt was abandoned.

    True once the executor has given up on the attempt running on this
    thread (timeout or cancellation). Always False for implementations
    running inline on the caller's thread.
    """
    event = getattr(_local, "abandoned", None)
    return event is not None and event.is_set()


def _in_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _call(impl: Implementation, args: dict[str, Any]) -> Any:
    """Invoke an implementation, driving it to completion if it is async."""
    result = impl.fn(args)
    if inspect.isawaitable(result):
        async def _await() -> Any:
            return await result
        result = asyncio.run(_await())
    return result


class _WorkerCall:
    """Runs one implementation on a daemon thread and holds its outcome."""

    def __init__(self, impl: Implementation, args: dict[str, Any]):
        self._impl = impl
        self._args = args
        self.done = threading.Event()
        self.abandoned = threading.Event()
        self.value: Any = None
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run,
            name=f"fallchain-{impl.operation}-r{impl.rank}",
            daemon=True,
        )

    def _run(self) -> None:
        _local.abandoned = self.abandoned
        try:
            self.value = _call(self._impl, self._args)
        except BaseException as e:  # re-raised on the caller's thread
            self.error = e
        finally:
            self.done.set()

    def start(self) -> None:
        self._thread.start()


class FallbackExecutor:
    """
    Execution engine for ranked fallback chains.

    Usage:
        registry = CapabilityRegistry()
        registry.register("resolve-url", resolve_via_api, rank=0)
        registry.register("resolve-url", resolve_static, rank=1)

        executor = FallbackExecutor(registry, required_platform="linux")
        result = executor.execute("resolve-url", {"version": "26.0"}, timeout=10)

        if result.ok:
            print(result.value)
        else:
            print(render(result))

    The registry is frozen on the first execute() call.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        required_platform: Optional[str] = None,
        default_timeout: Optional[float] = None,
        current_platform: Optional[str] = None,
    ):
        """
        Initialize the executor.

        Args:
            registry: CapabilityRegistry holding the operation chains
            required_platform: Platform every operation requires (None = any)
            default_timeout: Timeout in seconds when neither the implementation
                             nor the call supplies one (None = no timeout)
            current_platform: Override the detected platform (mainly for tests)
        """
        if default_timeout is not None and default_timeout <= 0:
            raise ValueError(f"default_timeout must be positive, got {default_timeout!r}")
        self._registry = registry
        self._required_platform = required_platform
        self._default_timeout = default_timeout
        self._current_platform = current_platform

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    def execute(
        self,
        operation: str,
        args: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """
        Execute an operation through its fallback chain.

        Args:
            operation: Operation name
            args: Arguments passed unmodified to every implementation. The same
                  dict is shared with an abandoned attempt that may still be
                  running; implementations should not mutate it.
            timeout: Per-implementation timeout in seconds for this call
            cancel_event: Set externally to cancel; no new rank starts after

        Returns:
            Succeeded, Exhausted or Cancelled

        Raises:
            EnvironmentMismatch: If the platform gate fails
            UnknownOperation: If nothing is registered for the operation
        """
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout!r}")
        if args is None:
            args = {}

        check_environment(self._required_platform, current=self._current_platform)

        self._registry.freeze()
        op_def = self._registry.get(operation)
        check_environment(op_def.required_platform, current=self._current_platform)

        chain = op_def.implementations
        attempts: list[ExecutionAttempt] = []
        failures: list[Diagnostic] = []

        for impl in chain:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    "Cancelled %s before rank %d",
                    operation, impl.rank,
                    extra={"event": "execution_cancelled", "metadata": {"operation": operation, "rank": impl.rank}},
                )
                return Cancelled(operation, diagnostics=tuple(failures), attempts=tuple(attempts))

            attempt, value = self._attempt(impl, args, self._effective_timeout(impl, timeout), cancel_event)
            attempts.append(attempt)

            if attempt.succeeded:
                if failures:
                    logger.info(
                        "%s satisfied by fallback rank %d (%s) after %d failure(s)",
                        operation, impl.rank, impl.label, len(failures),
                        extra={"event": "fallback_succeeded", "metadata": attempt.to_dict()},
                    )
                else:
                    logger.debug("%s satisfied by preferred rank %d", operation, impl.rank)
                return Succeeded(
                    operation,
                    rank=impl.rank,
                    value=value,
                    attempts=tuple(attempts),
                )

            failures.append(attempt.diagnostic)
            if attempt.status == AttemptStatus.ABANDONED or (
                cancel_event is not None and cancel_event.is_set()
            ):
                logger.info(
                    "Cancelled %s after rank %d",
                    operation, impl.rank,
                    extra={"event": "execution_cancelled", "metadata": {"operation": operation, "rank": impl.rank}},
                )
                return Cancelled(operation, diagnostics=tuple(failures), attempts=tuple(attempts))

        logger.error(
            "%s exhausted: all %d implementation(s) failed",
            operation, len(chain),
            extra={
                "event": "chain_exhausted",
                "metadata": {"operation": operation, "diagnostics": [d.to_dict() for d in failures]},
            },
        )
        return Exhausted(operation, diagnostics=tuple(failures), attempts=tuple(attempts))

    def _effective_timeout(self, impl: Implementation, timeout: Optional[float]) -> Optional[float]:
        if impl.timeout is not None:
            return impl.timeout
        if timeout is not None:
            return timeout
        return self._default_timeout

    def _attempt(
        self,
        impl: Implementation,
        args: dict[str, Any],
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> tuple[ExecutionAttempt, Any]:
        """Run one implementation and record the attempt, with its value on success."""
        started_at = _utcnow()
        start = time.monotonic()
        status = AttemptStatus.FAILED
        try:
            value = self._invoke(impl, args, timeout, cancel_event)
        except TimeoutFailure as e:
            status = AttemptStatus.TIMED_OUT
            error: BaseException = e
        except AttemptAbandoned as e:
            status = AttemptStatus.ABANDONED
            error = e
        except (Exception, asyncio.CancelledError) as e:
            # CancelledError here was raised inside the implementation's own loop
            error = e
        else:
            attempt = ExecutionAttempt(
                operation=impl.operation,
                rank=impl.rank,
                implementation=impl.label,
                status=AttemptStatus.SUCCEEDED,
                started_at=started_at,
                completed_at=_utcnow(),
                duration_ms=_elapsed_ms(start),
            )
            return attempt, value

        diagnostic = diagnostics.from_error(
            error,
            operation=impl.operation,
            implementation_rank=impl.rank,
            implementation=impl.label,
        )
        logger.warning(
            "%s rank %d (%s) failed [%s]: %s",
            impl.operation, impl.rank, impl.label,
            diagnostic.category.value, diagnostic.message,
            extra={"event": "attempt_failed", "metadata": diagnostic.to_dict()},
        )
        if status == AttemptStatus.FAILED and diagnostic.category == ErrorCategory.TIMEOUT:
            status = AttemptStatus.TIMED_OUT
        attempt = ExecutionAttempt(
            operation=impl.operation,
            rank=impl.rank,
            implementation=impl.label,
            status=status,
            started_at=started_at,
            completed_at=_utcnow(),
            diagnostic=diagnostic,
            duration_ms=_elapsed_ms(start),
        )
        return attempt, None

    def _invoke(
        self,
        impl: Implementation,
        args: dict[str, Any],
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> Any:
        """
        Invoke an implementation, enforcing timeout and cancellation.

        Raises:
            TimeoutFailure: If the implementation exceeded its timeout
            AttemptAbandoned: If cancellation was observed while it ran
            Exception: Whatever the implementation raised
        """
        if timeout is None and cancel_event is None and not _in_event_loop():
            return _call(impl, args)

        call = _WorkerCall(impl, args)
        call.start()

        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            wait_for = CANCEL_POLL_INTERVAL if cancel_event is not None else timeout
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    call.abandoned.set()
                    raise TimeoutFailure(timeout)
                wait_for = min(wait_for, remaining)

            if call.done.wait(wait_for):
                break
            if cancel_event is not None and cancel_event.is_set():
                call.abandoned.set()
                raise AttemptAbandoned(
                    f"Cancelled while rank {impl.rank} was running"
                )

        if call.error is not None:
            raise call.error
        return call.value


def execute(
    registry: CapabilityRegistry,
    operation: str,
    args: Optional[dict[str, Any]] = None,
    timeout: Optional[float] = None,
    required_platform: Optional[str] = None,
) -> ExecutionResult:
    """
    Execute an operation with a one-off FallbackExecutor.

    Args:
        registry: Registry holding the operation
        operation: Operation name
        args: Arguments passed to every implementation
        timeout: Per-implementation timeout in seconds
        required_platform: Platform the call requires (None = any)

    Returns:
        Succeeded, Exhausted or Cancelled
    """
    executor = FallbackExecutor(registry, required_platform=required_platform)
    return executor.execute(operation, args, timeout=timeout)
