"""
Capability Registry - ranked implementation chains looked up by operation name.

The registry maps operation names to their implementations. Each
implementation carries a rank: 0 is the preferred mechanism, higher ranks
are fallbacks tried in ascending order.

The registry is append-only during a configuration phase and frozen once
execution begins. Registration takes a lock; resolve() on a frozen registry
reads immutable tuples and needs none.
"""

import logging
import threading
from typing import Callable, Optional

from fallchain.errors import DuplicateRank, RegistryFrozenError, UnknownOperation
from fallchain.schemas import Implementation, ImplementationFn, OperationDef

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """
    Registry of operations and their ranked implementations.

    Usage:
        registry = CapabilityRegistry()
        registry.declare("resolve-url", description="Resolve artifact URL")
        registry.register("resolve-url", resolve_via_api, rank=0,
                          description="Query the release API")
        registry.register("resolve-url", resolve_static, rank=1,
                          description="Use the pinned static URL")

        # Or with the decorator form
        @registry.implementation("resolve-url", rank=2)
        def resolve_from_cache(args):
            ...

        registry.freeze()
        chain = registry.resolve("resolve-url")
    """

    def __init__(self) -> None:
        """Initialize an empty, unfrozen registry."""
        self._operations: dict[str, OperationDef] = {}
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the registry read-only. Idempotent."""
        with self._lock:
            if not self._frozen:
                self._frozen = True
                logger.debug(
                    "Registry frozen with %d operation(s)", len(self._operations)
                )

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                "Registry is frozen; operations must be registered before execution begins"
            )

    def declare(
        self,
        operation: str,
        description: str = "",
        required_platform: Optional[str] = None,
    ) -> None:
        """
        Declare operation metadata without adding an implementation.

        Existing implementations are kept. An operation that is declared
        but has no implementation still fails resolve() with UnknownOperation.

        Args:
            operation: Operation name
            description: What the operation achieves
            required_platform: Platform family the operation may run on
        """
        if not operation:
            raise ValueError("operation name must be a non-empty string")
        with self._lock:
            self._check_mutable()
            existing = self._operations.get(operation)
            implementations = existing.implementations if existing else ()
            self._operations[operation] = OperationDef(
                name=operation,
                description=description,
                required_platform=required_platform,
                implementations=implementations,
            )

    def register(
        self,
        operation: str,
        fn: ImplementationFn,
        rank: int,
        description: str = "",
        timeout: Optional[float] = None,
    ) -> Implementation:
        """
        Add an implementation to an operation's chain.

        Args:
            operation: Operation name
            fn: Callable taking the args dict
            rank: Preference order (0 = preferred)
            description: Human-readable description of the mechanism
            timeout: Per-implementation timeout override in seconds

        Returns:
            The registered Implementation

        Raises:
            DuplicateRank: If rank is already occupied for this operation
            RegistryFrozenError: If the registry has been frozen
        """
        if not operation:
            raise ValueError("operation name must be a non-empty string")
        impl = Implementation(
            operation=operation,
            fn=fn,
            rank=rank,
            description=description,
            timeout=timeout,
        )
        with self._lock:
            self._check_mutable()
            existing = self._operations.get(operation) or OperationDef(name=operation)
            for other in existing.implementations:
                if other.rank == rank:
                    raise DuplicateRank(operation, rank, existing=other.label)

            implementations = tuple(
                sorted(existing.implementations + (impl,), key=lambda i: i.rank)
            )
            self._operations[operation] = OperationDef(
                name=existing.name,
                description=existing.description,
                required_platform=existing.required_platform,
                implementations=implementations,
            )

        logger.debug("Registered %s rank %d: %s", operation, rank, impl.label)
        return impl

    def implementation(
        self,
        operation: str,
        rank: int,
        description: str = "",
        timeout: Optional[float] = None,
    ) -> Callable[[ImplementationFn], ImplementationFn]:
        """Decorator form of register(); returns the function unchanged."""
        def decorator(fn: ImplementationFn) -> ImplementationFn:
            self.register(operation, fn, rank, description=description, timeout=timeout)
            return fn
        return decorator

    def get(self, operation: str) -> OperationDef:
        """
        Get the full definition of an operation.

        Raises:
            UnknownOperation: If no implementation was registered
        """
        op_def = self._operations.get(operation)
        if op_def is None or not op_def.implementations:
            raise UnknownOperation(operation, known=self.list_operations())
        return op_def

    def resolve(self, operation: str) -> tuple[Implementation, ...]:
        """
        Resolve the implementation chain for an operation.

        Args:
            operation: Operation name

        Returns:
            Implementations sorted ascending by rank (never empty)

        Raises:
            UnknownOperation: If no implementation was ever registered
        """
        return self.get(operation).implementations

    def has(self, operation: str) -> bool:
        """Check whether at least one implementation is registered."""
        op_def = self._operations.get(operation)
        return op_def is not None and bool(op_def.implementations)

    def list_operations(self) -> list[str]:
        """List names of operations with at least one implementation."""
        return sorted(name for name, op in self._operations.items() if op.implementations)

    def __len__(self) -> int:
        return len(self.list_operations())

    def __contains__(self, operation: object) -> bool:
        return isinstance(operation, str) and self.has(operation)
