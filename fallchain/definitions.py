"""
Definitions loader - populate a CapabilityRegistry from a YAML or JSON file.

File format:

    operations:
      resolve-url:
        description: Resolve the sandbox artifact URL
        required_platform: linux            # optional
        implementations:
          - rank: 0                         # optional, defaults to position
            call: mypkg.urls:resolve_via_api
            description: Query the release API
            timeout: 5                      # optional, seconds
          - call: mypkg.urls.resolve_static

`call` is an import path: "module:attr" (attr may be dotted) or
"module.attr". Callables are imported when the file is loaded, so a typo
fails at startup rather than at execution time.
"""

import importlib
import json
from pathlib import Path
from typing import Any, Optional

import yaml

from fallchain.errors import ConfigurationError, DefinitionError
from fallchain.registry import CapabilityRegistry
from fallchain.schemas import ImplementationFn

_IMPLEMENTATION_KEYS = {"rank", "call", "description", "timeout"}
_OPERATION_KEYS = {"description", "required_platform", "implementations"}


def import_callable(path: str) -> ImplementationFn:
    """
    Import a callable from "module:attr" or "module.attr".

    Raises:
        DefinitionError: If the module or attribute cannot be imported
                         or the target is not callable
    """
    if ":" in path:
        module_name, attr_path = path.split(":", 1)
    elif "." in path:
        module_name, attr_path = path.rsplit(".", 1)
    else:
        raise DefinitionError(f"Invalid import path (expected module:attr): {path}")

    if not module_name or not attr_path:
        raise DefinitionError(f"Invalid import path (expected module:attr): {path}")

    try:
        target: Any = importlib.import_module(module_name)
    except Exception as e:
        # Syntax errors and failures raised at import time included
        raise DefinitionError(f"Cannot import module '{module_name}' for {path}: {e}") from e

    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise DefinitionError(f"'{module_name}' has no attribute '{attr_path}'") from e

    if not callable(target):
        raise DefinitionError(f"{path} is not callable")
    return target


def _load_file(path: Path) -> Any:
    """Load a definitions file (YAML or JSON)."""
    suffix = path.suffix.lower()
    with open(path) as f:
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(f)
        elif suffix == ".json":
            return json.load(f)
        else:
            raise ValueError(f"Unsupported file format: {suffix}")


def _register_operation(registry: CapabilityRegistry, name: str, entry: Any) -> None:
    if not isinstance(entry, dict):
        raise DefinitionError(f"Operation '{name}' must be a mapping")
    unknown = sorted(set(entry) - _OPERATION_KEYS)
    if unknown:
        raise DefinitionError(f"Operation '{name}': unknown keys {unknown}")

    implementations = entry.get("implementations")
    if not isinstance(implementations, list) or not implementations:
        raise DefinitionError(f"Operation '{name}' needs a non-empty 'implementations' list")

    registry.declare(
        name,
        description=entry.get("description", "") or "",
        required_platform=entry.get("required_platform"),
    )

    for position, impl in enumerate(implementations):
        where = f"Operation '{name}' implementation #{position}"
        if not isinstance(impl, dict):
            raise DefinitionError(f"{where} must be a mapping")
        unknown = sorted(set(impl) - _IMPLEMENTATION_KEYS)
        if unknown:
            raise DefinitionError(f"{where}: unknown keys {unknown}")
        if not impl.get("call"):
            raise DefinitionError(f"{where}: missing 'call'")

        fn = import_callable(str(impl["call"]))
        try:
            registry.register(
                name,
                fn,
                rank=impl.get("rank", position),
                description=impl.get("description", "") or str(impl["call"]),
                timeout=impl.get("timeout"),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise DefinitionError(f"{where}: {e}") from e


def load_definitions(
    path: Path | str,
    registry: Optional[CapabilityRegistry] = None,
) -> CapabilityRegistry:
    """
    Load operation definitions into a registry.

    Args:
        path: YAML or JSON definitions file
        registry: Registry to populate (a new one when None)

    Returns:
        The populated registry (not frozen)

    Raises:
        DefinitionError: If the file is missing, unreadable or malformed
        DuplicateRank: If two implementations share a rank
    """
    path = Path(path)
    if registry is None:
        registry = CapabilityRegistry()

    if not path.exists():
        raise DefinitionError(f"Definitions file not found: {path}")

    try:
        data = _load_file(path)
    except Exception as e:
        raise DefinitionError(f"Failed to load {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("operations"), dict):
        raise DefinitionError(f"{path}: expected a top-level 'operations' mapping")

    for name, entry in data["operations"].items():
        _register_operation(registry, str(name), entry)

    return registry
