"""
fallchain - Ranked fallback execution engine

Runs a named operation through a ranked chain of implementations: the
preferred mechanism first, then each fallback in order until one succeeds.
Every failure is captured as a structured Diagnostic and the outcome is
rendered for the console or for log capture.
"""

__version__ = "0.1.0"
__author__ = "fallchain maintainers"


__all__ = [
    "CapabilityRegistry",
    "FallbackExecutor",
    "abandoned",
    "check_environment",
    "execute",
    "load_definitions",
    "render",
    "Succeeded",
    "Exhausted",
    "Cancelled",
]

from .registry import CapabilityRegistry
from .executor import FallbackExecutor, abandoned, execute
from .platform_gate import check_environment
from .definitions import load_definitions
from .reporter import render
from .schemas import Succeeded, Exhausted, Cancelled
