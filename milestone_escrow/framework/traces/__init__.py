"""
Trace format for replaying marketplace scenarios.
"""

from .schema import (
    Trace,
    TraceAction,
    TraceAssertion,
    TraceSetup,
    TraceIdentitySpec,
    TraceTokenSpec,
    ValidationError,
)
from .parser import parse_trace, load_trace

__all__ = [
    "Trace",
    "TraceAction",
    "TraceAssertion",
    "TraceSetup",
    "TraceIdentitySpec",
    "TraceTokenSpec",
    "ValidationError",
    "parse_trace",
    "load_trace",
]
