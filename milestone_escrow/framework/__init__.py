"""
Scenario replay for the escrow marketplace.

Traces are YAML files describing identities, tokens, marketplace policy, a
time-ordered list of calls and the assertions that must hold afterwards.
"""

from .traces import (
    Trace,
    TraceAction,
    TraceAssertion,
    TraceSetup,
    ValidationError,
    parse_trace,
    load_trace,
)
from .assertions import (
    AssertionResult,
    evaluate_assertion,
    evaluate_all_assertions,
    failed_subjects,
    format_assertion_results,
    register_assertion_handler,
)
from .runner import (
    ActionResult,
    TraceRunner,
    TraceRunResult,
    run_trace,
)

__all__ = [
    # Traces
    "Trace",
    "TraceAction",
    "TraceAssertion",
    "TraceSetup",
    "ValidationError",
    "parse_trace",
    "load_trace",
    # Assertions
    "AssertionResult",
    "evaluate_assertion",
    "evaluate_all_assertions",
    "failed_subjects",
    "format_assertion_results",
    "register_assertion_handler",
    # Runner
    "ActionResult",
    "TraceRunner",
    "TraceRunResult",
    "run_trace",
]
