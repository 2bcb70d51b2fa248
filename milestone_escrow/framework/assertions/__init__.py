"""
Assertion evaluation module.

Provides functions to evaluate trace assertions against marketplace state.
"""

from .evaluator import (
    AssertionResult,
    describe_subject,
    evaluate_assertion,
    evaluate_all_assertions,
    failed_subjects,
    format_assertion_results,
)
from .registry import (
    ASSERTION_HANDLERS,
    register_assertion_handler,
)

__all__ = [
    "AssertionResult",
    "describe_subject",
    "evaluate_assertion",
    "evaluate_all_assertions",
    "failed_subjects",
    "format_assertion_results",
    "ASSERTION_HANDLERS",
    "register_assertion_handler",
]
