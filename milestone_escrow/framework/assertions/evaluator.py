"""
Assertion Evaluator

Checks trace assertions against the marketplace after the last action.
Each result names the escrow, milestone, lock, holder or event the
assertion was about, so a failing trace points at the object to inspect.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from ...chain import ContractError
from ..traces.schema import TraceAssertion
from .registry import ASSERTION_HANDLERS

logger = logging.getLogger(__name__)


@dataclass
class AssertionResult:
    """Outcome of one assertion."""
    assertion_type: str
    description: str
    passed: bool
    message: str
    subject: str = ""           # e.g. "escrow:0 milestone 1", "lock 0", "bob usd"

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        where = f" [{self.subject}]" if self.subject else ""
        return f"[{status}] {self.description}{where}: {self.message}"


def describe_subject(assertion: TraceAssertion) -> str:
    """Short name of the marketplace object an assertion inspects."""
    params = assertion.params
    kind = assertion.type

    if kind in ("milestone_state", "milestone_count", "escrow_destroyed"):
        escrow = params.get("escrow", "escrow:0")
        if isinstance(escrow, int):
            escrow = f"escrow:{escrow}"
        if kind == "milestone_state":
            return f"{escrow} milestone {params.get('index', 0)}"
        return str(escrow)
    if kind == "lock_state":
        return f"lock {params.get('lock_id', 0)}"
    if kind == "token_balance":
        return f"{params.get('holder')} {params.get('token')}"
    if kind == "native_balance":
        return str(params.get("holder"))
    if kind == "event_emitted":
        return f"event {params.get('name')}"
    if kind == "escrow_count":
        return "registry"
    return ""


def evaluate_assertion(assertion: TraceAssertion, state: Dict[str, Any]) -> AssertionResult:
    """
    Evaluate a single assertion.

    A handler that raises does not abort the trace: a ContractError (for
    instance reading a destroyed escrow) and any other error both become a
    failed result carrying the error text.
    """
    subject = describe_subject(assertion)
    result = AssertionResult(
        assertion_type=assertion.type,
        description=assertion.description,
        passed=False,
        message="",
        subject=subject,
    )

    handler = ASSERTION_HANDLERS.get(assertion.type)
    if handler is None:
        result.message = f"Unknown assertion type: {assertion.type}"
        return result

    try:
        result.passed, result.message = handler(assertion.params, state)
    except ContractError as e:
        result.message = f"{type(e).__name__} while reading {subject or assertion.type}: {e}"
    except Exception as e:
        logger.warning("Assertion '%s' raised %s: %s", assertion.description, type(e).__name__, e)
        result.message = f"Error evaluating assertion: {e}"
    return result


def evaluate_all_assertions(assertions: List[TraceAssertion], state: Dict[str, Any]) -> List[AssertionResult]:
    return [evaluate_assertion(a, state) for a in assertions]


def failed_subjects(results: List[AssertionResult]) -> List[str]:
    """Subjects of failed assertions, in order, without repeats."""
    subjects: List[str] = []
    for r in results:
        if not r.passed and r.subject and r.subject not in subjects:
            subjects.append(r.subject)
    return subjects


def format_assertion_results(results: List[AssertionResult]) -> str:
    """Format assertion results for display."""
    passed = sum(1 for r in results if r.passed)
    lines = ["Assertion Results:", "-" * 50]
    lines.extend(str(r) for r in results)
    lines.append("-" * 50)
    lines.append(f"Total: {passed} passed, {len(results) - passed} failed")

    subjects = failed_subjects(results)
    if subjects:
        lines.append(f"Check: {', '.join(subjects)}")
    return "\n".join(lines)
