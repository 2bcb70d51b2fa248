"""
Trace Runner

Replays a trace against a freshly deployed marketplace.
This is the main integration point that ties together:
- Trace parsing
- Network and marketplace setup
- Action execution with expected failures
- Assertion evaluation

Usage:
    python -m milestone_escrow.framework.runner TRACE.yaml [TRACE.yaml ...] [-v]
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..chain import Network, Contract, ContractError
from ..config import config_from_dict
from ..contracts import FungibleToken, Marketplace, deploy_marketplace
from .traces.schema import Trace, TraceAction, ValidationError
from .traces.parser import load_trace
from .assertions.evaluator import (
    AssertionResult,
    evaluate_all_assertions,
    failed_subjects,
    format_assertion_results,
)

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Outcome of one trace action."""
    index: int
    action: TraceAction
    ok: bool
    result: Any = None
    error: Optional[str] = None         # "ErrorClass: message" when the call failed

    def __str__(self) -> str:
        status = "ok" if self.ok else "UNEXPECTED"
        detail = self.error if self.error else repr(self.result)
        return f"  [{status}] #{self.index} {self.action.actor} -> {self.action.target}.{self.action.method}: {detail}"


@dataclass
class TraceRunResult:
    """Result of running a trace."""
    trace_name: str
    completed: bool
    final_time: int
    assertion_results: List[AssertionResult]
    all_passed: bool
    action_results: List[ActionResult] = field(default_factory=list)
    block_count: int = 0
    error: Optional[str] = None

    @property
    def unexpected_actions(self) -> List[ActionResult]:
        return [r for r in self.action_results if not r.ok]

    def __str__(self) -> str:
        status = "PASSED" if self.all_passed else "FAILED"
        lines = [
            f"Trace '{self.trace_name}': {status}",
            f"  Actions: {len(self.action_results)}, unexpected outcomes: {len(self.unexpected_actions)}",
            f"  Blocks: {self.block_count}, final time: {self.final_time}",
            f"  Assertions: {sum(1 for a in self.assertion_results if a.passed)}/{len(self.assertion_results)} passed",
        ]
        subjects = failed_subjects(self.assertion_results)
        if subjects:
            lines.append(f"  Failing: {', '.join(subjects)}")
        if self.error:
            lines.append(f"  Error: {self.error}")
        return "\n".join(lines)


def _error_matches(error: Exception, expected: str) -> bool:
    """True if the error's class or any of its bases is named ``expected``."""
    return any(cls.__name__ == expected for cls in type(error).__mro__)


class TraceRunner:
    """
    Runs a trace against a new Network.

    Handles:
    - Creating identities, deploying the marketplace and tokens
    - Resolving references in action params ($alice, $escrow:0, $now+60, ...)
    - Executing actions at their scheduled times
    - Evaluating assertions
    """

    def __init__(self, trace: Trace, environ: Optional[Mapping[str, str]] = None):
        self.trace = trace
        setup = trace.setup

        self.network = Network(start_time=setup.start_time)
        for name, spec in setup.identities.items():
            self.network.create_identity(name, balance=spec.balance)

        config = config_from_dict(setup.marketplace, environ)
        self.marketplace: Marketplace = deploy_marketplace(self.network, config)
        self.deployer = self.marketplace.owner

        self.tokens: Dict[str, FungibleToken] = {}
        for name, spec in setup.tokens.items():
            token = self.network.deploy(FungibleToken, self.deployer, name=spec.name, symbol=spec.symbol)
            for holder, amount in spec.mint.items():
                token.connect(self.deployer).mint(self.network.address_of(holder), amount)
            self.tokens[name] = token

        # Escrow addresses in creation order; "escrow:<n>" refers to the n-th
        self.escrows: List[str] = []
        self.action_results: List[ActionResult] = []

    # ─────────────────────────────────────────────────────────────────────────
    # References
    # ─────────────────────────────────────────────────────────────────────────

    def resolve(self, ref: str) -> Any:
        """
        Resolve a reference to an address (or a timestamp for now[+/-N]).

        Accepts identity names, registry, locker, token:<name> and
        escrow:<n>, with or without a leading "$". Unknown names are
        returned unchanged so raw addresses pass through.
        """
        name = ref[1:] if ref.startswith("$") else ref

        if name == "now" or name.startswith("now+") or name.startswith("now-"):
            offset = int(name[3:]) if len(name) > 3 else 0
            return self.network.current_time + offset
        if name == "registry":
            return self.marketplace.registry.address
        if name == "locker":
            return self.marketplace.locker.address
        if name.startswith("token:"):
            token_name = name.split(":", 1)[1]
            if token_name not in self.tokens:
                raise ValidationError(f"Unknown token: {token_name}")
            return self.tokens[token_name].address
        if name.startswith("escrow:"):
            n = int(name.split(":", 1)[1])
            if not 0 <= n < len(self.escrows):
                raise ValidationError(f"Escrow #{n} has not been created ({len(self.escrows)} so far)")
            return self.escrows[n]
        if name in self.network.identities:
            return self.network.identities[name]
        return ref

    def _resolve_param(self, value: Any) -> Any:
        if isinstance(value, str) and value.startswith("$"):
            return self.resolve(value)
        if isinstance(value, list):
            return [self._resolve_param(v) for v in value]
        if isinstance(value, dict):
            return {k: self._resolve_param(v) for k, v in value.items()}
        return value

    def _target(self, target: str) -> Contract:
        if target == "registry":
            return self.marketplace.registry
        if target == "locker":
            return self.marketplace.locker
        return self.network.contract_at(self.resolve(target))

    # ─────────────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────────────

    def run(self) -> TraceRunResult:
        """Run the trace to completion."""
        try:
            for index, action in enumerate(self.trace.actions):
                self.action_results.append(self._execute_trace_action(index, action))

            assertion_results = evaluate_all_assertions(self.trace.assertions, self._get_state())
            all_passed = all(r.passed for r in assertion_results) and all(r.ok for r in self.action_results)
            logger.info("Trace '%s' finished: %s", self.trace.name, "passed" if all_passed else "failed")

            return TraceRunResult(
                trace_name=self.trace.name,
                completed=True,
                final_time=self.network.current_time,
                assertion_results=assertion_results,
                all_passed=all_passed,
                action_results=self.action_results,
                block_count=len(self.network.chain),
            )

        except (ValidationError, ValueError, KeyError, AttributeError, TypeError) as e:
            logger.error("Trace '%s' aborted: %s", self.trace.name, e)
            return TraceRunResult(
                trace_name=self.trace.name,
                completed=False,
                final_time=self.network.current_time,
                assertion_results=[],
                all_passed=False,
                action_results=self.action_results,
                block_count=len(self.network.chain),
                error=f"{type(e).__name__}: {e}",
            )

    def _execute_trace_action(self, index: int, action: TraceAction) -> ActionResult:
        """Execute one action at its scheduled time."""
        self.network.set_time(self.trace.setup.start_time + action.time)

        sender = self.network.address_of(action.actor)
        contract = self._target(action.target)
        if not callable(getattr(contract, action.method, None)):
            raise ValidationError(f"{type(contract).__name__} has no method {action.method}")
        method = getattr(contract.connect(sender, value=action.value), action.method)

        params = self._resolve_param(action.params)
        logger.debug("Action #%d at %d: %s.%s(%r) by %s", index, self.network.current_time,
                     action.target, action.method, params, action.actor)
        try:
            if isinstance(params, dict):
                result = method(**params)
            else:
                result = method(*params)
        except ContractError as e:
            error = f"{type(e).__name__}: {e}"
            ok = action.expect_error is not None and _error_matches(e, action.expect_error)
            return ActionResult(index=index, action=action, ok=ok, error=error)

        if action.target == "registry" and action.method == "create_escrow":
            self.escrows.append(result)

        if action.expect_error is not None:
            return ActionResult(
                index=index, action=action, ok=False, result=result,
                error=f"expected {action.expect_error}, call succeeded",
            )
        return ActionResult(index=index, action=action, ok=True, result=result)

    def _get_state(self) -> Dict[str, Any]:
        """Get current marketplace state for assertion evaluation."""
        return {
            "network": self.network,
            "marketplace": self.marketplace,
            "tokens": self.tokens,
            "escrows": self.escrows,
            "resolve": self.resolve,
        }


def run_trace(trace: Trace, environ: Optional[Mapping[str, str]] = None) -> TraceRunResult:
    """
    Convenience function to run a trace.

    Args:
        trace: The trace to run
        environ: Environment used for ESCROW_* config overrides
            (default: os.environ)

    Returns:
        TraceRunResult
    """
    runner = TraceRunner(trace, environ=environ)
    return runner.run()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Replay escrow marketplace traces")
    parser.add_argument("traces", nargs="+", help="YAML trace files")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every action")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    failed = 0
    for path in args.traces:
        try:
            result = run_trace(load_trace(path))
        except (OSError, ValueError) as e:
            print(f"{path}: {e}", file=sys.stderr)
            failed += 1
            continue

        print(result)
        for action_result in result.unexpected_actions:
            print(action_result)
        if result.assertion_results:
            print(format_assertion_results(result.assertion_results))
        if not result.all_passed:
            failed += 1

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
