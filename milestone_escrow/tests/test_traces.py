"""
Tests for trace parsing, assertion evaluation and the trace runner.
"""

from pathlib import Path

import pytest
import yaml

from milestone_escrow.framework import (
    TraceAssertion,
    ValidationError,
    evaluate_assertion,
    evaluate_all_assertions,
    failed_subjects,
    format_assertion_results,
    load_trace,
    parse_trace,
    register_assertion_handler,
    run_trace,
    TraceRunner,
)
from milestone_escrow.framework.assertions import ASSERTION_HANDLERS
from milestone_escrow.framework.runner import main


TRACES_DIR = Path(__file__).parent / "traces"


MINIMAL_TRACE = """
name: minimal
description: One escrow, one milestone
setup:
  marketplace:
    create_fee: 0
  identities:
    alice: {balance: 10}
    bob: {}
  tokens:
    usd:
      mint:
        alice: 500
actions:
  - time: 0
    actor: alice
    target: registry
    method: create_escrow
    params: ["ipfs://minimal"]
  - time: 0
    actor: alice
    target: escrow:0
    method: create_milestone
    params: ["$token:usd", "$bob", 50, "$now+60", "logo"]
assertions:
  - type: milestone_state
    description: Milestone exists
    expected: CREATED
"""


def trace_with(**overrides):
    """MINIMAL_TRACE with top-level sections replaced."""
    data = yaml.safe_load(MINIMAL_TRACE)
    data.update(overrides)
    return yaml.safe_dump(data)


# =============================================================================
# Parsing
# =============================================================================

class TestParseTrace:

    def test_parse_minimal(self):
        trace = parse_trace(MINIMAL_TRACE)
        assert trace.name == "minimal"
        assert set(trace.setup.identities) == {"alice", "bob"}
        assert trace.setup.identities["alice"].balance == 10
        assert trace.setup.tokens["usd"].symbol == "USD"
        assert trace.setup.tokens["usd"].mint == {"alice": 500}
        assert trace.setup.marketplace == {"create_fee": 0}
        assert [a.method for a in trace.actions] == ["create_escrow", "create_milestone"]
        assert trace.assertions[0].params == {"expected": "CREATED"}

    def test_missing_field(self):
        with pytest.raises(ValidationError, match="assertions"):
            parse_trace("name: x\ndescription: y\nsetup: {}\nactions: []\n")

    def test_not_a_mapping(self):
        with pytest.raises(ValidationError):
            parse_trace("- just\n- a list\n")

    def test_unknown_actor(self):
        actions = [{"actor": "zed", "target": "registry", "method": "escrow_count"}]
        with pytest.raises(ValidationError, match="Unknown actor"):
            parse_trace(trace_with(actions=actions))

    @pytest.mark.parametrize("target", ["bank", "token:eur", "escrow:first"])
    def test_invalid_target(self, target):
        actions = [{"actor": "alice", "target": target, "method": "x"}]
        with pytest.raises(ValidationError):
            parse_trace(trace_with(actions=actions))

    def test_private_method(self):
        actions = [{"actor": "alice", "target": "registry", "method": "_only_owner"}]
        with pytest.raises(ValidationError, match="Private method"):
            parse_trace(trace_with(actions=actions))

    def test_mint_to_unknown_identity(self):
        with pytest.raises(ValidationError, match="unknown identity"):
            parse_trace(trace_with(setup={
                "identities": {"alice": {}},
                "tokens": {"usd": {"mint": {"bob": 1}}},
            }))

    def test_actions_sorted_by_time_keeping_file_order(self):
        actions = [
            {"time": 5, "actor": "alice", "target": "registry", "method": "c"},
            {"time": 0, "actor": "alice", "target": "registry", "method": "a"},
            {"time": 5, "actor": "bob", "target": "registry", "method": "d"},
            {"time": 0, "actor": "bob", "target": "registry", "method": "b"},
        ]
        trace = parse_trace(trace_with(actions=actions))
        assert [a.method for a in trace.actions] == ["a", "b", "c", "d"]

    def test_scalar_params_wrapped(self):
        actions = [{"actor": "bob", "target": "escrow:0", "method": "agree_milestone", "params": 0}]
        trace = parse_trace(trace_with(actions=actions))
        assert trace.actions[0].params == [0]

    def test_load_trace_files(self):
        for path in sorted(TRACES_DIR.glob("*.yaml")):
            trace = load_trace(str(path))
            assert trace.actions
            assert trace.assertions


# =============================================================================
# Running
# =============================================================================

class TestRunner:

    @pytest.mark.parametrize("path", sorted(TRACES_DIR.glob("*.yaml")), ids=lambda p: p.stem)
    def test_bundled_traces_pass(self, path):
        result = run_trace(load_trace(str(path)), environ={})
        assert result.completed, result.error
        assert result.unexpected_actions == []
        assert result.all_passed, format_assertion_results(result.assertion_results)

    def test_minimal_trace(self):
        result = run_trace(parse_trace(MINIMAL_TRACE), environ={})
        assert result.all_passed
        assert len(result.action_results) == 2
        assert result.block_count > 1

    def test_resolve_references(self):
        runner = TraceRunner(parse_trace(MINIMAL_TRACE), environ={})
        runner.run()
        network = runner.network
        assert runner.resolve("$alice") == network.address_of("alice")
        assert runner.resolve("bob") == network.address_of("bob")
        assert runner.resolve("$registry") == runner.marketplace.registry.address
        assert runner.resolve("locker") == runner.marketplace.locker.address
        assert runner.resolve("$token:usd") == runner.tokens["usd"].address
        assert runner.resolve("$escrow:0") == runner.escrows[0]
        assert runner.resolve("$now+60") == network.current_time + 60
        assert runner.resolve("$now-1") == network.current_time - 1
        assert runner.resolve("0xabc") == "0xabc"
        with pytest.raises(ValidationError):
            runner.resolve("$escrow:5")

    def test_unexpected_failure_fails_trace(self):
        actions = [{"actor": "bob", "target": "registry", "method": "create_escrow", "params": ["x"], "value": 5}]
        result = run_trace(parse_trace(trace_with(actions=actions, assertions=[])), environ={})
        assert result.completed
        assert not result.all_passed
        (failure,) = result.unexpected_actions
        assert failure.error.startswith("TransferFailed")

    def test_expected_error_that_does_not_happen(self):
        actions = [{
            "actor": "alice", "target": "registry", "method": "create_escrow",
            "params": ["x"], "expect_error": "PaymentMismatch",
        }]
        result = run_trace(parse_trace(trace_with(actions=actions, assertions=[])), environ={})
        (failure,) = result.unexpected_actions
        assert "call succeeded" in failure.error

    def test_expected_error_matches_base_class(self):
        actions = [{
            "actor": "alice", "target": "registry", "method": "create_escrow",
            "params": ["x"], "value": 1, "expect_error": "ContractError",
        }]
        result = run_trace(parse_trace(trace_with(actions=actions, assertions=[])), environ={})
        assert result.all_passed

    def test_missing_escrow_aborts(self):
        actions = [{"actor": "bob", "target": "escrow:3", "method": "agree_milestone", "params": [0]}]
        result = run_trace(parse_trace(trace_with(actions=actions, assertions=[])), environ={})
        assert not result.completed
        assert "Escrow #3" in result.error

    def test_unknown_method_aborts(self):
        actions = [{"actor": "alice", "target": "registry", "method": "mint_money"}]
        result = run_trace(parse_trace(trace_with(actions=actions, assertions=[])), environ={})
        assert not result.completed
        assert "mint_money" in result.error

    def test_environment_overrides_trace_config(self):
        environ = {"ESCROW_CREATE_FEE": "3"}
        actions = [{"actor": "alice", "target": "registry", "method": "create_escrow", "params": ["x"], "value": 3}]
        result = run_trace(parse_trace(trace_with(actions=actions, assertions=[])), environ=environ)
        assert result.all_passed


# =============================================================================
# Assertions
# =============================================================================

class TestAssertions:

    @pytest.fixture
    def state(self):
        runner = TraceRunner(parse_trace(MINIMAL_TRACE), environ={})
        runner.run()
        return runner._get_state()

    def test_unknown_assertion_type(self, state):
        result = evaluate_assertion(TraceAssertion(type="no_such_check", description="d"), state)
        assert not result.passed
        assert "Unknown assertion type" in result.message

    def test_handler_error_is_a_failure(self, state):
        assertion = TraceAssertion(type="milestone_state", description="d", params={"expected": "NOT_A_STATE"})
        result = evaluate_assertion(assertion, state)
        assert not result.passed
        assert result.message.startswith("Error evaluating assertion")

    def test_failed_check_message(self, state):
        assertion = TraceAssertion(
            type="token_balance", description="alice",
            params={"token": "usd", "holder": "alice", "expected": 1},
        )
        result = evaluate_assertion(assertion, state)
        assert not result.passed
        assert "expected 1" in result.message
        assert str(result).startswith("[FAIL] alice")

    @pytest.mark.parametrize("assertion_type, params, subject", [
        ("milestone_state", {"index": 2, "expected": "CREATED"}, "escrow:0 milestone 2"),
        ("milestone_count", {"escrow": 1, "expected": 0}, "escrow:1"),
        ("lock_state", {"lock_id": 3, "expected": "LOCKED"}, "lock 3"),
        ("token_balance", {"token": "usd", "holder": "bob", "expected": 0}, "bob usd"),
        ("event_emitted", {"name": "LockCreated"}, "event LockCreated"),
        ("escrow_count", {"expected": 1}, "registry"),
    ])
    def test_result_names_subject(self, state, assertion_type, params, subject):
        result = evaluate_assertion(TraceAssertion(type=assertion_type, description="d", params=params), state)
        assert result.subject == subject

    def test_contract_error_names_subject(self, state):
        assertion = TraceAssertion(
            type="milestone_state", description="d",
            params={"escrow": "0xdead", "expected": "CREATED"},
        )
        result = evaluate_assertion(assertion, state)
        assert not result.passed
        assert result.message.startswith("InvalidArgument while reading 0xdead milestone 0")

    def test_failing_subjects_listed(self, state):
        assertions = [
            TraceAssertion(type="lock_state", description="no lock", params={"lock_id": 0, "expected": "LOCKED"}),
            TraceAssertion(type="escrow_count", description="one", params={"expected": 1}),
        ]
        results = evaluate_all_assertions(assertions, state)
        assert failed_subjects(results) == ["lock 0"]
        assert "Check: lock 0" in format_assertion_results(results)

    def test_register_custom_handler(self, state):
        @register_assertion_handler("block_count_at_least")
        def check_block_count(params, state):
            count = len(state["network"].chain)
            return (count >= params["minimum"], f"{count} blocks")

        try:
            assertion = TraceAssertion(type="block_count_at_least", description="d", params={"minimum": 2})
            assert evaluate_assertion(assertion, state).passed
        finally:
            del ASSERTION_HANDLERS["block_count_at_least"]

    def test_format_results(self, state):
        results = [
            evaluate_assertion(TraceAssertion(type="escrow_count", description="one", params={"expected": 1}), state),
            evaluate_assertion(TraceAssertion(type="escrow_count", description="two", params={"expected": 2}), state),
        ]
        text = format_assertion_results(results)
        assert "[PASS] one" in text
        assert "[FAIL] two" in text
        assert "Total: 1 passed, 1 failed" in text


# =============================================================================
# Command line
# =============================================================================

class TestMain:

    def test_main_passes(self, capsys, monkeypatch):
        monkeypatch.delenv("ESCROW_CREATE_FEE", raising=False)
        assert main([str(TRACES_DIR / "happy_path.yaml")]) == 0
        assert "PASSED" in capsys.readouterr().out

    def test_main_fails(self, tmp_path, capsys):
        path = tmp_path / "failing.yaml"
        path.write_text(trace_with(assertions=[{"type": "escrow_count", "description": "none", "expected": 7}]))
        assert main([str(path)]) == 1
        assert "FAILED" in capsys.readouterr().out

    def test_main_bad_file(self, tmp_path, capsys):
        path = tmp_path / "broken.yaml"
        path.write_text("name: broken\n")
        assert main([str(path)]) == 1
        assert "Missing required field" in capsys.readouterr().err
