"""
YAML trace parser.
"""

from typing import Any, Dict, List

import yaml

from .schema import (
    Trace, TraceAction, TraceAssertion,
    TraceSetup, TraceIdentitySpec, TraceTokenSpec,
    ValidationError,
)
from ...chain import Network

DEFAULT_START_TIME = Network.GENESIS_TIME

TARGET_PREFIXES = ("registry", "locker", "token:", "escrow:")


def parse_trace(yaml_content: str) -> Trace:
    """Parse a trace from YAML content."""
    data = yaml.safe_load(yaml_content)
    if not isinstance(data, dict):
        raise ValidationError("Trace must be a YAML mapping")
    return _parse_trace_dict(data)


def load_trace(file_path: str) -> Trace:
    """Load a trace from a YAML file."""
    with open(file_path, 'r') as f:
        return parse_trace(f.read())


def _parse_trace_dict(data: Dict[str, Any]) -> Trace:
    """Parse a trace from a dictionary."""
    required = ["name", "description", "setup", "actions", "assertions"]
    for field in required:
        if field not in data:
            raise ValidationError(f"Missing required field: {field}")

    setup = _parse_setup(data["setup"] or {})
    actions = _parse_actions(data["actions"] or [], setup)
    assertions = _parse_assertions(data["assertions"] or [])

    return Trace(
        name=data["name"],
        description=data["description"],
        setup=setup,
        actions=actions,
        assertions=assertions,
    )


def _parse_setup(data: Dict[str, Any]) -> TraceSetup:
    """Parse setup specification."""
    identities = {}
    for name, spec in (data.get("identities") or {}).items():
        if isinstance(spec, dict):
            identities[name] = TraceIdentitySpec(balance=int(spec.get("balance", 0)))
        else:
            identities[name] = TraceIdentitySpec()

    tokens = {}
    for name, spec in (data.get("tokens") or {}).items():
        spec = spec or {}
        mint = {holder: int(amount) for holder, amount in (spec.get("mint") or {}).items()}
        for holder in mint:
            if holder not in identities:
                raise ValidationError(f"Token {name} mints to unknown identity: {holder}")
        tokens[name] = TraceTokenSpec(
            name=spec.get("name", name),
            symbol=spec.get("symbol", name.upper()),
            mint=mint,
        )

    marketplace = data.get("marketplace") or {}
    if not isinstance(marketplace, dict):
        raise ValidationError("setup.marketplace must be a mapping")

    return TraceSetup(
        start_time=int(data.get("start_time", DEFAULT_START_TIME)),
        marketplace=dict(marketplace),
        identities=identities,
        tokens=tokens,
    )


def _parse_target(target: str, setup: TraceSetup) -> str:
    if not any(target == p or (p.endswith(":") and target.startswith(p)) for p in TARGET_PREFIXES):
        raise ValidationError(
            f"Invalid target: {target}. Valid targets: registry, locker, token:<name>, escrow:<n>"
        )
    if target.startswith("token:") and target.split(":", 1)[1] not in setup.tokens:
        raise ValidationError(f"Unknown token in target: {target}")
    if target.startswith("escrow:"):
        try:
            int(target.split(":", 1)[1])
        except ValueError:
            raise ValidationError(f"Escrow target needs a creation number: {target}")
    return target


def _parse_actions(data: List[Dict[str, Any]], setup: TraceSetup) -> List[TraceAction]:
    """Parse action list."""
    actions = []
    for action_data in data:
        for field in ("actor", "target", "method"):
            if field not in action_data:
                raise ValidationError(f"Action missing required field: {field}")
        if action_data["actor"] not in setup.identities:
            raise ValidationError(f"Unknown actor: {action_data['actor']}")
        if str(action_data["method"]).startswith("_"):
            raise ValidationError(f"Private method cannot be called: {action_data['method']}")

        params = action_data.get("params", [])
        if params is None:
            params = []
        if not isinstance(params, (list, dict)):
            params = [params]

        action = TraceAction(
            time=int(action_data.get("time", 0)),
            actor=action_data["actor"],
            target=_parse_target(str(action_data["target"]), setup),
            method=action_data["method"],
            params=params,
            value=int(action_data.get("value", 0)),
            expect_error=action_data.get("expect_error"),
        )
        actions.append(action)

    # Sort by time; the sort is stable so same-time actions keep file order
    actions.sort(key=lambda a: a.time)

    return actions


def _parse_assertions(data: List[Dict[str, Any]]) -> List[TraceAssertion]:
    """Parse assertion list."""
    assertions = []
    for assert_data in data:
        if "type" not in assert_data:
            raise ValidationError("Assertion missing required field: type")
        assertion = TraceAssertion(
            type=assert_data["type"],
            description=assert_data.get("description", ""),
            params={k: v for k, v in assert_data.items() if k not in ["type", "description"]},
        )
        assertions.append(assertion)

    return assertions
