"""
Assertion Handler Registry

Maps assertion types to their evaluation functions.
"""

from typing import Callable, Dict, Any

from ...chain import MilestoneState, LockState


# Type for assertion handlers
# Handler(assertion_params, simulation_state) -> (passed, message)
AssertionHandler = Callable[[Dict[str, Any], Dict[str, Any]], tuple]


# Global registry of assertion handlers
ASSERTION_HANDLERS: Dict[str, AssertionHandler] = {}


def register_assertion_handler(assertion_type: str):
    """
    Decorator to register an assertion handler.

    Usage:
        @register_assertion_handler("token_balance")
        def check_token_balance(params, state):
            ...
            return (True, "participant holds 90 USD")
    """
    def decorator(func: AssertionHandler) -> AssertionHandler:
        ASSERTION_HANDLERS[assertion_type] = func
        return func
    return decorator


def _escrow(params: Dict[str, Any], state: Dict[str, Any]):
    ref = params.get("escrow", "escrow:0")
    if isinstance(ref, int):
        ref = f"escrow:{ref}"
    return state["network"].contract_at(state["resolve"](ref))


# =============================================================================
# Built-in Assertion Handlers
# =============================================================================

@register_assertion_handler("token_balance")
def check_token_balance(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Check a holder's token balance.

    Params:
        token: Token name from setup.tokens
        holder: Identity name or contract reference (locker, escrow:<n>, ...)
        expected: Expected balance
    """
    token = state["tokens"].get(params.get("token"))
    if token is None:
        return (False, f"Unknown token: {params.get('token')}")

    holder = params.get("holder")
    actual = token.balance_of(state["resolve"](holder))
    expected = params.get("expected")

    if actual == expected:
        return (True, f"{holder} holds {actual} {token.symbol}")
    return (False, f"{holder} holds {actual} {token.symbol}, expected {expected}")


@register_assertion_handler("native_balance")
def check_native_balance(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Check a holder's native balance.

    Params:
        holder: Identity name or contract reference
        expected: Expected balance
    """
    holder = params.get("holder")
    actual = state["network"].balance_of(state["resolve"](holder))
    expected = params.get("expected")

    if actual == expected:
        return (True, f"{holder} has native balance {actual}")
    return (False, f"{holder} has native balance {actual}, expected {expected}")


@register_assertion_handler("milestone_state")
def check_milestone_state(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Check the state of a milestone.

    Params:
        escrow: Escrow reference (default escrow:0)
        index: Milestone index (default 0)
        expected: State name, e.g. "RELEASED"
    """
    escrow = _escrow(params, state)
    index = params.get("index", 0)
    if index >= len(escrow.milestones):
        return (False, f"Milestone {index} does not exist")

    actual = escrow.milestones[index].state
    expected = MilestoneState[str(params.get("expected")).upper()]

    if actual == expected:
        return (True, f"Milestone {index} is {actual.name}")
    return (False, f"Milestone {index} is {actual.name}, expected {expected.name}")


@register_assertion_handler("milestone_count")
def check_milestone_count(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Count milestones of an escrow, optionally in one state.

    Params:
        escrow: Escrow reference (default escrow:0)
        state: Optional state name
        expected: Expected count
    """
    escrow = _escrow(params, state)
    wanted = params.get("state")
    if wanted is None:
        actual = len(escrow.milestones)
        label = "milestones"
    else:
        milestone_state = MilestoneState[str(wanted).upper()]
        actual = sum(1 for m in escrow.milestones if m.state == milestone_state)
        label = f"{milestone_state.name} milestones"

    expected = params.get("expected")
    if actual == expected:
        return (True, f"{actual} {label}")
    return (False, f"{actual} {label}, expected {expected}")


@register_assertion_handler("lock_state")
def check_lock_state(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Check the state of a lock in the marketplace locker.

    Params:
        lock_id: Lock index
        expected: State name, e.g. "WITHDRAWN"
    """
    locker = state["marketplace"].locker
    lock_id = params.get("lock_id", 0)
    if not 0 <= lock_id < len(locker.locks):
        return (False, f"Lock {lock_id} does not exist")

    actual = locker.locks[lock_id].state
    expected = LockState[str(params.get("expected")).upper()]

    if actual == expected:
        return (True, f"Lock {lock_id} is {actual.name}")
    return (False, f"Lock {lock_id} is {actual.name}, expected {expected.name}")


@register_assertion_handler("escrow_count")
def check_escrow_count(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Check the number of active escrows, and that the registry indexes agree.

    Params:
        expected: Expected number of active escrows
    """
    registry = state["marketplace"].registry
    actual = len(registry.escrows)
    expected = params.get("expected")

    if not registry.check_consistency():
        return (False, "Registry index structures are inconsistent")
    if actual == expected:
        return (True, f"{actual} active escrows")
    return (False, f"{actual} active escrows, expected {expected}")


@register_assertion_handler("escrow_destroyed")
def check_escrow_destroyed(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Check whether an escrow has been destroyed.

    Params:
        escrow: Escrow reference (default escrow:0)
        expected: True (default) or False
    """
    escrow = _escrow(params, state)
    expected = bool(params.get("expected", True))

    if escrow.destroyed == expected:
        return (True, f"Escrow {escrow.address} destroyed={escrow.destroyed}")
    return (False, f"Escrow {escrow.address} destroyed={escrow.destroyed}, expected {expected}")


@register_assertion_handler("event_emitted")
def check_event_emitted(params: Dict[str, Any], state: Dict[str, Any]) -> tuple:
    """
    Check how many times an event was emitted.

    Params:
        name: Event name
        count: Exact expected count (default: at least one)
        args: Optional mapping the event args must contain; values may be
              references, which are resolved first
    """
    name = params.get("name")
    wanted_args = {
        key: state["resolve"](value) if isinstance(value, str) else value
        for key, value in (params.get("args") or {}).items()
    }

    matching = []
    for event in state["network"].events(name=name):
        args = {k: (v.name if hasattr(v, "name") and not isinstance(v, str) else v) for k, v in event.args.items()}
        if all(args.get(k) == v for k, v in wanted_args.items()):
            matching.append(event)

    count = params.get("count")
    if count is None:
        if matching:
            return (True, f"{name} emitted {len(matching)} time(s)")
        return (False, f"{name} was never emitted")
    if len(matching) == count:
        return (True, f"{name} emitted {count} time(s)")
    return (False, f"{name} emitted {len(matching)} time(s), expected {count}")
