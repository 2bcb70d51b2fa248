"""
Error taxonomy for contract calls.

Every failure inside a contract is a rejected call: the network rolls back
all state touched by the top-level call and re-raises the error.
"""


class ContractError(Exception):
    """Base class for rejected contract calls."""
    pass


class InvalidArgument(ContractError, ValueError):
    """Malformed input: empty identity, zero amount, past due date, empty text."""
    pass


class InvalidConfig(ContractError, ValueError):
    """Registry policy or template rejected."""
    pass


class InvalidState(ContractError):
    """Operation attempted from a state that does not permit it."""
    pass


class Unauthorized(ContractError, PermissionError):
    """Caller lacks the role required for this operation."""
    pass


class InvalidIndex(ContractError, IndexError):
    """Index or position out of range, or mismatched."""
    pass


class TimeGuardError(ContractError):
    """Base class for clock comparisons that rejected a call."""
    pass


class NotYetDue(TimeGuardError):
    pass


class WindowClosed(TimeGuardError):
    pass


class StillLocked(TimeGuardError):
    pass


class WindowPassed(TimeGuardError):
    pass


class NoDispute(ContractError):
    """Dispute-only operation without an active dispute."""
    pass


class PolicyNotSet(ContractError):
    pass


class PaymentMismatch(ContractError):
    pass


class HasPendingMilestones(ContractError):
    pass


class TransferFailed(ContractError):
    """A token or native value transfer failed."""
    pass


class InstanceDestroyed(ContractError):
    pass


class AlreadyInitialized(ContractError):
    pass


class ReentrantCall(ContractError):
    """A guarded operation was entered again before it returned."""
    pass
