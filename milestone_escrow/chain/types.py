"""
Type definitions for milestones, locks and registry policy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .primitives import ZERO_ADDRESS


# Fee percentages are expressed out of this denominator
FEE_MULTIPLIER = 100

# Lock id of a milestone that has never been released
NO_LOCK = -1


# =============================================================================
# Milestone
# =============================================================================

class MilestoneState(Enum):
    """Lifecycle states of a milestone."""
    CREATED = 0
    AGREED = 1
    DEPOSITED = 2
    REQUESTED = 3
    RELEASED = 4
    DISPUTED = 5


@dataclass
class Milestone:
    """One funded unit of work inside an escrow instance."""
    token: str
    participant: str
    amount: int
    due_date: int
    meta: str
    state: MilestoneState = MilestoneState.CREATED
    lock_id: int = NO_LOCK
    locker: str = ZERO_ADDRESS      # Locker holding lock_id, captured at release

    def as_tuple(self) -> tuple:
        """Field order of the milestone getter: token .. state."""
        return (
            self.token,
            self.participant,
            self.amount,
            self.due_date,
            self.lock_id,
            self.meta,
            self.state,
        )


# =============================================================================
# Lock
# =============================================================================

class LockState(Enum):
    """Lifecycle states of a vesting lock."""
    LOCKED = 0
    RELEASED = 1
    WITHDRAWN = 2


@dataclass
class Lock:
    """
    Time-vested custody of one milestone's net payout.

    The claim/reclaim boundary is unlock_time + duration. The duration is
    read from the owning escrow and stamped when the lock is created; a lock
    whose owner is not an escrow has no duration and can never be settled.
    """
    escrow: str                   # Address that created the lock
    beneficiary: str
    token: str
    amount: int
    milestone_index: int
    unlock_time: int
    duration: Optional[int]
    state: LockState = LockState.LOCKED

    @property
    def deadline(self) -> Optional[int]:
        if self.duration is None:
            return None
        return self.unlock_time + self.duration


# =============================================================================
# Registry Policy
# =============================================================================

@dataclass
class LockInfo:
    """Vesting custodian and lock duration."""
    locker: str = ZERO_ADDRESS
    duration: int = 0

    def as_tuple(self) -> tuple:
        return (self.locker, self.duration)


@dataclass
class FeeInfo:
    """Fee recipient, flat creation fee and percentage fee."""
    recipient: str = ZERO_ADDRESS
    create_fee: int = 0
    fee_percent: int = 0

    def as_tuple(self) -> tuple:
        return (self.recipient, self.create_fee, self.fee_percent, FEE_MULTIPLIER)

    def split(self, amount: int) -> tuple:
        """Return (fee, net) for a released amount."""
        fee = amount * self.fee_percent // FEE_MULTIPLIER
        return fee, amount - fee


@dataclass
class FeeLockPolicy:
    """Global policy held by the registry."""
    lock: LockInfo
    fee: FeeInfo

    @classmethod
    def unset(cls) -> 'FeeLockPolicy':
        return cls(lock=LockInfo(), fee=FeeInfo())
