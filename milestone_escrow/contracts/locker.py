"""
Locker - vesting custodian for released milestone payouts.

Each lock holds one milestone's net payout. Exactly one of release
(beneficiary claims) and withdraw (originator reclaims after a resolved
dispute) can ever succeed for a lock, and which one is eligible flips at
unlock_time + duration:

    now <  deadline  ->  withdraw allowed, release fails with StillLocked
    now >= deadline  ->  release allowed, withdraw fails with WindowPassed
"""

import dataclasses
import logging
from typing import List, Optional

from ..chain import (
    Contract, view, non_reentrant,
    Lock, LockState,
    InvalidArgument, InvalidIndex, InvalidState, Unauthorized,
    StillLocked, WindowPassed,
    is_empty_address,
)
from .token import safe_transfer

logger = logging.getLogger(__name__)


class Locker(Contract):
    """Holds time-locks created by escrow instances."""

    STATE_FIELDS = ("locks",)

    def __init__(self, network, address, deployer):
        super().__init__(network, address, deployer)
        self.locks: List[Lock] = []

    # ─────────────────────────────────────────────────────────────────────────
    # Callbacks into the owning escrow
    # ─────────────────────────────────────────────────────────────────────────

    def _is_escrow(self, address: str) -> bool:
        owner = self.network.contracts.get(address)
        return owner is not None and hasattr(owner, "get_lock_duration")

    def _lock_duration_of(self, owner: str) -> Optional[int]:
        # Only escrow instances carry a lock duration
        if not self._is_escrow(owner):
            return None
        return self.contract(owner).get_lock_duration()

    # ─────────────────────────────────────────────────────────────────────────
    # Guards
    # ─────────────────────────────────────────────────────────────────────────

    def _get_locked(self, lock_id: int) -> Lock:
        if not 0 <= lock_id < len(self.locks):
            raise InvalidIndex("Locker: invalid lock index")
        lock = self.locks[lock_id]
        if self.msg_sender != lock.escrow:
            raise Unauthorized("Locker: only escrow can call this function")
        if lock.duration is None:
            raise Unauthorized("Locker: caller is not an escrow")
        if lock.state != LockState.LOCKED:
            raise InvalidState("Locker: it is not locked")
        return lock

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def create_lock(
        self,
        beneficiary: str,
        token: str,
        amount: int,
        unlock_time: int,
        milestone_index: int,
    ) -> int:
        """
        Record a new lock owned by the caller and return its id.

        The caller is trusted to transfer ``amount`` of ``token`` to this
        locker in the same call. A lock created by anything other than an
        escrow instance is recorded but can never be released or withdrawn.
        """
        if is_empty_address(beneficiary):
            raise InvalidArgument("Locker: beneficiary is not defined")
        if is_empty_address(token):
            raise InvalidArgument("Locker: token is not defined")

        escrow = self.msg_sender
        lock = Lock(
            escrow=escrow,
            beneficiary=beneficiary,
            token=token,
            amount=amount,
            milestone_index=milestone_index,
            unlock_time=unlock_time,
            duration=self._lock_duration_of(escrow),
        )
        self.locks.append(lock)
        lock_id = len(self.locks) - 1

        self.emit(
            "LockCreated",
            lock_id=lock_id,
            escrow=escrow,
            beneficiary=beneficiary,
            token=token,
            amount=amount,
            unlock_time=unlock_time,
        )
        logger.debug("Lock %d created by %s: %d until %s", lock_id, escrow, amount, lock.deadline)
        return lock_id

    @non_reentrant
    def release(self, lock_id: int):
        """Pay the lock out to its beneficiary once the dispute window has passed."""
        lock = self._get_locked(lock_id)
        if self.now < lock.deadline:
            raise StillLocked("Locker: it is locked for now")

        lock.state = LockState.RELEASED
        self.emit("LockReleased", lock_id=lock_id, beneficiary=lock.beneficiary, amount=lock.amount)
        logger.debug("Lock %d released to %s", lock_id, lock.beneficiary)

        safe_transfer(self, lock.token, lock.beneficiary, lock.amount)

    @non_reentrant
    def withdraw(self, lock_id: int):
        """Return the lock to the owning escrow's originator while the window is open."""
        lock = self._get_locked(lock_id)
        if self.now >= lock.deadline:
            raise WindowPassed("Locker: lock duration has already passed")

        recipient = self.contract(lock.escrow).get_originator()
        lock.state = LockState.WITHDRAWN
        self.emit("LockWithdrawn", lock_id=lock_id, recipient=recipient, amount=lock.amount)
        logger.debug("Lock %d withdrawn to %s", lock_id, recipient)

        safe_transfer(self, lock.token, recipient, lock.amount)

    # ─────────────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────────────

    @view
    def get_lock(self, lock_id: int) -> Lock:
        if not 0 <= lock_id < len(self.locks):
            raise InvalidIndex("Locker: invalid lock index")
        return dataclasses.replace(self.locks[lock_id])

    @view
    def unlock_deadline(self, lock_id: int) -> Optional[int]:
        """Timestamp at which release becomes possible and withdraw stops (None if not escrow-owned)."""
        return self.get_lock(lock_id).deadline

    @view
    def lock_count(self) -> int:
        return len(self.locks)
