"""
Escrow Registry - factory and index of escrow instances.

Holds the global fee/lock policy and the operator role, clones new escrow
instances from a template, and keeps two parallel index structures:

- escrows: the active list, addressed by position
- originator_escrows: per-originator list of positions in the active list

plus escrow_originators (position -> originator), used to patch the
originator index when a swap-remove moves the last escrow into a vacated
position.
"""

import logging
from typing import Dict, List, Optional

from ..chain import (
    Contract, view, non_reentrant,
    ZERO_ADDRESS, FEE_MULTIPLIER, FeeLockPolicy,
    InvalidArgument, InvalidConfig, InvalidIndex, Unauthorized,
    PolicyNotSet, PaymentMismatch,
    is_empty_address,
)

logger = logging.getLogger(__name__)


class EscrowRegistry(Contract):
    """Creates escrow instances and tracks the active ones."""

    STATE_FIELDS = ("owner", "policy", "escrows", "originator_escrows", "escrow_originators", "operators")

    def __init__(self, network, address, deployer, implementation: str):
        super().__init__(network, address, deployer)
        if is_empty_address(implementation):
            raise InvalidConfig("EscrowFactory: escrow implementation address is not defined")

        self.implementation = implementation
        self.owner = deployer
        self.policy = FeeLockPolicy.unset()

        self.escrows: List[str] = []
        self.originator_escrows: Dict[str, List[int]] = {}
        self.escrow_originators: Dict[int, str] = {}
        self.operators: Dict[str, bool] = {}

        self.emit("OwnershipTransferred", previous_owner=ZERO_ADDRESS, new_owner=deployer)

    # ─────────────────────────────────────────────────────────────────────────
    # Ownership
    # ─────────────────────────────────────────────────────────────────────────

    def _only_owner(self):
        if self.msg_sender != self.owner:
            raise Unauthorized("Ownable: caller is not the owner")

    @non_reentrant
    def transfer_ownership(self, new_owner: str):
        self._only_owner()
        if is_empty_address(new_owner):
            raise InvalidArgument("Ownable: new owner is the zero address")
        previous, self.owner = self.owner, new_owner
        self.emit("OwnershipTransferred", previous_owner=previous, new_owner=new_owner)

    # ─────────────────────────────────────────────────────────────────────────
    # Policy
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def set_lock_info(self, locker: str, duration: int):
        self._only_owner()
        if is_empty_address(locker):
            raise InvalidConfig("EscrowFactory: locker address is not defined")
        if duration <= 0:
            raise InvalidConfig("EscrowFactory: lock duration must be greater than zero")

        self.policy.lock.locker = locker
        self.policy.lock.duration = duration
        self.emit("LockInfoSet", locker=locker, duration=duration)
        logger.info("Lock info set: locker=%s duration=%d", locker, duration)

    @non_reentrant
    def set_fee_info(self, recipient: str, create_fee: int, fee_percent: int):
        self._only_owner()
        if is_empty_address(recipient):
            raise InvalidConfig("EscrowFactory: fee recipient address is not defined")
        if not 0 <= fee_percent <= FEE_MULTIPLIER:
            raise InvalidConfig("EscrowFactory: fee percent is greater than fee multiplier")
        if create_fee < 0:
            raise InvalidConfig("EscrowFactory: create fee is negative")

        self.policy.fee.recipient = recipient
        self.policy.fee.create_fee = create_fee
        self.policy.fee.fee_percent = fee_percent
        self.emit("FeeInfoSet", recipient=recipient, create_fee=create_fee, fee_percent=fee_percent)
        logger.info("Fee info set: recipient=%s create_fee=%d fee_percent=%d", recipient, create_fee, fee_percent)

    @view
    def get_lock_info(self) -> tuple:
        """(locker, lock duration)"""
        return self.policy.lock.as_tuple()

    @view
    def get_fee_info(self) -> tuple:
        """(fee recipient, create fee, fee percent, fee multiplier)"""
        return self.policy.fee.as_tuple()

    # ─────────────────────────────────────────────────────────────────────────
    # Operators
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def set_operator(self, account: str, enabled: bool):
        self._only_owner()
        if is_empty_address(account):
            raise InvalidArgument("EscrowFactory: operator address is not defined")
        self.operators[account] = bool(enabled)
        self.emit("OperatorSet", operator=account, enabled=bool(enabled))

    @view
    def is_operator(self, account: str) -> bool:
        return self.operators.get(account, False)

    # ─────────────────────────────────────────────────────────────────────────
    # Escrow creation and removal
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def create_escrow(self, uri: str) -> str:
        """
        Clone the template for the caller; the attached value must equal
        the create fee and is forwarded to the fee recipient.
        """
        fee = self.policy.fee
        if is_empty_address(fee.recipient):
            raise PolicyNotSet("EscrowFactory: fee recipient is not defined")
        if is_empty_address(self.policy.lock.locker):
            raise PolicyNotSet("EscrowFactory: locker is not defined")
        paid = self.msg_value
        if paid != fee.create_fee:
            raise PaymentMismatch(f"EscrowFactory: paid amount does not match create fee (paid {paid}, fee {fee.create_fee})")

        originator = self.msg_sender
        escrow = self.network.clone(self.implementation, self.address)
        self.contract(escrow.address).initialize(originator, uri)

        position = len(self.escrows)
        self.escrows.append(escrow.address)
        self.originator_escrows.setdefault(originator, []).append(position)
        self.escrow_originators[position] = originator

        if paid:
            self.network.send_value(self.address, fee.recipient, paid)

        self.emit("EscrowCreated", originator=originator, escrow=escrow.address, position=position)
        logger.info("Escrow %s created for %s at position %d", escrow.address, originator, position)
        return escrow.address

    @non_reentrant
    def remove_escrow(self, position: int, own_position: int, originator: str):
        """
        Swap-remove the calling escrow from both index structures.

        Only the escrow stored at ``position`` may call this, and
        ``own_position`` must be the entry in the originator's list that
        points at ``position``.
        """
        if not 0 <= position < len(self.escrows):
            raise InvalidIndex("EscrowFactory: invalid escrow index")
        if self.escrows[position] != self.msg_sender:
            raise InvalidIndex("EscrowFactory: caller is not the escrow")
        own = self.originator_escrows.get(originator, [])
        if not 0 <= own_position < len(own) or own[own_position] != position:
            raise InvalidIndex("EscrowFactory: invalid own escrow index")

        removed = self.escrows[position]
        last = len(self.escrows) - 1

        if position != last:
            # Move the last escrow into the vacated slot and repoint its owner's entry
            moved_owner = self.escrow_originators[last]
            moved_list = self.originator_escrows[moved_owner]
            moved_list[moved_list.index(last)] = position
            self.escrows[position] = self.escrows[last]
            self.escrow_originators[position] = moved_owner

        self.escrows.pop()
        del self.escrow_originators[last]

        own[own_position] = own[-1]
        own.pop()
        if not own:
            del self.originator_escrows[originator]

        self.emit("EscrowRemoved", originator=originator, escrow=removed, position=position)
        logger.info("Escrow %s removed from position %d", removed, position)

    # ─────────────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────────────

    @view
    def get_escrows(self) -> List[str]:
        return list(self.escrows)

    @view
    def get_originator_escrows(self, originator: Optional[str] = None) -> List[int]:
        """Positions owned by ``originator`` (default: the caller)."""
        if originator is None:
            originator = self.msg_sender
        return list(self.originator_escrows.get(originator, []))

    @view
    def escrow_count(self) -> int:
        return len(self.escrows)

    @view
    def check_consistency(self) -> bool:
        """
        True when every position is reachable from exactly one originator
        entry and every entry points at a live position it owns.
        """
        seen: Dict[int, str] = {}
        for originator, positions in self.originator_escrows.items():
            for position in positions:
                if not 0 <= position < len(self.escrows) or position in seen:
                    return False
                if self.escrow_originators.get(position) != originator:
                    return False
                seen[position] = originator
        return len(seen) == len(self.escrows) == len(self.escrow_originators)
