"""
Escrow instance - milestone lifecycle for one engagement.

States and transitions (guard in parentheses):

    CREATED   --agree(participant)-->                  AGREED
    CREATED   --update(originator)-->                  CREATED
    AGREED    --deposit(originator)-->                 DEPOSITED
    AGREED    --request(participant, now >= due)-->    REQUESTED
    DEPOSITED --request(participant, now >= due)-->    REQUESTED
    DEPOSITED --release(originator)-->                 RELEASED
    REQUESTED --release(originator)-->                 RELEASED
    RELEASED  --dispute(originator, in window)-->      DISPUTED
    DISPUTED  --resolve(participant or operator)-->    AGREED
    DISPUTED  --cancel(originator or operator)-->      RELEASED

Every operation taking a milestone index checks the index before anything
else. State changes and lock linkage are written before any token transfer.
"""

import dataclasses
import logging
from typing import List, Tuple, Union

from ..chain import (
    Contract, view, non_reentrant,
    ZERO_ADDRESS, MilestoneState, Milestone, LockInfo, FeeInfo,
    InvalidArgument, InvalidIndex, InvalidState, Unauthorized,
    NotYetDue, WindowClosed, NoDispute, PolicyNotSet,
    HasPendingMilestones, InstanceDestroyed, AlreadyInitialized,
    is_empty_address,
)
from .token import safe_transfer, safe_transfer_from

logger = logging.getLogger(__name__)


class Escrow(Contract):
    """
    Milestone escrow between one originator and any number of participants.

    Instances are cloned from a template by the registry, then initialized
    once with the originator and a description uri.
    """

    STATE_FIELDS = ("originator", "meta", "factory", "milestones", "initialized", "destroyed")

    def __init__(self, network, address, deployer):
        super().__init__(network, address, deployer)
        self.originator: str = ZERO_ADDRESS
        self.meta: str = ""
        self.factory: str = ZERO_ADDRESS
        self.milestones: List[Milestone] = []
        self.initialized = False
        self.destroyed = False

    # ─────────────────────────────────────────────────────────────────────────
    # Guards
    # ─────────────────────────────────────────────────────────────────────────

    def _check_alive(self):
        if self.destroyed:
            raise InstanceDestroyed("Escrow: escrow has been destroyed")

    def _milestone(self, index: int) -> Milestone:
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(self.milestones):
            raise InvalidIndex("Escrow: invalid milestone index")
        return self.milestones[index]

    def _only_originator(self):
        if self.msg_sender != self.originator:
            raise Unauthorized("Escrow: caller is not the originator")

    def _only_participant(self, milestone: Milestone):
        if self.msg_sender != milestone.participant:
            raise Unauthorized("Escrow: caller is not the participant")

    def _is_operator(self, account: str) -> bool:
        if self.factory not in self.network.contracts:
            return False
        return bool(self.contract(self.factory).is_operator(account))

    def _validate_terms(self, token: str, participant: str, amount: int, due_date: int, meta: str):
        if is_empty_address(token):
            raise InvalidArgument("Escrow: token address is not defined")
        if is_empty_address(participant):
            raise InvalidArgument("Escrow: participant address is not defined")
        if amount <= 0:
            raise InvalidArgument("Escrow: token amount is zero")
        if due_date <= self.now:
            raise InvalidArgument("Escrow: due date has already passed")
        if not meta:
            raise InvalidArgument("Escrow: meta is empty")

    def _set_state(self, index: int, state: MilestoneState):
        milestone = self.milestones[index]
        logger.debug("Escrow %s milestone %d: %s -> %s", self.address, index, milestone.state.name, state.name)
        milestone.state = state
        self.emit("MilestoneStateUpdated", index=index, state=state)

    def _policy(self) -> Tuple[LockInfo, FeeInfo]:
        """Lock and fee info as currently set on the factory."""
        if self.factory not in self.network.contracts:
            raise PolicyNotSet("Escrow: factory is not a registry")
        registry = self.contract(self.factory)
        locker, duration = registry.get_lock_info()
        recipient, create_fee, fee_percent, _multiplier = registry.get_fee_info()
        if is_empty_address(locker) or is_empty_address(recipient):
            raise PolicyNotSet("Escrow: fee or lock info is not defined")
        return LockInfo(locker, duration), FeeInfo(recipient, create_fee, fee_percent)

    # ─────────────────────────────────────────────────────────────────────────
    # Instance setup
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def initialize(self, originator: str, uri: str):
        """One-time setup; the caller becomes the factory."""
        if self.initialized:
            raise AlreadyInitialized("Escrow: already initialized")
        if is_empty_address(originator):
            raise InvalidArgument("Escrow: originator address is not defined")
        if not uri:
            raise InvalidArgument("Escrow: uri is empty")

        self.initialized = True
        self.originator = originator
        self.meta = uri
        self.factory = self.msg_sender

    @non_reentrant
    def update_meta(self, uri: str):
        self._check_alive()
        self._only_originator()
        if not uri:
            raise InvalidArgument("Escrow: uri is empty")
        self.meta = uri
        self.emit("EscrowMetaUpdated", meta=uri)

    # ─────────────────────────────────────────────────────────────────────────
    # Milestone terms
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def create_milestone(self, token: str, participant: str, amount: int, due_date: int, meta: str) -> int:
        self._check_alive()
        self._only_originator()
        self._validate_terms(token, participant, amount, due_date, meta)

        self.milestones.append(Milestone(
            token=token,
            participant=participant,
            amount=amount,
            due_date=due_date,
            meta=meta,
        ))
        index = len(self.milestones) - 1
        self.emit(
            "MilestoneCreated",
            index=index,
            token=token,
            participant=participant,
            amount=amount,
            due_date=due_date,
            meta=meta,
        )
        return index

    @non_reentrant
    def update_milestone(self, index: int, token: str, participant: str, amount: int, due_date: int, meta: str):
        self._check_alive()
        milestone = self._milestone(index)
        self._only_originator()
        if milestone.state != MilestoneState.CREATED:
            raise InvalidState("Escrow: milestone has already been agreed")
        self._validate_terms(token, participant, amount, due_date, meta)

        milestone.token = token
        milestone.participant = participant
        milestone.amount = amount
        milestone.due_date = due_date
        milestone.meta = meta
        self.emit(
            "MilestoneUpdated",
            index=index,
            token=token,
            participant=participant,
            amount=amount,
            due_date=due_date,
            meta=meta,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def agree_milestone(self, index: int):
        self._check_alive()
        milestone = self._milestone(index)
        self._only_participant(milestone)
        if milestone.state != MilestoneState.CREATED:
            raise InvalidState("Escrow: milestone has already been agreed")
        self._set_state(index, MilestoneState.AGREED)

    @non_reentrant
    def deposit_milestone(self, index: int):
        """Pull the milestone amount from the originator (requires an allowance)."""
        self._check_alive()
        milestone = self._milestone(index)
        self._only_originator()
        if milestone.state != MilestoneState.AGREED:
            raise InvalidState("Escrow: milestone is not agreed")

        self._set_state(index, MilestoneState.DEPOSITED)
        safe_transfer_from(self, milestone.token, self.originator, self.address, milestone.amount)

    @non_reentrant
    def request_milestone(self, index: int):
        """Participant escalates an overdue milestone; no funds move."""
        self._check_alive()
        milestone = self._milestone(index)
        self._only_participant(milestone)
        if milestone.state not in (MilestoneState.AGREED, MilestoneState.DEPOSITED):
            raise InvalidState("Escrow: milestone is not deposited")
        if self.now < milestone.due_date:
            raise NotYetDue("Escrow: milestone is not yet due date")
        self._set_state(index, MilestoneState.REQUESTED)

    @non_reentrant
    def release_milestone(self, index: int):
        """
        Release a deposited milestone into a new vesting lock.

        The fee goes to the fee recipient immediately; the net amount goes to
        the locker, claimable by the participant once the lock duration has
        passed.
        """
        self._check_alive()
        milestone = self._milestone(index)
        self._only_originator()
        if milestone.state not in (MilestoneState.DEPOSITED, MilestoneState.REQUESTED):
            raise InvalidState("Escrow: milestone isn't deposited")

        lock_info, fee_info = self._policy()
        fee, net = fee_info.split(milestone.amount)

        self._set_state(index, MilestoneState.RELEASED)
        milestone.locker = lock_info.locker
        milestone.lock_id = self.contract(lock_info.locker).create_lock(
            milestone.participant, milestone.token, net, self.now, index,
        )

        if fee:
            safe_transfer(self, milestone.token, fee_info.recipient, fee)
        safe_transfer(self, milestone.token, lock_info.locker, net)

    @non_reentrant
    def claim(self, index: int):
        """Participant collects a released milestone from the locker."""
        self._check_alive()
        milestone = self._milestone(index)
        self._only_participant(milestone)
        if milestone.state != MilestoneState.RELEASED:
            raise InvalidState("Escrow: milestone is not yet released")
        self.contract(milestone.locker).release(milestone.lock_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Disputes
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def create_dispute(self, index: int):
        self._check_alive()
        milestone = self._milestone(index)
        self._only_originator()
        if milestone.state != MilestoneState.RELEASED:
            raise InvalidState("Escrow: milestone is not released")
        deadline = self.contract(milestone.locker).unlock_deadline(milestone.lock_id)
        if self.now >= deadline:
            raise WindowClosed("Escrow: lock duration has already passed")
        self._set_state(index, MilestoneState.DISPUTED)

    @non_reentrant
    def resolve_dispute(self, index: int):
        """Accept the dispute: the lock goes back to the originator."""
        self._check_alive()
        milestone = self._milestone(index)
        if self.msg_sender != milestone.participant and not self._is_operator(self.msg_sender):
            raise Unauthorized("Escrow: caller has no role")
        if milestone.state != MilestoneState.DISPUTED:
            raise NoDispute("Escrow: there is no dispute")

        self._set_state(index, MilestoneState.AGREED)
        self.contract(milestone.locker).withdraw(milestone.lock_id)

    @non_reentrant
    def cancel_dispute(self, index: int):
        """Drop the dispute: the lock stays claimable by the participant."""
        self._check_alive()
        milestone = self._milestone(index)
        if self.msg_sender != self.originator and not self._is_operator(self.msg_sender):
            raise Unauthorized("Escrow: caller has no role")
        if milestone.state != MilestoneState.DISPUTED:
            raise NoDispute("Escrow: there is no dispute")
        self._set_state(index, MilestoneState.RELEASED)

    # ─────────────────────────────────────────────────────────────────────────
    # Teardown
    # ─────────────────────────────────────────────────────────────────────────

    @non_reentrant
    def destroy(self, position: int, own_position: int):
        """Remove this instance from the registry and make it inert."""
        self._check_alive()
        self._only_originator()
        if any(m.state != MilestoneState.RELEASED for m in self.milestones):
            raise HasPendingMilestones("Escrow: there are unreleased milestones")

        self.contract(self.factory).remove_escrow(position, own_position, self.originator)
        self.destroyed = True
        logger.info("Escrow %s destroyed by %s", self.address, self.originator)

    # ─────────────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────────────

    @view
    def get_meta(self) -> str:
        self._check_alive()
        return self.meta

    @view
    def get_originator(self) -> str:
        self._check_alive()
        return self.originator

    @view
    def get_factory(self) -> str:
        self._check_alive()
        return self.factory

    @view
    def get_lock_duration(self) -> int:
        self._check_alive()
        if self.factory not in self.network.contracts:
            return 0
        return self.contract(self.factory).get_lock_info()[1]

    @view
    def get_milestone(self, index: int) -> Milestone:
        self._check_alive()
        return dataclasses.replace(self._milestone(index))

    @view
    def get_count_milestones(self, state: Union[MilestoneState, int, str]) -> int:
        self._check_alive()
        try:
            if isinstance(state, str):
                state = MilestoneState[state.upper()]
            elif not isinstance(state, MilestoneState):
                state = MilestoneState(state)
        except (KeyError, ValueError):
            raise InvalidIndex("Escrow: invalid milestone state") from None
        return sum(1 for m in self.milestones if m.state == state)

    @view
    def milestone_count(self) -> int:
        self._check_alive()
        return len(self.milestones)

    @view
    def is_destroyed(self) -> bool:
        return self.destroyed
