"""
Escrow Chain - hosting ledger for the escrow contracts.

This package provides:
- primitives: hashing, addresses, Event, Block, and Chain
- types: milestone, lock and policy types
- errors: the contract error taxonomy
- contract: Contract base class, call proxy and guards
- network: identities, clock, and atomic call execution
"""

from .primitives import (
    ZERO_ADDRESS,
    hash_data,
    derive_address,
    is_empty_address,
    Event,
    Block,
    Chain,
)

from .types import (
    FEE_MULTIPLIER,
    NO_LOCK,
    MilestoneState,
    Milestone,
    LockState,
    Lock,
    LockInfo,
    FeeInfo,
    FeeLockPolicy,
)

from .errors import (
    ContractError,
    InvalidArgument,
    InvalidConfig,
    InvalidState,
    Unauthorized,
    InvalidIndex,
    TimeGuardError,
    NotYetDue,
    WindowClosed,
    StillLocked,
    WindowPassed,
    NoDispute,
    PolicyNotSet,
    PaymentMismatch,
    HasPendingMilestones,
    TransferFailed,
    InstanceDestroyed,
    AlreadyInitialized,
    ReentrantCall,
)

from .contract import Contract, BoundContract, view, non_reentrant

from .network import Network, CallFrame

__all__ = [
    # Primitives
    "ZERO_ADDRESS",
    "hash_data",
    "derive_address",
    "is_empty_address",
    "Event",
    "Block",
    "Chain",
    # Types
    "FEE_MULTIPLIER",
    "NO_LOCK",
    "MilestoneState",
    "Milestone",
    "LockState",
    "Lock",
    "LockInfo",
    "FeeInfo",
    "FeeLockPolicy",
    # Errors
    "ContractError",
    "InvalidArgument",
    "InvalidConfig",
    "InvalidState",
    "Unauthorized",
    "InvalidIndex",
    "TimeGuardError",
    "NotYetDue",
    "WindowClosed",
    "StillLocked",
    "WindowPassed",
    "NoDispute",
    "PolicyNotSet",
    "PaymentMismatch",
    "HasPendingMilestones",
    "TransferFailed",
    "InstanceDestroyed",
    "AlreadyInitialized",
    "ReentrantCall",
    # Contracts
    "Contract",
    "BoundContract",
    "view",
    "non_reentrant",
    # Network
    "Network",
    "CallFrame",
]
