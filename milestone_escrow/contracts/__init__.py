"""
Escrow marketplace contracts.

Each contract is a state machine hosted on a chain.Network and called
through Contract.connect(sender).
"""

from .token import FungibleToken, safe_transfer, safe_transfer_from
from .locker import Locker
from .escrow import Escrow
from .registry import EscrowRegistry
from .deployment import Marketplace, deploy_marketplace

__all__ = [
    "FungibleToken",
    "safe_transfer",
    "safe_transfer_from",
    "Locker",
    "Escrow",
    "EscrowRegistry",
    "Marketplace",
    "deploy_marketplace",
]
