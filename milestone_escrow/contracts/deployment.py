"""
Deployment of a complete marketplace onto a Network.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..chain import Network
from ..config import MarketplaceConfig
from .escrow import Escrow
from .locker import Locker
from .registry import EscrowRegistry

logger = logging.getLogger(__name__)


@dataclass
class Marketplace:
    """Handles to the deployed marketplace contracts."""
    network: Network
    template: Escrow
    locker: Locker
    registry: EscrowRegistry
    owner: str
    fee_recipient: str

    def escrow(self, address: str) -> Escrow:
        return self.network.contract_at(address)


def _identity(network: Network, name: str) -> str:
    if name in network.identities:
        return network.identities[name]
    return network.create_identity(name)


def deploy_marketplace(network: Network, config: Optional[MarketplaceConfig] = None) -> Marketplace:
    """
    Deploy the escrow template, a locker and a registry, then apply the
    configured lock and fee policy from the deployer identity.
    """
    config = (config or MarketplaceConfig()).validate()
    owner = _identity(network, config.deployer)
    fee_recipient = _identity(network, config.fee_recipient)

    template = network.deploy(Escrow, owner)
    locker = network.deploy(Locker, owner)
    registry = network.deploy(EscrowRegistry, owner, template.address)

    registry.connect(owner).set_lock_info(locker.address, config.lock_duration)
    registry.connect(owner).set_fee_info(fee_recipient, config.create_fee, config.fee_percent)

    logger.info(
        "Marketplace deployed: registry=%s locker=%s template=%s",
        registry.address, locker.address, template.address,
    )
    return Marketplace(
        network=network,
        template=template,
        locker=locker,
        registry=registry,
        owner=owner,
        fee_recipient=fee_recipient,
    )
