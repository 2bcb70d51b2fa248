"""
Shared fixtures for marketplace tests.

The default marketplace charges a create fee of 100 native units, takes 10%
of every released milestone and vests payouts for one week.
"""

import pytest

from milestone_escrow.chain import Network
from milestone_escrow.config import MarketplaceConfig, ONE_DAY, ONE_WEEK
from milestone_escrow.contracts import FungibleToken, deploy_marketplace


CREATE_FEE = 100
FEE_PERCENT = 10
MILESTONE_AMOUNT = 100


@pytest.fixture
def network():
    return Network()


@pytest.fixture
def config():
    return MarketplaceConfig(
        create_fee=CREATE_FEE,
        fee_percent=FEE_PERCENT,
        lock_duration=ONE_WEEK,
    )


@pytest.fixture
def identities(network):
    """Named addresses; every identity starts with 1000 native units."""
    return {
        name: network.create_identity(name, balance=1000)
        for name in ("alice", "bob", "carol", "operator", "mallory")
    }


@pytest.fixture
def marketplace(network, config, identities):
    return deploy_marketplace(network, config)


@pytest.fixture
def token(network, marketplace, identities):
    """A token with 10_000 units minted to alice and carol."""
    token = network.deploy(FungibleToken, marketplace.owner, name="US Dollar", symbol="USD")
    for name in ("alice", "carol"):
        token.connect(marketplace.owner).mint(identities[name], 10_000)
    return token


@pytest.fixture
def escrow(marketplace, identities):
    """An escrow created by alice."""
    alice = identities["alice"]
    address = marketplace.registry.connect(alice, value=CREATE_FEE).create_escrow("ipfs://engagement")
    return marketplace.escrow(address)


@pytest.fixture
def due_date(network):
    return network.current_time + ONE_DAY


@pytest.fixture
def fund(network, escrow, token, identities):
    """
    Return a helper that creates, agrees and deposits a milestone from
    alice to bob (by default) and returns its index.
    """
    def fund_milestone(amount=MILESTONE_AMOUNT, originator="alice", participant="bob", due=None):
        originator, participant = identities[originator], identities[participant]
        due = due if due is not None else network.current_time + ONE_DAY
        index = escrow.connect(originator).create_milestone(token.address, participant, amount, due, "design")
        escrow.connect(participant).agree_milestone(index)
        token.connect(originator).approve(escrow.address, amount)
        escrow.connect(originator).deposit_milestone(index)
        return index
    return fund_milestone


@pytest.fixture
def release(escrow, identities, fund):
    """Return a helper that funds and releases a milestone, returning its index."""
    def release_milestone(amount=MILESTONE_AMOUNT, originator="alice", participant="bob"):
        index = fund(amount, originator, participant)
        escrow.connect(identities[originator]).release_milestone(index)
        return index
    return release_milestone
