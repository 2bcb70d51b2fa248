"""
Tests for the fungible token stand-in and the safe transfer helpers.
"""

import pytest

from milestone_escrow.chain import (
    ZERO_ADDRESS,
    Contract,
    Network,
    InvalidArgument,
    TransferFailed,
    Unauthorized,
)
from milestone_escrow.contracts import FungibleToken, safe_transfer, safe_transfer_from


class Spender(Contract):
    """Contract that moves tokens through the safe helpers."""

    def pay(self, token, to, amount):
        safe_transfer(self, token, to, amount)

    def pull(self, token, holder, to, amount):
        safe_transfer_from(self, token, holder, to, amount)


class SilentToken(FungibleToken):
    """Token that reports failure by returning False instead of raising."""

    def transfer(self, to, amount):
        return False

    def transfer_from(self, holder, to, amount):
        return False


@pytest.fixture
def network():
    return Network()


@pytest.fixture
def owner(network):
    return network.create_identity("owner")


@pytest.fixture
def alice(network):
    return network.create_identity("alice")


@pytest.fixture
def bob(network):
    return network.create_identity("bob")


@pytest.fixture
def token(network, owner, alice):
    token = network.deploy(FungibleToken, owner, name="US Dollar", symbol="USD")
    token.connect(owner).mint(alice, 1000)
    return token


@pytest.fixture
def spender(network, owner):
    return network.deploy(Spender, owner)


class TestMint:

    def test_initial_supply(self, network, owner):
        token = network.deploy(FungibleToken, owner, initial_supply=50)
        assert token.balance_of(owner) == 50
        assert token.total_supply == 50
        assert network.last_events()[0].args == {"sender": ZERO_ADDRESS, "recipient": owner, "amount": 50}

    def test_mint_owner_only(self, token, alice):
        with pytest.raises(Unauthorized):
            token.connect(alice).mint(alice, 1)
        assert token.total_supply == 1000

    def test_mint_to_zero_address(self, token, owner):
        with pytest.raises(InvalidArgument):
            token.connect(owner).mint(ZERO_ADDRESS, 1)


class TestTransfer:

    def test_transfer(self, network, token, alice, bob):
        assert token.connect(alice).transfer(bob, 300) is True
        assert token.balance_of(alice) == 700
        assert token.balance_of(bob) == 300
        event = network.last_events()[0]
        assert event.name == "Transfer"
        assert event.args == {"sender": alice, "recipient": bob, "amount": 300}

    def test_transfer_exceeding_balance(self, token, alice, bob):
        with pytest.raises(TransferFailed):
            token.connect(alice).transfer(bob, 1001)
        assert token.balance_of(alice) == 1000
        assert token.balance_of(bob) == 0

    def test_transfer_to_zero_address(self, token, alice):
        with pytest.raises(TransferFailed):
            token.connect(alice).transfer(ZERO_ADDRESS, 1)


class TestAllowance:

    def test_approve(self, network, token, alice, bob):
        token.connect(alice).approve(bob, 200)
        assert token.allowance(alice, bob) == 200
        assert network.last_events()[0].name == "Approval"

    def test_transfer_from_consumes_allowance(self, token, alice, bob):
        token.connect(alice).approve(bob, 200)
        token.connect(bob).transfer_from(alice, bob, 150)
        assert token.balance_of(bob) == 150
        assert token.allowance(alice, bob) == 50

    def test_transfer_from_without_allowance(self, token, alice, bob):
        with pytest.raises(TransferFailed):
            token.connect(bob).transfer_from(alice, bob, 1)

    def test_transfer_from_exceeding_balance(self, token, alice, bob):
        token.connect(alice).approve(bob, 5000)
        with pytest.raises(TransferFailed):
            token.connect(bob).transfer_from(alice, bob, 1001)
        assert token.allowance(alice, bob) == 5000


class TestSafeTransfer:

    def test_safe_transfer(self, token, owner, alice, bob, spender):
        token.connect(alice).transfer(spender.address, 100)
        spender.connect(owner).pay(token.address, bob, 60)
        assert token.balance_of(bob) == 60
        assert token.balance_of(spender.address) == 40

    def test_safe_transfer_insufficient(self, token, owner, bob, spender):
        with pytest.raises(TransferFailed):
            spender.connect(owner).pay(token.address, bob, 1)

    def test_safe_transfer_from(self, token, owner, alice, bob, spender):
        token.connect(alice).approve(spender.address, 100)
        spender.connect(owner).pull(token.address, alice, bob, 100)
        assert token.balance_of(bob) == 100

    def test_false_return_is_failure(self, network, owner, alice, bob, spender):
        silent = network.deploy(SilentToken, owner)
        with pytest.raises(TransferFailed):
            spender.connect(owner).pay(silent.address, bob, 1)
        with pytest.raises(TransferFailed):
            spender.connect(owner).pull(silent.address, alice, bob, 1)

    def test_missing_token_is_failure(self, owner, bob, spender):
        with pytest.raises(TransferFailed):
            spender.connect(owner).pay("0x" + "ab" * 20, bob, 1)
