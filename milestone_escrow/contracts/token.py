"""
Fungible token stand-in and safe transfer helpers.

The token keeps balances and allowances and fails loudly: an insufficient
balance or allowance raises TransferFailed. The helpers used by the escrow
contracts also treat a False return as a failure, so a token that reports
failure instead of raising is handled the same way.
"""

from typing import Dict, Tuple

from ..chain import (
    Contract, view,
    ContractError, TransferFailed, InvalidArgument, Unauthorized,
    ZERO_ADDRESS, is_empty_address,
)


class FungibleToken(Contract):
    """Balance, allowance and transfer bookkeeping for one asset."""

    STATE_FIELDS = ("balances", "allowances", "total_supply")

    def __init__(self, network, address, deployer, name: str = "Test Token",
                 symbol: str = "TST", initial_supply: int = 0):
        super().__init__(network, address, deployer)
        self.name = name
        self.symbol = symbol
        self.owner = deployer
        self.total_supply = 0
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        if initial_supply:
            self._mint(deployer, initial_supply)

    # ─────────────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────────────

    @view
    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    @view
    def allowance(self, holder: str, spender: str) -> int:
        return self.allowances.get((holder, spender), 0)

    # ─────────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────────

    def mint(self, to: str, amount: int) -> bool:
        if self.msg_sender != self.owner:
            raise Unauthorized("Token: caller is not the owner")
        self._mint(to, amount)
        return True

    def approve(self, spender: str, amount: int) -> bool:
        if is_empty_address(spender):
            raise InvalidArgument("Token: approve to the zero address")
        self.allowances[(self.msg_sender, spender)] = amount
        self.emit("Approval", owner=self.msg_sender, spender=spender, amount=amount)
        return True

    def transfer(self, to: str, amount: int) -> bool:
        self._move(self.msg_sender, to, amount)
        return True

    def transfer_from(self, holder: str, to: str, amount: int) -> bool:
        spender = self.msg_sender
        allowed = self.allowances.get((holder, spender), 0)
        if allowed < amount:
            raise TransferFailed(f"Token: insufficient allowance ({allowed} < {amount})")
        self._move(holder, to, amount)
        self.allowances[(holder, spender)] = allowed - amount
        return True

    def _mint(self, to: str, amount: int):
        if is_empty_address(to):
            raise InvalidArgument("Token: mint to the zero address")
        if amount < 0:
            raise InvalidArgument("Token: negative mint amount")
        self.balances[to] = self.balances.get(to, 0) + amount
        self.total_supply += amount
        self.emit("Transfer", sender=ZERO_ADDRESS, recipient=to, amount=amount)

    def _move(self, sender: str, to: str, amount: int):
        if is_empty_address(to):
            raise TransferFailed("Token: transfer to the zero address")
        if amount < 0:
            raise TransferFailed("Token: negative transfer amount")
        balance = self.balances.get(sender, 0)
        if balance < amount:
            raise TransferFailed(f"Token: transfer amount exceeds balance ({balance} < {amount})")
        self.balances[sender] = balance - amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self.emit("Transfer", sender=sender, recipient=to, amount=amount)


# =============================================================================
# Safe transfer helpers
# =============================================================================

def safe_transfer(caller: Contract, token: str, to: str, amount: int):
    """token.transfer made by ``caller``, every failure surfaced as TransferFailed."""
    try:
        ok = caller.contract(token).transfer(to, amount)
    except TransferFailed:
        raise
    except ContractError as e:
        raise TransferFailed(f"transfer of {amount} to {to} failed: {e}") from e
    if ok is False:
        raise TransferFailed(f"transfer of {amount} to {to} returned false")


def safe_transfer_from(caller: Contract, token: str, holder: str, to: str, amount: int):
    """token.transfer_from made by ``caller``, every failure surfaced as TransferFailed."""
    try:
        ok = caller.contract(token).transfer_from(holder, to, amount)
    except TransferFailed:
        raise
    except ContractError as e:
        raise TransferFailed(f"transfer of {amount} from {holder} failed: {e}") from e
    if ok is False:
        raise TransferFailed(f"transfer of {amount} from {holder} returned false")
