"""
Contract base class and call plumbing.

A contract is a plain object registered on a Network under an address. All
calls go through ``Contract.connect(sender)``, which routes them via
``Network.call`` so that every call carries a caller identity, attached
value, and the atomic rollback of a top-level call.
"""

import copy
import functools
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from .errors import ReentrantCall
from .primitives import Event

if TYPE_CHECKING:
    from .network import Network


def view(method):
    """Mark a method as read-only: it runs without snapshot or block record."""
    method._is_view = True
    return method


def non_reentrant(method):
    """Reject a call that re-enters any guarded method of the same contract."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise ReentrantCall(f"{type(self).__name__}: reentrant call to {method.__name__}")
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False
    return wrapper


class Contract:
    """
    Base class for contracts hosted on a Network.

    Subclasses list the attributes that make up their persisted state in
    STATE_FIELDS; those are snapshotted before every top-level call and
    restored if the call fails.
    """

    STATE_FIELDS: Tuple[str, ...] = ()

    def __init__(self, network: 'Network', address: str, deployer: str):
        self.network = network
        self.address = address
        self.deployer = deployer
        self._entered = False

    # ─────────────────────────────────────────────────────────────────────────
    # Call context
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def msg_sender(self) -> Optional[str]:
        return self.network.msg_sender

    @property
    def msg_value(self) -> int:
        return self.network.msg_value

    @property
    def now(self) -> int:
        return self.network.current_time

    def emit(self, name: str, **args):
        """Emit an event; it is kept only if the top-level call succeeds."""
        self.network.emit(Event(name=name, address=self.address, args=args))

    def connect(self, sender: str, value: int = 0) -> 'BoundContract':
        """Return a proxy whose method calls are made by ``sender``."""
        return BoundContract(self, sender, value)

    def contract(self, address: str) -> 'BoundContract':
        """Handle on another contract, called with this contract as sender."""
        return self.network.contract_at(address).connect(self.address)

    # ─────────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self.STATE_FIELDS}

    def restore(self, snapshot: Dict[str, Any]):
        for name, value in snapshot.items():
            setattr(self, name, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"


class BoundContract:
    """A contract bound to a caller identity and an attached value."""

    def __init__(self, contract: Contract, sender: str, value: int = 0):
        self._contract = contract
        self._sender = sender
        self._value = value

    @property
    def address(self) -> str:
        return self._contract.address

    @property
    def target(self) -> Contract:
        return self._contract

    def __getattr__(self, name: str):
        attr = getattr(self._contract, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def call(*args, **kwargs):
            return self._contract.network.call(
                self._sender, self._contract, name, args, kwargs, value=self._value,
            )
        call.__name__ = name
        return call

    def __repr__(self) -> str:
        return f"<{self._contract!r} as {self._sender}>"
