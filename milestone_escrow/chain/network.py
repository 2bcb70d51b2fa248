"""
Network simulation hosting the escrow contracts.

Manages identities, native balances, the clock, deployed contracts and the
execution of calls.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .contract import Contract
from .errors import InvalidArgument, TransferFailed
from .primitives import Chain, Block, Event, derive_address

logger = logging.getLogger(__name__)


@dataclass
class CallFrame:
    """Caller context of one (possibly nested) call."""
    sender: str
    target: str
    method: str
    value: int = 0


class Network:
    """
    Simulates the hosting ledger.

    Manages:
    - Identity addresses and native balances
    - A monotonically non-decreasing clock
    - Contract registry (deploy, clone, lookup)
    - Call execution with caller identity and atomic rollback
    - The chain of executed calls and their events
    """

    GENESIS_TIME = 1_700_000_000

    def __init__(self, start_time: int = GENESIS_TIME):
        self.current_time: int = start_time
        self.chain = Chain(start_time)

        self.identities: Dict[str, str] = {}
        self.balances: Dict[str, int] = {}
        self.contracts: Dict[str, Contract] = {}

        self._nonce = 0
        self._frames: List[CallFrame] = []
        self._pending_events: List[Event] = []

    # ─────────────────────────────────────────────────────────────────────────
    # Identities and native value
    # ─────────────────────────────────────────────────────────────────────────

    def create_identity(self, name: str, balance: int = 0) -> str:
        """Create a new identity, returning its address."""
        if name in self.identities:
            raise ValueError(f"Identity already exists: {name}")
        address = derive_address(f"identity:{name}")
        self.identities[name] = address
        self.balances[address] = balance
        return address

    def address_of(self, name: str) -> str:
        """Address of a named identity."""
        if name not in self.identities:
            raise KeyError(f"Unknown identity: {name}")
        return self.identities[name]

    def name_of(self, address: str) -> Optional[str]:
        for name, addr in self.identities.items():
            if addr == address:
                return name
        return None

    def balance_of(self, address: str) -> int:
        """Native balance of an identity or contract."""
        return self.balances.get(address, 0)

    def send_value(self, sender: str, recipient: str, amount: int):
        """Move native value; raises TransferFailed on insufficient balance."""
        if amount < 0:
            raise TransferFailed(f"negative value transfer: {amount}")
        if self.balances.get(sender, 0) < amount:
            raise TransferFailed(
                f"insufficient native balance: {sender} has {self.balances.get(sender, 0)}, needs {amount}"
            )
        self.balances[sender] = self.balances.get(sender, 0) - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

    # ─────────────────────────────────────────────────────────────────────────
    # Clock
    # ─────────────────────────────────────────────────────────────────────────

    def advance_time(self, seconds: int):
        """Advance simulation time."""
        if seconds < 0:
            raise ValueError(f"Cannot go backwards in time: {seconds}")
        self.current_time += seconds

    def set_time(self, timestamp: int):
        """Jump to an absolute timestamp, never backwards."""
        if timestamp < self.current_time:
            raise ValueError(f"Cannot go backwards in time: {timestamp} < {self.current_time}")
        self.current_time = timestamp

    # ─────────────────────────────────────────────────────────────────────────
    # Contracts
    # ─────────────────────────────────────────────────────────────────────────

    def _next_address(self, deployer: str) -> str:
        self._nonce += 1
        return derive_address(f"contract:{deployer}:{self._nonce}")

    def deploy(self, contract_cls: Type[Contract], deployer: str, *args, **kwargs) -> Contract:
        """Deploy a new contract as a top-level call from ``deployer``."""
        def construct():
            contract = contract_cls(self, self._next_address(deployer), deployer, *args, **kwargs)
            self.contracts[contract.address] = contract
            return contract

        return self._execute(
            CallFrame(sender=deployer, target="", method=f"deploy:{contract_cls.__name__}"),
            construct,
            record_args=list(args),
        )

    def clone(self, template_address: str, deployer: str) -> Contract:
        """
        Create a fresh, uninitialized instance of the template's class.

        Must be called from inside a running call; the new contract is
        discarded if that call is rolled back.
        """
        template = self.contract_at(template_address)
        contract = type(template)(self, self._next_address(deployer), deployer)
        self.contracts[contract.address] = contract
        logger.debug("Cloned %s from template %s", contract.address, template_address)
        return contract

    def contract_at(self, address: str) -> Contract:
        if address not in self.contracts:
            raise InvalidArgument(f"no contract at {address}")
        return self.contracts[address]

    # ─────────────────────────────────────────────────────────────────────────
    # Call execution
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def msg_sender(self) -> Optional[str]:
        return self._frames[-1].sender if self._frames else None

    @property
    def msg_value(self) -> int:
        return self._frames[-1].value if self._frames else 0

    def emit(self, event: Event):
        if not self._frames:
            raise RuntimeError("Events can only be emitted inside a call")
        self._pending_events.append(event)

    def call(
        self,
        sender: str,
        contract: Contract,
        method: str,
        args: Tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        value: int = 0,
    ) -> Any:
        """
        Call ``contract.method`` as ``sender``.

        View methods run directly in a frame. Everything else runs through
        _execute, which makes a top-level call atomic.
        """
        kwargs = kwargs or {}
        fn = getattr(contract, method)
        frame = CallFrame(sender=sender, target=contract.address, method=method, value=value)

        if getattr(fn, "_is_view", False):
            self._frames.append(frame)
            try:
                return fn(*args, **kwargs)
            finally:
                self._frames.pop()

        def invoke():
            if value:
                self.send_value(sender, contract.address, value)
            return fn(*args, **kwargs)

        return self._execute(frame, invoke, record_args=list(args))

    def _execute(self, frame: CallFrame, fn: Callable[[], Any], record_args: List[Any]) -> Any:
        top_level = not self._frames
        if top_level:
            saved = self._snapshot()
            self._pending_events = []

        self._frames.append(frame)
        try:
            result = fn()
        except Exception as e:
            if top_level:
                self._restore(saved)
                self._pending_events = []
                logger.warning(
                    "Call %s on %s from %s reverted: %s: %s",
                    frame.method, frame.target, frame.sender, type(e).__name__, e,
                )
            raise
        finally:
            self._frames.pop()

        if top_level:
            self._record(frame, record_args)
        return result

    def _record(self, frame: CallFrame, args: List[Any]) -> Block:
        payload = {
            "sender": frame.sender,
            "target": frame.target,
            "method": frame.method,
            "args": args,
            "value": frame.value,
            "events": [e.to_dict() for e in self._pending_events],
        }
        self._pending_events = []
        return self.chain.append(payload, self.current_time)

    def _snapshot(self) -> dict:
        return {
            "balances": dict(self.balances),
            "nonce": self._nonce,
            "contracts": dict(self.contracts),
            "states": {addr: c.snapshot() for addr, c in self.contracts.items()},
        }

    def _restore(self, saved: dict):
        self.balances = saved["balances"]
        self._nonce = saved["nonce"]
        self.contracts = saved["contracts"]
        for addr, state in saved["states"].items():
            self.contracts[addr].restore(state)

    # ─────────────────────────────────────────────────────────────────────────
    # Event queries
    # ─────────────────────────────────────────────────────────────────────────

    def events(self, name: Optional[str] = None, address: Optional[str] = None) -> List[Event]:
        """All committed events, optionally filtered."""
        return self.chain.events(name=name, address=address)

    def last_events(self) -> List[Event]:
        """Events emitted by the most recent successful call."""
        return self.chain.head.events
