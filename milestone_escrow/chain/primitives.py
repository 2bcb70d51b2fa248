"""
Core ledger primitives: hashing, addresses, Block, and Chain.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import List, Optional, Any
from enum import Enum


ZERO_ADDRESS = "0x" + "0" * 40


# =============================================================================
# Hashing and Addresses (simplified for simulation)
# =============================================================================

class _EnumEncoder(json.JSONEncoder):
    """JSON encoder that handles Enum values."""
    def default(self, obj):
        if isinstance(obj, Enum):
            return obj.name
        return super().default(obj)


def hash_data(data: Any) -> str:
    """Compute deterministic hash of JSON-serializable data."""
    canonical = json.dumps(data, sort_keys=True, separators=(',', ':'), cls=_EnumEncoder)
    return hashlib.sha256(canonical.encode()).hexdigest()[:16]


def derive_address(seed: str) -> str:
    """Derive a 20-byte hex address from a seed string."""
    return "0x" + hashlib.sha256(seed.encode()).hexdigest()[:40]


def is_empty_address(address: Optional[str]) -> bool:
    """True for None, the empty string and the zero address."""
    return not address or address == ZERO_ADDRESS


# =============================================================================
# Events
# =============================================================================

@dataclass
class Event:
    """A log record emitted by a contract during a call."""
    name: str
    address: str
    args: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "address": self.address,
            "args": self.args,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Event':
        return cls(name=data["name"], address=data["address"], args=dict(data["args"]))


# =============================================================================
# Block Structure
# =============================================================================

@dataclass
class Block:
    """
    One executed top-level call.

    The payload records who called what, and the events the call emitted.
    Failed calls never produce a block.
    """
    number: int
    previous_hash: str
    timestamp: int
    payload: dict
    block_hash: str = ""

    def __post_init__(self):
        if not self.block_hash:
            self.block_hash = self.compute_hash()

    def compute_hash(self) -> str:
        """Compute the hash of this block."""
        data = {
            "number": self.number,
            "previous_hash": self.previous_hash,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }
        return hash_data(data)

    @property
    def events(self) -> List[Event]:
        return [Event.from_dict(e) for e in self.payload.get("events", [])]

    def to_dict(self) -> dict:
        """Serialize block to dictionary."""
        return {
            "number": self.number,
            "previous_hash": self.previous_hash,
            "timestamp": self.timestamp,
            "payload": self.payload,
            "block_hash": self.block_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Block':
        """Deserialize block from dictionary."""
        return cls(
            number=data["number"],
            previous_hash=data["previous_hash"],
            timestamp=data["timestamp"],
            payload=data["payload"],
            block_hash=data["block_hash"],
        )


# =============================================================================
# Chain
# =============================================================================

class Chain:
    """
    Append-only, hash-linked log of executed calls.
    """

    GENESIS_HASH = "0" * 16

    def __init__(self, current_time: int):
        self.blocks: List[Block] = []
        self.blocks.append(Block(
            number=0,
            previous_hash=self.GENESIS_HASH,
            timestamp=current_time,
            payload={"genesis": True, "events": []},
        ))

    @property
    def head(self) -> Block:
        """Get the most recent block."""
        return self.blocks[-1]

    @property
    def head_hash(self) -> str:
        """Get the hash of the most recent block."""
        return self.head.block_hash

    def __len__(self) -> int:
        return len(self.blocks)

    def append(self, payload: dict, timestamp: int) -> Block:
        """Append a new block to the chain."""
        block = Block(
            number=len(self.blocks),
            previous_hash=self.head_hash,
            timestamp=timestamp,
            payload=payload,
        )
        self.blocks.append(block)
        return block

    def events(self, name: Optional[str] = None, address: Optional[str] = None) -> List[Event]:
        """All events in chain order, optionally filtered by name and emitter."""
        out = []
        for block in self.blocks:
            for event in block.events:
                if name is not None and event.name != name:
                    continue
                if address is not None and event.address != address:
                    continue
                out.append(event)
        return out

    def verify_chain(self) -> bool:
        """Verify the chain's integrity."""
        if not self.blocks:
            return False

        if self.blocks[0].previous_hash != self.GENESIS_HASH:
            return False

        for i, block in enumerate(self.blocks):
            if block.number != i:
                return False
            if block.block_hash != block.compute_hash():
                return False
            if i > 0 and block.previous_hash != self.blocks[i - 1].block_hash:
                return False

        return True
