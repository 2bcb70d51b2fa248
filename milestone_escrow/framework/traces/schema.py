"""
Trace schema definitions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class ValidationError(ValueError):
    """Raised when a trace is malformed."""
    pass


@dataclass
class TraceAction:
    """A single call in a trace."""
    time: int                              # seconds after setup.start_time
    actor: str                             # identity name making the call
    target: str                            # registry | locker | token:<name> | escrow:<n>
    method: str
    params: Any = field(default_factory=list)   # positional list or keyword dict
    value: int = 0
    expect_error: Optional[str] = None     # error class name, if the call must fail


@dataclass
class TraceIdentitySpec:
    """Initial native balance of an identity."""
    balance: int = 0


@dataclass
class TraceTokenSpec:
    """A token deployed by the marketplace deployer, with initial mints."""
    name: str
    symbol: str
    mint: Dict[str, int] = field(default_factory=dict)


@dataclass
class TraceSetup:
    """Initial setup for a trace."""
    start_time: int
    marketplace: Dict[str, Any] = field(default_factory=dict)
    identities: Dict[str, TraceIdentitySpec] = field(default_factory=dict)
    tokens: Dict[str, TraceTokenSpec] = field(default_factory=dict)


@dataclass
class TraceAssertion:
    """An assertion to check at the end of a trace."""
    type: str
    description: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Trace:
    """A recorded sequence of marketplace calls for replay."""
    name: str
    description: str
    setup: TraceSetup
    actions: List[TraceAction]
    assertions: List[TraceAssertion]
