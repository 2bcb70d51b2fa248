"""
Milestone escrow marketplace.

An originator funds milestones in an escrow instance; a participant is paid
after agreement, deposit and release. Released payouts vest in a Locker for
a dispute window before the participant can claim them. A registry creates
the instances, holds the fee and lock policy, and indexes active escrows.

Subpackages:
- chain: hosting ledger (identities, clock, atomic calls, events)
- contracts: token, Locker, Escrow, EscrowRegistry and deployment
- framework: YAML scenario traces, assertions and the trace runner
"""

__version__ = "0.1.0"
