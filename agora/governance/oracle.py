"""
Voting Power Oracle

Boundary to the token ledger: eligible weight per participant and total
eligible supply, both as of an opaque snapshot reference.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Hashable

from ..tokens.snapshot_token import SnapshotToken


class VotingPowerOracle(ABC):
    """Read-only source of point-in-time voting weight."""

    @abstractmethod
    def current_reference(self) -> Hashable:
        """Snapshot reference to fix for a proposal created now."""

    @abstractmethod
    def power_at(self, participant: str, reference: Hashable) -> Decimal:
        """Eligible weight of *participant* at *reference*."""

    @abstractmethod
    def total_at(self, reference: Hashable) -> Decimal:
        """Total eligible supply at *reference*."""

    @abstractmethod
    def current_power(self, participant: str) -> Decimal:
        """Eligible weight of *participant* right now."""


class TokenVotingPower(VotingPowerOracle):
    """Oracle backed by a checkpointed `SnapshotToken` (1 token = 1 vote)."""

    def __init__(self, token: SnapshotToken):
        self.token = token

    def current_reference(self) -> int:
        return self.token.snapshot()

    def power_at(self, participant: str, reference: int) -> Decimal:
        return self.token.balance_of_at(participant, reference)

    def total_at(self, reference: int) -> Decimal:
        return self.token.total_supply_at(reference)

    def current_power(self, participant: str) -> Decimal:
        return self.token.balance_of(participant)

    def __repr__(self) -> str:
        return f"<TokenVotingPower {self.token.symbol}>"


def as_oracle(source) -> VotingPowerOracle:
    """Accept either an oracle or a bare `SnapshotToken`."""
    if isinstance(source, VotingPowerOracle):
        return source
    if isinstance(source, SnapshotToken):
        return TokenVotingPower(source)
    raise TypeError(f"Unsupported voting power source: {type(source).__name__}")
