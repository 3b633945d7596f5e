"""
Governance Events

Immutable records emitted by the voting apps, in the order operations
complete. Rolled-back operations emit nothing.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class StartVoteEvent:
    """A vote was created."""
    vote_id: int
    creator: str
    metadata: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "StartVote",
            "voteId": self.vote_id,
            "creator": self.creator,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CastVoteEvent:
    """A voter cast (or changed) a vote. *stake* is weight or units."""
    vote_id: int
    voter: str
    supports: bool
    stake: Union[Decimal, int]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "CastVote",
            "voteId": self.vote_id,
            "voter": self.voter,
            "supports": self.supports,
            "stake": str(self.stake),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RemoveVoteEvent:
    """A quadratic voter withdrew their units."""
    vote_id: int
    voter: str
    refunded: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RemoveVote",
            "voteId": self.vote_id,
            "voter": self.voter,
            "refunded": self.refunded,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ExecuteVoteEvent:
    """A vote's script ran to completion."""
    vote_id: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ExecuteVote",
            "voteId": self.vote_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class DelegateVoteEvent:
    """A delegation edge was created or replaced."""
    delegator: str
    delegate: str
    amount: Decimal
    previous: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "DelegateVote",
            "delegator": self.delegator,
            "delegate": self.delegate,
            "amount": str(self.amount),
            "previous": self.previous,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class UndelegateVoteEvent:
    """A delegation edge was removed."""
    delegator: str
    delegate: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "UndelegateVote",
            "delegator": self.delegator,
            "delegate": self.delegate,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChangeSupportRequiredEvent:
    support_required: Union[Decimal, int]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ChangeSupportRequired",
            "supportRequired": str(self.support_required),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChangeMinQuorumEvent:
    min_accept_quorum: Decimal
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ChangeMinQuorum",
            "minAcceptQuorum": str(self.min_accept_quorum),
            "timestamp": self.timestamp,
        }
