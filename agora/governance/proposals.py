"""
Governance Proposals

Defines the voter / proposal states, the Proposal record holding a vote's
tally and fixed parameters, and the append-only ProposalStore that indexes
proposals by a dense, never-reused id.
"""

import copy
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, Hashable, Iterator, List, Optional, Set, Union

from eth_utils import encode_hex

from ..constants import VOTER_STATE_ABSENT, VOTER_STATE_NAY, VOTER_STATE_YEA
from ..exceptions import ProposalNotFoundError
from ..logger import get_logger

logger = get_logger(__name__)

Stake = Union[Decimal, int]


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class VoterState(IntEnum):
    """Per-proposal state of a participant."""
    ABSENT = VOTER_STATE_ABSENT
    YEA = VOTER_STATE_YEA
    NAY = VOTER_STATE_NAY

    @classmethod
    def of(cls, supports: bool) -> "VoterState":
        return cls.YEA if supports else cls.NAY


class ProposalStatus(IntEnum):
    """Lifecycle stage, derived from time and the executed flag."""
    OPEN = 0        # Within [start_time, end_time)
    CLOSED = 1      # Voting window elapsed, not executed
    EXECUTED = 2    # Terminal


# ══════════════════════════════════════════════════════════════════════
#  VOTER RECORD
# ══════════════════════════════════════════════════════════════════════

@dataclass
class VoterRecord:
    """
    What a participant currently has counted on one proposal.

    stake:     weight (delegate voting) or units (quadratic voting)
    absorbed:  delegators whose snapshot weight is included in stake
    paid_term: start of the term in which the quadratic cost was paid
    """
    state: VoterState = VoterState.ABSENT
    stake: Stake = 0
    absorbed: Set[str] = field(default_factory=set)
    paid_term: Optional[float] = None

    @property
    def has_voted(self) -> bool:
        return self.state != VoterState.ABSENT


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

_IMMUTABLE_FIELDS = frozenset({
    "id",
    "creator",
    "start_time",
    "end_time",
    "snapshot_block",
    "support_required",
    "min_accept_quorum",
    "voting_power",
    "script",
})

# Vote state a failed operation restores
_TALLY_FIELDS = ("yea", "nay", "executed", "_voters", "_counted_by")


@dataclass
class Proposal:
    """
    A single vote.

    Fields fixed at creation (id, creator, timing window, snapshot, support
    and quorum thresholds, voting power, script) cannot be reassigned.
    `script` holds the literal action script in delegate voting and its
    keccak256 commitment in quadratic voting.
    """
    id: int
    creator: str
    start_time: float
    end_time: float
    snapshot_block: Hashable
    support_required: Stake
    script: bytes
    metadata: str = ""
    min_accept_quorum: Optional[Decimal] = None
    voting_power: Decimal = Decimal("0")
    yea: Stake = 0
    nay: Stake = 0
    executed: bool = False
    executing: bool = field(default=False, repr=False)
    _voters: Dict[str, VoterRecord] = field(default_factory=dict, repr=False)
    _counted_by: Dict[str, str] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "_sealed", True)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_FIELDS and self.__dict__.get("_sealed"):
            raise AttributeError(f"Vote #{self.id}: '{name}' is fixed at creation")
        object.__setattr__(self, name, value)

    # ── Lifecycle ─────────────────────────────────────────────────────

    def is_open(self, now: float) -> bool:
        return not self.executed and self.start_time <= now < self.end_time

    def status(self, now: float) -> ProposalStatus:
        if self.executed:
            return ProposalStatus.EXECUTED
        if now < self.end_time:
            return ProposalStatus.OPEN
        return ProposalStatus.CLOSED

    # ── Voter records ─────────────────────────────────────────────────

    def get_record(self, voter: str) -> Optional[VoterRecord]:
        return self._voters.get(voter)

    def record(self, voter: str) -> VoterRecord:
        """Voter record for *voter*, created on first access."""
        rec = self._voters.get(voter)
        if rec is None:
            rec = self._voters[voter] = VoterRecord()
        return rec

    def voter_state(self, voter: str) -> VoterState:
        rec = self._voters.get(voter)
        return rec.state if rec else VoterState.ABSENT

    def has_voted(self, voter: str) -> bool:
        return self.voter_state(voter) != VoterState.ABSENT

    @property
    def voters(self) -> List[str]:
        return [v for v, r in self._voters.items() if r.has_voted]

    # ── Delegated weight accounting ───────────────────────────────────

    def counted_by(self, delegator: str) -> Optional[str]:
        """Delegate whose vote currently includes *delegator*'s weight."""
        return self._counted_by.get(delegator)

    def absorb(self, delegate: str, delegator: str) -> None:
        self._counted_by[delegator] = delegate
        self.record(delegate).absorbed.add(delegator)

    def release(self, delegator: str) -> Optional[str]:
        delegate = self._counted_by.pop(delegator, None)
        if delegate is not None:
            self.record(delegate).absorbed.discard(delegator)
        return delegate

    # ── Tally counters ────────────────────────────────────────────────

    def add_stake(self, state: VoterState, amount: Stake) -> None:
        if state == VoterState.YEA:
            self.yea += amount
        elif state == VoterState.NAY:
            self.nay += amount

    def remove_stake(self, state: VoterState, amount: Stake) -> None:
        if state == VoterState.YEA:
            self.yea -= amount
        elif state == VoterState.NAY:
            self.nay -= amount

    def checkpoint(self) -> Dict[str, Any]:
        """Copy of the mutable vote state, for `rollback`."""
        return {name: copy.deepcopy(getattr(self, name)) for name in _TALLY_FIELDS}

    def rollback(self, saved: Dict[str, Any]) -> None:
        for name, value in saved.items():
            setattr(self, name, value)

    # ── Views ─────────────────────────────────────────────────────────

    def info(self, now: float) -> "VoteInfo":
        return VoteInfo(
            open=self.is_open(now),
            executed=self.executed,
            start_date=self.start_time,
            snapshot_block=self.snapshot_block,
            support_required=self.support_required,
            min_accept_quorum=self.min_accept_quorum,
            yea=self.yea,
            nay=self.nay,
            voting_power=self.voting_power,
            script=self.script,
            metadata=self.metadata,
            creator=self.creator,
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} yea={self.yea} nay={self.nay} "
            f"executed={self.executed}>"
        )


@dataclass(frozen=True)
class VoteInfo:
    """Read-only view of a proposal's public fields."""
    open: bool
    executed: bool
    start_date: float
    snapshot_block: Hashable
    support_required: Stake
    min_accept_quorum: Optional[Decimal]
    yea: Stake
    nay: Stake
    voting_power: Decimal
    script: bytes
    metadata: str
    creator: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "open": self.open,
            "executed": self.executed,
            "startDate": self.start_date,
            "snapshotBlock": self.snapshot_block,
            "supportRequired": str(self.support_required),
            "minAcceptQuorum": (
                str(self.min_accept_quorum) if self.min_accept_quorum is not None else None
            ),
            "yea": str(self.yea),
            "nay": str(self.nay),
            "votingPower": str(self.voting_power),
            "script": encode_hex(self.script),
            "metadata": self.metadata,
            "creator": self.creator,
        }


# ══════════════════════════════════════════════════════════════════════
#  STORE
# ══════════════════════════════════════════════════════════════════════

class ProposalStore:
    """Append-only arena of proposals indexed 0, 1, 2, …"""

    def __init__(self):
        self._proposals: List[Proposal] = []

    @property
    def next_id(self) -> int:
        return len(self._proposals)

    def add(self, **fields: Any) -> Proposal:
        proposal = Proposal(id=self.next_id, **fields)
        self._proposals.append(proposal)
        return proposal

    def get(self, vote_id: int) -> Proposal:
        if isinstance(vote_id, bool) or not isinstance(vote_id, int):
            raise ProposalNotFoundError(f"Invalid vote id {vote_id!r}")
        if not 0 <= vote_id < len(self._proposals):
            raise ProposalNotFoundError(
                f"Vote #{vote_id} does not exist (votes: {len(self._proposals)})"
            )
        return self._proposals[vote_id]

    def truncate(self, length: int) -> None:
        """Drop proposals from index *length* on (undoing a failed creation)."""
        del self._proposals[length:]

    def __len__(self) -> int:
        return len(self._proposals)

    def __iter__(self) -> Iterator[Proposal]:
        return iter(self._proposals)
