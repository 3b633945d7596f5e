"""
Governance Voting Apps

Implements:
  - GovernanceApp: one-time initialization (with petrified templates),
    authorization checks, proposal queries, event log, and atomic rollback
    of multi-step operations
  - DelegateVoting: token-weighted linear voting with single-hop delegation
    and per-proposal override (a delegator voting directly reclaims its
    weight from the delegate on that proposal)
  - QuadraticVoting: n units cost n² points from a per-term balance;
    proposals commit to the keccak256 of their script and execute once
    closed
"""

import time
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple, Union

from ..constants import (
    CREATE_VOTES_ROLE,
    MODIFY_QUORUM_ROLE,
    MODIFY_SUPPORT_ROLE,
    PCT_BASE,
)
from ..exceptions import (
    AlreadyInitializedError,
    GovernanceError,
    InvalidParameterError,
    NoVotingPowerError,
    NotAVoterError,
    PetrifiedError,
    ProposalAlreadyExecutedError,
    ProposalNotOpenError,
    ScriptMismatchError,
    ThresholdsNotMetError,
    UnauthorizedError,
    UninitializedError,
    ZeroEligibleSupplyError,
)
from ..logger import get_logger
from .acl import ACL, AuthorizationGate
from .delegation import DelegationRegistry
from .events import (
    CastVoteEvent,
    ChangeMinQuorumEvent,
    ChangeSupportRequiredEvent,
    DelegateVoteEvent,
    ExecuteVoteEvent,
    RemoveVoteEvent,
    StartVoteEvent,
    UndelegateVoteEvent,
)
from .execution import ExecutionSurface, ScriptExecutor
from .oracle import VotingPowerOracle, as_oracle
from .proposals import Proposal, ProposalStore, VoteInfo, VoterState
from .quadratic import BalanceBook, reprice
from .scripts import ScriptLike, as_bytes, script_hash
from .tally import linear_can_execute, quadratic_can_execute

logger = get_logger(__name__)

Pct = Union[Decimal, str, int, float]


def _to_pct(value: Pct, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except ArithmeticError as exc:
        raise InvalidParameterError(f"{name} is not a number: {value!r}") from exc


def _reject(exc: GovernanceError) -> GovernanceError:
    logger.warning(f"Rejected ({type(exc).__name__}): {exc}")
    return exc


# ══════════════════════════════════════════════════════════════════════
#  BASE APP
# ══════════════════════════════════════════════════════════════════════

class GovernanceApp:
    """
    State and plumbing shared by both voting modes.

    Every mutating operation takes the caller as ``sender=``. Time is read
    from *clock* (``time.time`` by default). `_atomic()` undoes a failed
    block: new proposals and events are dropped and the touched proposal
    gets its vote state back.
    """

    def __init__(
        self,
        acl: Optional[AuthorizationGate] = None,
        surface: Optional[ExecutionSurface] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.acl = acl if acl is not None else ACL()
        self.executor = ScriptExecutor(surface)
        self.clock = clock

        self.oracle: Optional[VotingPowerOracle] = None
        self.vote_time: float = 0
        self._initialized = False
        self._petrified = False
        self._proposals = ProposalStore()
        self._events: List[Any] = []

    @classmethod
    def template(cls, **kwargs) -> "GovernanceApp":
        """Base instance used only as a cloning source; never initializable."""
        app = cls(**kwargs)
        app._petrified = True
        return app

    # ── Lifecycle ─────────────────────────────────────────────────────

    @property
    def surface(self) -> ExecutionSurface:
        return self.executor.surface

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def petrified(self) -> bool:
        return self._petrified

    def _check_initializable(self, vote_time: float) -> None:
        if self._petrified:
            raise _reject(PetrifiedError(f"{type(self).__name__} template cannot be initialized"))
        if self._initialized:
            raise _reject(AlreadyInitializedError(f"{type(self).__name__} already initialized"))
        if vote_time <= 0:
            raise _reject(InvalidParameterError(f"vote_time must be > 0, got {vote_time}"))

    def _resolve_oracle(self, token) -> VotingPowerOracle:
        try:
            return as_oracle(token)
        except TypeError as exc:
            raise _reject(InvalidParameterError(str(exc))) from exc

    def _complete_initialization(self, oracle: VotingPowerOracle, vote_time: float) -> None:
        self.oracle = oracle
        self.vote_time = vote_time
        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise _reject(UninitializedError(f"{type(self).__name__} is not initialized"))

    def _require_auth(self, sender: str, role: str) -> None:
        if not self.acl.is_authorized(sender, role):
            raise _reject(UnauthorizedError(f"{sender} lacks role {role[:10]}…"))

    def _now(self) -> float:
        return self.clock()

    def _emit(self, event) -> None:
        self._events.append(event)

    @contextmanager
    def _atomic(self, proposal: Optional[Proposal] = None) -> Iterator[None]:
        proposals, events = len(self._proposals), len(self._events)
        saved = proposal.checkpoint() if proposal is not None else None
        try:
            yield
        except Exception:
            self._proposals.truncate(proposals)
            del self._events[events:]
            if saved is not None:
                proposal.rollback(saved)
            raise

    # ── Proposal creation ─────────────────────────────────────────────

    def _open_proposal(self, sender: str, script: bytes, metadata: str, **thresholds) -> Proposal:
        snapshot = self.oracle.current_reference()
        voting_power = self.oracle.total_at(snapshot)
        if voting_power <= 0:
            raise _reject(ZeroEligibleSupplyError(
                f"No eligible voting power at snapshot {snapshot}"
            ))
        now = self._now()
        proposal = self._proposals.add(
            creator=sender,
            start_time=now,
            end_time=now + self.vote_time,
            snapshot_block=snapshot,
            script=script,
            metadata=metadata,
            voting_power=voting_power,
            **thresholds,
        )
        self._emit(StartVoteEvent(proposal.id, sender, metadata, timestamp=now))
        logger.info(
            f"Vote #{proposal.id} created by {sender} "
            f"(snapshot {snapshot}, power {voting_power})"
        )
        return proposal

    def _open_for_voting(self, vote_id: int) -> Proposal:
        proposal = self._proposals.get(vote_id)
        if proposal.executed or proposal.executing:
            raise _reject(ProposalAlreadyExecutedError(f"Vote #{vote_id} already executed"))
        if not proposal.is_open(self._now()):
            raise _reject(ProposalNotOpenError(f"Vote #{vote_id} is closed"))
        return proposal

    def _run_script(self, proposal: Proposal, script: ScriptLike) -> None:
        self.executor.execute(proposal, script)
        self._emit(ExecuteVoteEvent(proposal.id, timestamp=self._now()))

    # ── Queries ───────────────────────────────────────────────────────

    def get_vote(self, vote_id: int) -> VoteInfo:
        return self._proposals.get(vote_id).info(self._now())

    def get_voter_state(self, vote_id: int, voter: str) -> VoterState:
        return self._proposals.get(vote_id).voter_state(voter)

    def votes_length(self) -> int:
        return len(self._proposals)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def is_forwarder(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        now = self._now()
        return {
            "app": type(self).__name__,
            "initialized": self._initialized,
            "voteTime": self.vote_time,
            "votes": [p.info(now).to_dict() for p in self._proposals],
        }

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} initialized={self._initialized} "
            f"votes={len(self._proposals)}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  DELEGATE (LINEAR) VOTING
# ══════════════════════════════════════════════════════════════════════

class DelegateVoting(GovernanceApp):
    """
    Linear voting: 1 token at the snapshot = 1 vote.

    A delegate votes with its own snapshot balance plus the snapshot
    balances of its direct delegators that have not voted themselves on
    that proposal. Delegation is not transitive.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.support_required_pct = Decimal(0)
        self.min_accept_quorum_pct = Decimal(0)
        self._registry = DelegationRegistry()

    def initialize(
        self,
        token,
        support_required_pct: Pct,
        min_accept_quorum_pct: Pct,
        vote_time: float,
    ) -> None:
        self._check_initializable(vote_time)
        oracle = self._resolve_oracle(token)
        support = _to_pct(support_required_pct, "support_required_pct")
        quorum = _to_pct(min_accept_quorum_pct, "min_accept_quorum_pct")
        if not (0 <= quorum <= support < PCT_BASE):
            raise _reject(InvalidParameterError(
                f"Thresholds must satisfy 0 <= quorum ({quorum}) <= support ({support}) < 1"
            ))
        self.support_required_pct = support
        self.min_accept_quorum_pct = quorum
        self._complete_initialization(oracle, vote_time)
        logger.info(
            f"DelegateVoting initialized: support {support}, quorum {quorum}, "
            f"vote time {vote_time}s"
        )

    def initialize_from_config(self, token, config) -> None:
        self.initialize(
            token,
            config.delegate.support_required,
            config.delegate.min_accept_quorum,
            config.engine.vote_time,
        )

    # ── Proposals ─────────────────────────────────────────────────────

    def new_vote(self, script: ScriptLike, metadata: str = "", *, sender: str) -> int:
        return self.new_vote_ext(script, metadata, True, True, sender=sender)

    def new_vote_ext(
        self,
        script: ScriptLike,
        metadata: str,
        cast_vote: bool,
        executes_if_decided: bool,
        *,
        sender: str,
    ) -> int:
        """
        Create a vote on *script*.

        With *cast_vote* the creator votes Yea straight away (if it has any
        weight), and with *executes_if_decided* that vote may execute the
        script. A failing execution undoes the whole creation.
        """
        self._require_initialized()
        self._require_auth(sender, CREATE_VOTES_ROLE)
        with self._atomic():
            proposal = self._open_proposal(
                sender,
                as_bytes(script),
                metadata,
                support_required=self.support_required_pct,
                min_accept_quorum=self.min_accept_quorum_pct,
            )
            if cast_vote and self.can_vote(proposal.id, sender):
                self._cast(proposal, sender, True, executes_if_decided)
        return proposal.id

    # ── Forwarding ────────────────────────────────────────────────────

    def is_forwarder(self) -> bool:
        return True

    def can_forward(self, sender: str) -> bool:
        return self._initialized and self.acl.is_authorized(sender, CREATE_VOTES_ROLE)

    def forward(self, script: ScriptLike, *, sender: str) -> int:
        if not self.can_forward(sender):
            raise _reject(UnauthorizedError(f"{sender} cannot forward"))
        return self.new_vote_ext(script, "", True, True, sender=sender)

    # ── Voting ────────────────────────────────────────────────────────

    def vote(
        self,
        vote_id: int,
        supports: bool,
        executes_if_decided: bool = True,
        *,
        sender: str,
    ) -> None:
        self._require_initialized()
        proposal = self._open_for_voting(vote_id)
        with self._atomic(proposal):
            self._cast(proposal, sender, supports, executes_if_decided)

    def _effective_weight(self, proposal: Proposal, voter: str) -> Tuple[Decimal, Set[str], Decimal]:
        """Own snapshot weight, delegators it would absorb, their weight."""
        snapshot = proposal.snapshot_block
        own = self.oracle.power_at(voter, snapshot)
        absorbed = {
            d for d in self._registry.delegators_of(voter)
            if not proposal.has_voted(d) and proposal.counted_by(d) in (None, voter)
        }
        delegated = sum((self.oracle.power_at(d, snapshot) for d in absorbed), Decimal(0))
        return own, absorbed, delegated

    def _cast(self, proposal: Proposal, voter: str, supports: bool, executes_if_decided: bool) -> None:
        own, absorbed, delegated = self._effective_weight(proposal, voter)
        weight = own + delegated
        if weight <= 0:
            raise _reject(NoVotingPowerError(
                f"{voter} has no voting power at snapshot {proposal.snapshot_block}"
            ))

        record = proposal.record(voter)
        if record.has_voted:
            proposal.remove_stake(record.state, record.stake)
            for delegator in list(record.absorbed):
                proposal.release(delegator)

        # Reclaim own weight from a delegate that voted with it
        holder = proposal.release(voter)
        if holder is not None:
            held = proposal.record(holder)
            held.stake -= own
            proposal.remove_stake(held.state, own)
            logger.debug(f"Vote #{proposal.id}: {voter} overrides delegate {holder} ({own})")

        state = VoterState.of(supports)
        record.state = state
        record.stake = weight
        proposal.add_stake(state, weight)
        for delegator in absorbed:
            proposal.absorb(voter, delegator)

        now = self._now()
        self._emit(CastVoteEvent(proposal.id, voter, supports, weight, timestamp=now))
        logger.info(
            f"Vote #{proposal.id}: {voter} → {state.name} ({weight}, "
            f"{len(absorbed)} delegator(s))"
        )

        if executes_if_decided and linear_can_execute(proposal, proposal.is_open(now)):
            self._run_script(proposal, proposal.script)

    def can_vote(self, vote_id: int, voter: str) -> bool:
        proposal = self._proposals.get(vote_id)
        if proposal.executing or not proposal.is_open(self._now()):
            return False
        own, _, delegated = self._effective_weight(proposal, voter)
        return own + delegated > 0

    # ── Delegation ────────────────────────────────────────────────────

    def delegate_vote(self, delegate: str, *, sender: str) -> None:
        """Assign *sender*'s current token weight to *delegate*."""
        self._require_initialized()
        amount = self.oracle.current_power(sender)
        if amount <= 0:
            raise _reject(NoVotingPowerError(f"{sender} has no tokens to delegate"))
        edge, previous = self._registry.delegate(sender, delegate, amount, self._now())
        self._emit(DelegateVoteEvent(sender, delegate, edge.amount, previous, timestamp=edge.created_at))

    def undelegate_vote(self, *, sender: str) -> None:
        self._require_initialized()
        edge = self._registry.undelegate(sender)
        self._emit(UndelegateVoteEvent(sender, edge.delegate, timestamp=self._now()))

    def delegate_of(self, delegator: str) -> Optional[str]:
        return self._registry.delegate_of(delegator)

    def delegated_power(self, delegate: str) -> Decimal:
        return self._registry.delegated_power(delegate)

    @property
    def registry(self) -> DelegationRegistry:
        return self._registry

    # ── Execution ─────────────────────────────────────────────────────

    def can_execute(self, vote_id: int) -> bool:
        proposal = self._proposals.get(vote_id)
        if proposal.executing:
            return False
        return linear_can_execute(proposal, proposal.is_open(self._now()))

    def execute_vote(self, vote_id: int, *, sender: Optional[str] = None) -> None:
        self._require_initialized()
        proposal = self._proposals.get(vote_id)
        if proposal.executed or proposal.executing:
            raise _reject(ProposalAlreadyExecutedError(f"Vote #{vote_id} already executed"))
        if not self.can_execute(vote_id):
            raise _reject(ThresholdsNotMetError(
                f"Vote #{vote_id} does not meet support/quorum "
                f"(yea {proposal.yea}, nay {proposal.nay}, power {proposal.voting_power})"
            ))
        self._run_script(proposal, proposal.script)

    # ── Settings ──────────────────────────────────────────────────────

    def change_support_required_pct(self, support_required_pct: Pct, *, sender: str) -> None:
        self._require_initialized()
        self._require_auth(sender, MODIFY_SUPPORT_ROLE)
        support = _to_pct(support_required_pct, "support_required_pct")
        if not (self.min_accept_quorum_pct <= support < PCT_BASE):
            raise _reject(InvalidParameterError(
                f"Support {support} must be >= quorum {self.min_accept_quorum_pct} and < 1"
            ))
        self.support_required_pct = support
        self._emit(ChangeSupportRequiredEvent(support, timestamp=self._now()))
        logger.info(f"Support required changed to {support}")

    def change_min_accept_quorum_pct(self, min_accept_quorum_pct: Pct, *, sender: str) -> None:
        self._require_initialized()
        self._require_auth(sender, MODIFY_QUORUM_ROLE)
        quorum = _to_pct(min_accept_quorum_pct, "min_accept_quorum_pct")
        if not (0 <= quorum <= self.support_required_pct):
            raise _reject(InvalidParameterError(
                f"Quorum {quorum} must be between 0 and support {self.support_required_pct}"
            ))
        self.min_accept_quorum_pct = quorum
        self._emit(ChangeMinQuorumEvent(quorum, timestamp=self._now()))
        logger.info(f"Minimum acceptance quorum changed to {quorum}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "supportRequiredPct": str(self.support_required_pct),
            "minAcceptQuorumPct": str(self.min_accept_quorum_pct),
            "delegation": self._registry.to_dict(),
        })
        return data


# ══════════════════════════════════════════════════════════════════════
#  QUADRATIC VOTING
# ══════════════════════════════════════════════════════════════════════

class QuadraticVoting(GovernanceApp):
    """
    Quadratic voting over per-term point balances.

    Proposals store the keccak256 of their script; `execute_vote` takes the
    script itself, after the vote has closed with at least
    `support_required` Yea units.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.support_required = 0
        self._balances: Optional[BalanceBook] = None

    def initialize(
        self,
        token,
        support_required: int,
        vote_time: float,
        points_per_term: int,
        term_length: float,
    ) -> None:
        self._check_initializable(vote_time)
        oracle = self._resolve_oracle(token)
        if support_required <= 0:
            raise _reject(InvalidParameterError(
                f"support_required must be > 0, got {support_required}"
            ))
        self._balances = BalanceBook(points_per_term, term_length)
        self.support_required = int(support_required)
        self._complete_initialization(oracle, vote_time)
        logger.info(
            f"QuadraticVoting initialized: support {support_required} units, "
            f"{points_per_term} points per {term_length}s term, vote time {vote_time}s"
        )

    def initialize_from_config(self, token, config) -> None:
        self.initialize(
            token,
            config.quadratic.support_required,
            config.engine.vote_time,
            config.quadratic.points_per_term,
            config.quadratic.term_length,
        )

    # ── Proposals ─────────────────────────────────────────────────────

    def new_vote(self, script_hash: ScriptLike, metadata: str = "", *, sender: str) -> int:
        """Create a vote committing to *script_hash* (keccak256 of the script)."""
        self._require_initialized()
        self._require_auth(sender, CREATE_VOTES_ROLE)
        commitment = as_bytes(script_hash)
        if len(commitment) != 32:
            raise _reject(InvalidParameterError(
                f"Script commitment must be 32 bytes, got {len(commitment)}"
            ))
        proposal = self._open_proposal(
            sender, commitment, metadata, support_required=self.support_required,
        )
        return proposal.id

    # ── Voting ────────────────────────────────────────────────────────

    def vote(self, vote_id: int, supports: bool, units: int, *, sender: str) -> None:
        """Hold *units* votes in the given direction, replacing any previous vote."""
        self._require_initialized()
        if units < 1:
            raise _reject(InvalidParameterError(f"Unit count must be >= 1, got {units}"))
        proposal = self._open_for_voting(vote_id)
        if self.oracle.power_at(sender, proposal.snapshot_block) <= 0:
            raise _reject(NoVotingPowerError(
                f"{sender} has no voting power at snapshot {proposal.snapshot_block}"
            ))
        self._set_units(proposal, sender, VoterState.of(supports), units)
        self._emit(CastVoteEvent(vote_id, sender, supports, units, timestamp=self._now()))

    def vote_dim(self, vote_id: int, supports: bool, *, sender: str) -> None:
        """Add one unit in the current direction, or start at one in a new one."""
        self._require_initialized()
        record = self._proposals.get(vote_id).get_record(sender)
        units = 1
        if record is not None and record.state == VoterState.of(supports):
            units = record.stake + 1
        self.vote(vote_id, supports, units, sender=sender)

    def remove_vote(self, vote_id: int, *, sender: str) -> None:
        self._require_initialized()
        proposal = self._open_for_voting(vote_id)
        if not proposal.has_voted(sender):
            raise _reject(NotAVoterError(f"{sender} has no vote on #{vote_id}"))
        before = self._balances.voting_balance(sender, self._now())
        self._set_units(proposal, sender, VoterState.ABSENT, 0)
        refunded = self._balances.voting_balance(sender, self._now()) - before
        self._emit(RemoveVoteEvent(vote_id, sender, refunded, timestamp=self._now()))

    def _set_units(self, proposal: Proposal, voter: str, state: VoterState, units: int) -> None:
        now = self._now()
        record = proposal.get_record(voter)
        old_units = record.stake if record is not None and record.has_voted else 0
        paid_term = record.paid_term if record is not None else None

        balance = reprice(
            self._balances.project(voter, now),
            self._balances.points_per_term,
            old_units,
            paid_term,
            units,
        )

        record = proposal.record(voter)
        if record.has_voted:
            proposal.remove_stake(record.state, record.stake)
        record.state = state
        record.stake = units
        record.paid_term = balance.term_started_at if units else None
        proposal.add_stake(state, units)
        self._balances.commit(voter, balance)

        logger.info(
            f"Vote #{proposal.id}: {voter} → {state.name} x{units} "
            f"(balance {balance.remaining})"
        )

    def can_vote(self, vote_id: int, voter: str) -> bool:
        proposal = self._proposals.get(vote_id)
        return (
            not proposal.executing
            and proposal.is_open(self._now())
            and self.oracle.power_at(voter, proposal.snapshot_block) > 0
        )

    def get_voter_record(self, vote_id: int, voter: str) -> Tuple[VoterState, int]:
        record = self._proposals.get(vote_id).get_record(voter)
        if record is None:
            return VoterState.ABSENT, 0
        return record.state, record.stake

    # ── Balances ──────────────────────────────────────────────────────

    def voting_balance(self, participant: str) -> int:
        """Points *participant* can spend now, after any pending term renewal."""
        self._require_initialized()
        return self._balances.voting_balance(participant, self._now())

    def voting_term(self) -> float:
        self._require_initialized()
        return self._balances.term_length

    def points_per_term(self) -> int:
        self._require_initialized()
        return self._balances.points_per_term

    # ── Execution ─────────────────────────────────────────────────────

    def can_execute(self, vote_id: int) -> bool:
        proposal = self._proposals.get(vote_id)
        if proposal.executing:
            return False
        return quadratic_can_execute(proposal, proposal.is_open(self._now()))

    def execute_vote(self, vote_id: int, script: ScriptLike, *, sender: Optional[str] = None) -> None:
        self._require_initialized()
        proposal = self._proposals.get(vote_id)
        if proposal.executed or proposal.executing:
            raise _reject(ProposalAlreadyExecutedError(f"Vote #{vote_id} already executed"))
        if not self.can_execute(vote_id):
            raise _reject(ThresholdsNotMetError(
                f"Vote #{vote_id} is open or short of support "
                f"(yea {proposal.yea} < {proposal.support_required})"
            ))
        if script_hash(script) != proposal.script:
            raise _reject(ScriptMismatchError(f"Script does not match commitment of #{vote_id}"))
        self._run_script(proposal, script)

    # ── Settings ──────────────────────────────────────────────────────

    def change_support_required(self, support_required: int, *, sender: str) -> None:
        self._require_initialized()
        self._require_auth(sender, MODIFY_SUPPORT_ROLE)
        if support_required <= 0:
            raise _reject(InvalidParameterError(
                f"support_required must be > 0, got {support_required}"
            ))
        self.support_required = int(support_required)
        self._emit(ChangeSupportRequiredEvent(self.support_required, timestamp=self._now()))
        logger.info(f"Support required changed to {self.support_required} units")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "supportRequired": self.support_required,
            "balances": self._balances.to_dict() if self._balances else None,
        })
        return data
