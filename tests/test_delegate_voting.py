"""
Delegate Voting Test Suite

Coverage:
  - Initialization, petrified templates, authorization
  - Vote creation, snapshot fixing, auto-execution, forwarding
  - Linear tally while open / once closed, support & quorum changes
  - Delegation registry and per-proposal override semantics
  - Atomic execution and rollback of votes / creations
"""

import os
import sys
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from agora.constants import (
    ANY_ENTITY,
    CREATE_VOTES_ROLE,
    MODIFY_QUORUM_ROLE,
    MODIFY_SUPPORT_ROLE,
)
from agora.exceptions import (
    ActionExecutionFailedError,
    AlreadyInitializedError,
    DelegationError,
    InvalidParameterError,
    InvalidScriptError,
    NoVotingPowerError,
    PetrifiedError,
    ProposalAlreadyExecutedError,
    ProposalNotFoundError,
    ProposalNotOpenError,
    ThresholdsNotMetError,
    UnauthorizedError,
    UninitializedError,
    ZeroEligibleSupplyError,
)
from agora.governance import (
    ACL,
    Action,
    CallTarget,
    CastVoteEvent,
    DelegateVoteEvent,
    DelegateVoting,
    DelegationRegistry,
    ExecuteVoteEvent,
    ProposalStatus,
    StartVoteEvent,
    VoterState,
    encode_call,
    encode_call_script,
)
from agora.governance.proposals import Proposal
from agora.governance.tally import is_value_pct, linear_can_execute
from agora.tokens import SnapshotToken


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ROOT_ADDR = "0x" + "01" * 20
HOLDER20 = "0x" + "20" * 20
HOLDER29 = "0x" + "29" * 20
HOLDER51 = "0x" + "51" * 20
NON_HOLDER = "0x" + "99" * 20
TARGET = "0x" + "7a" * 20
REENTRANT = "0x" + "7e" * 20

SUPPORT = Decimal("0.5")
QUORUM = Decimal("0.2")
VOTE_TIME = 1000


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ExecutionTarget(CallTarget):
    EXPORTS = {"execute()": "execute", "fail()": "fail"}

    def __init__(self):
        self.counter = 0

    def execute(self):
        self.counter += 1

    def fail(self):
        raise RuntimeError("ExecutionTarget: fail")


class ReentrantTarget(CallTarget):
    """Calls back into execute_vote for the vote being executed."""
    EXPORTS = {"reenter(uint256)": "reenter"}
    UNSNAPSHOTTED = ("app",)

    def __init__(self, app):
        self.app = app

    def reenter(self, vote_id):
        self.app.execute_vote(vote_id)


class RevotingTarget(CallTarget):
    """Switches HOLDER51 to Nay on the vote being executed."""
    EXPORTS = {"revote(uint256)": "revote"}
    UNSNAPSHOTTED = ("app",)

    def __init__(self, app):
        self.app = app

    def revote(self, vote_id):
        self.app.vote(vote_id, False, False, sender=HOLDER51)


EXECUTE = Action(TARGET, encode_call("execute()"))
FAIL = Action(TARGET, encode_call("fail()"))


def make_token(balances=((HOLDER20, 20), (HOLDER29, 29), (HOLDER51, 51))):
    token = SnapshotToken("Governance Token", "GOV")
    for holder, amount in balances:
        token.generate_tokens(holder, Decimal(amount))
    return token


def make_acl():
    acl = ACL()
    acl.create_permission(ANY_ENTITY, CREATE_VOTES_ROLE, ROOT_ADDR)
    acl.create_permission(ANY_ENTITY, MODIFY_SUPPORT_ROLE, ROOT_ADDR)
    acl.create_permission(ANY_ENTITY, MODIFY_QUORUM_ROLE, ROOT_ADDR)
    return acl


def make_app(token=None, support=SUPPORT, quorum=QUORUM, acl=None):
    clock = FakeClock()
    app = DelegateVoting(acl=acl or make_acl(), clock=clock)
    target = ExecutionTarget()
    app.surface.register(TARGET, target)
    app.initialize(token if token is not None else make_token(), support, quorum, VOTE_TIME)
    return app, target, clock


def silent_vote(app, sender=HOLDER51, actions=(EXECUTE, EXECUTE)):
    """Vote created without the creator's own vote."""
    return app.new_vote_ext(encode_call_script(actions), "metadata", False, False, sender=sender)


# ══════════════════════════════════════════════════════════════════════
#  INITIALIZATION
# ══════════════════════════════════════════════════════════════════════

class TestInitialization:

    def test_reinitialization_fails(self):
        app, _, _ = make_app()
        with pytest.raises(AlreadyInitializedError):
            app.initialize(make_token(), SUPPORT, QUORUM, VOTE_TIME)

    def test_template_cannot_be_initialized(self):
        template = DelegateVoting.template()
        assert template.petrified
        with pytest.raises(PetrifiedError):
            template.initialize(make_token(), SUPPORT, QUORUM, VOTE_TIME)
        assert not template.initialized

    def test_unsupported_token_source(self):
        app = DelegateVoting(acl=make_acl())
        with pytest.raises(InvalidParameterError, match="voting power source"):
            app.initialize(object(), SUPPORT, QUORUM, VOTE_TIME)
        assert not app.initialized
        assert app.oracle is None
        assert app.support_required_pct == 0
        assert app.min_accept_quorum_pct == 0

    def test_is_forwarder(self):
        app, _, _ = make_app()
        assert app.is_forwarder()

    def test_invalid_thresholds(self):
        app = DelegateVoting(acl=make_acl())
        with pytest.raises(InvalidParameterError):
            app.initialize(make_token(), Decimal("1"), QUORUM, VOTE_TIME)
        with pytest.raises(InvalidParameterError):
            app.initialize(make_token(), Decimal("0.1"), Decimal("0.2"), VOTE_TIME)
        with pytest.raises(InvalidParameterError):
            app.initialize(make_token(), SUPPORT, QUORUM, 0)
        assert not app.initialized

    def test_new_vote_before_initialization(self):
        app = DelegateVoting(acl=make_acl())
        with pytest.raises(UninitializedError):
            app.new_vote(encode_call_script([]), "", sender=HOLDER51)

    def test_empty_token_cannot_create_votes(self):
        app, _, _ = make_app(token=SnapshotToken("Empty", "NIL"))
        with pytest.raises(ZeroEligibleSupplyError):
            app.new_vote(encode_call_script([]), "metadata", sender=ROOT_ADDR)
        assert app.votes_length() == 0

    def test_unauthorized_creator(self):
        app, _, _ = make_app(acl=ACL())
        with pytest.raises(UnauthorizedError):
            app.new_vote(encode_call_script([]), "", sender=HOLDER51)
        assert not app.can_forward(HOLDER51)


# ══════════════════════════════════════════════════════════════════════
#  SETTINGS
# ══════════════════════════════════════════════════════════════════════

class TestSettings:

    def test_change_support(self):
        app, _, _ = make_app()
        app.change_support_required_pct(Decimal("0.6"), sender=ROOT_ADDR)
        assert app.support_required_pct == Decimal("0.6")
        assert any(e.to_dict()["event"] == "ChangeSupportRequired" for e in app.events)

    def test_support_below_quorum_fails(self):
        app, _, _ = make_app()
        with pytest.raises(InvalidParameterError):
            app.change_support_required_pct(Decimal("0.19"), sender=ROOT_ADDR)

    def test_support_of_100_pct_fails(self):
        app, _, _ = make_app()
        with pytest.raises(InvalidParameterError):
            app.change_support_required_pct(Decimal("1"), sender=ROOT_ADDR)
        with pytest.raises(InvalidParameterError):
            app.change_support_required_pct(Decimal("1.01"), sender=ROOT_ADDR)

    def test_change_quorum(self):
        app, _, _ = make_app()
        app.change_min_accept_quorum_pct(Decimal("0.01"), sender=ROOT_ADDR)
        assert app.min_accept_quorum_pct == Decimal("0.01")

    def test_quorum_above_support_fails(self):
        app, _, _ = make_app()
        with pytest.raises(InvalidParameterError):
            app.change_min_accept_quorum_pct(Decimal("0.51"), sender=ROOT_ADDR)

    def test_settings_require_roles(self):
        app, _, _ = make_app(acl=ACL())
        with pytest.raises(UnauthorizedError):
            app.change_support_required_pct(Decimal("0.6"), sender=ROOT_ADDR)
        with pytest.raises(UnauthorizedError):
            app.change_min_accept_quorum_pct(Decimal("0.1"), sender=ROOT_ADDR)


# ══════════════════════════════════════════════════════════════════════
#  CREATION & AUTO-EXECUTION
# ══════════════════════════════════════════════════════════════════════

class TestVoteCreation:

    def test_deciding_vote_is_executed(self):
        app, target, _ = make_app()
        vote_id = app.new_vote(encode_call_script([EXECUTE, EXECUTE]), "", sender=HOLDER51)
        assert vote_id == 0
        assert target.counter == 2
        assert app.get_vote(vote_id).executed

    def test_deciding_vote_is_executed_long_version(self):
        app, target, _ = make_app()
        app.new_vote_ext(encode_call_script([EXECUTE]), "", True, True, sender=HOLDER51)
        assert target.counter == 1

    def test_no_auto_execution_when_opted_out(self):
        app, target, _ = make_app()
        vote_id = app.new_vote_ext(encode_call_script([EXECUTE]), "", True, False, sender=HOLDER51)
        assert target.counter == 0
        assert app.get_vote(vote_id).yea == 51
        assert app.can_execute(vote_id)

    def test_multiple_actions(self):
        app, target, _ = make_app()
        app.new_vote(encode_call_script([EXECUTE] * 3), "", sender=HOLDER51)
        assert target.counter == 3

    def test_empty_script(self):
        app, _, _ = make_app()
        vote_id = app.new_vote(encode_call_script([]), "", sender=HOLDER51)
        assert app.get_vote(vote_id).executed

    def test_creator_without_tokens_casts_nothing(self):
        app, target, _ = make_app()
        vote_id = app.new_vote(encode_call_script([EXECUTE]), "", sender=NON_HOLDER)
        info = app.get_vote(vote_id)
        assert info.yea == 0
        assert info.creator == NON_HOLDER
        assert target.counter == 0

    def test_not_decisive_creator_vote(self):
        app, target, _ = make_app()
        vote_id = app.new_vote(encode_call_script([EXECUTE]), "", sender=HOLDER29)
        assert app.get_vote(vote_id).yea == 29
        assert app.get_voter_state(vote_id, HOLDER29) == VoterState.YEA
        assert target.counter == 0

    def test_forwarding_creates_vote(self):
        app, target, _ = make_app()
        vote_id = app.forward(encode_call_script([EXECUTE]), sender=HOLDER51)
        assert vote_id == 0
        assert target.counter == 1

    def test_forward_unauthorized(self):
        app, _, _ = make_app(acl=ACL())
        with pytest.raises(UnauthorizedError):
            app.forward(encode_call_script([]), sender=HOLDER51)

    def test_events_emitted_in_order(self):
        app, _, _ = make_app()
        app.new_vote(encode_call_script([EXECUTE]), "meta", sender=HOLDER51)
        kinds = [type(e) for e in app.events]
        assert kinds == [StartVoteEvent, CastVoteEvent, ExecuteVoteEvent]
        assert app.events[0].metadata == "meta"
        assert app.events[1].stake == 51


class TestVoteState:

    def test_has_correct_state(self):
        app, _, clock = make_app()
        script = encode_call_script([EXECUTE, EXECUTE])
        snapshot = app.oracle.current_reference()
        vote_id = app.new_vote_ext(script, "metadata", False, False, sender=HOLDER51)

        info = app.get_vote(vote_id)
        assert info.open
        assert not info.executed
        assert info.start_date == clock.now
        assert info.snapshot_block == snapshot
        assert info.support_required == SUPPORT
        assert info.min_accept_quorum == QUORUM
        assert info.yea == 0
        assert info.nay == 0
        assert info.voting_power == 100
        assert info.script == script
        assert info.metadata == "metadata"
        assert info.to_dict()["votingPower"] == "100"
        assert app.get_voter_state(vote_id, NON_HOLDER) == VoterState.ABSENT

    def test_vote_out_of_bounds(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        with pytest.raises(ProposalNotFoundError):
            app.get_vote(vote_id + 1)

    def test_changing_support_does_not_affect_open_vote(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.change_support_required_pct(Decimal("0.7"), sender=ROOT_ADDR)
        app.vote(vote_id, True, False, sender=HOLDER51)
        assert app.get_vote(vote_id).support_required == SUPPORT
        assert app.can_execute(vote_id)

    def test_changing_quorum_does_not_affect_open_vote(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.change_min_accept_quorum_pct(Decimal("0.5"), sender=ROOT_ADDR)
        app.vote(vote_id, True, False, sender=HOLDER29)
        app.vote(vote_id, False, False, sender=HOLDER20)
        assert app.get_vote(vote_id).min_accept_quorum == QUORUM

    def test_support_required_is_fixed_on_proposal(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        proposal = app._proposals.get(vote_id)
        with pytest.raises(AttributeError, match="fixed at creation"):
            proposal.support_required = Decimal("0.9")
        with pytest.raises(AttributeError):
            proposal.snapshot_block = 0

    def test_status_transitions(self):
        app, _, clock = make_app()
        vote_id = silent_vote(app)
        proposal = app._proposals.get(vote_id)
        assert proposal.status(clock.now) == ProposalStatus.OPEN
        clock.advance(VOTE_TIME)
        assert proposal.status(clock.now) == ProposalStatus.CLOSED
        assert not app.get_vote(vote_id).open


# ══════════════════════════════════════════════════════════════════════
#  VOTING
# ══════════════════════════════════════════════════════════════════════

class TestVoting:

    def test_holder_can_vote(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.vote(vote_id, False, True, sender=HOLDER29)
        assert app.get_vote(vote_id).nay == 29
        assert app.get_voter_state(vote_id, HOLDER29) == VoterState.NAY

    def test_holder_can_modify_vote(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.vote(vote_id, True, True, sender=HOLDER29)
        app.vote(vote_id, False, True, sender=HOLDER29)
        app.vote(vote_id, True, True, sender=HOLDER29)
        info = app.get_vote(vote_id)
        assert info.yea == 29
        assert info.nay == 0

    def test_token_transfers_dont_affect_voting(self):
        token = make_token()
        app, _, _ = make_app(token=token)
        vote_id = silent_vote(app)
        token.transfer(HOLDER29, NON_HOLDER, Decimal(29))

        app.vote(vote_id, True, True, sender=HOLDER29)
        assert app.get_vote(vote_id).yea == 29
        assert token.balance_of(HOLDER29) == 0
        with pytest.raises(NoVotingPowerError):
            app.vote(vote_id, True, True, sender=NON_HOLDER)

    def test_non_holder_cannot_vote(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        assert not app.can_vote(vote_id, NON_HOLDER)
        with pytest.raises(NoVotingPowerError):
            app.vote(vote_id, True, True, sender=NON_HOLDER)

    def test_cannot_vote_after_close(self):
        app, _, clock = make_app()
        vote_id = silent_vote(app)
        clock.advance(VOTE_TIME + 1)
        assert not app.can_vote(vote_id, HOLDER29)
        with pytest.raises(ProposalNotOpenError):
            app.vote(vote_id, True, True, sender=HOLDER29)

    def test_cannot_vote_on_executed_vote(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.vote(vote_id, True, True, sender=HOLDER51)
        with pytest.raises(ProposalAlreadyExecutedError):
            app.vote(vote_id, True, True, sender=HOLDER20)

    def test_unknown_vote(self):
        app, _, _ = make_app()
        with pytest.raises(ProposalNotFoundError):
            app.vote(3, True, True, sender=HOLDER29)


# ══════════════════════════════════════════════════════════════════════
#  TALLY & EXECUTION
# ══════════════════════════════════════════════════════════════════════

class TestTally:

    def test_is_value_pct(self):
        assert is_value_pct(Decimal(50), Decimal(100), Decimal("0.5"))
        assert not is_value_pct(Decimal(49), Decimal(100), Decimal("0.5"))
        assert not is_value_pct(Decimal(0), Decimal(0), Decimal("0"))

    def test_open_vote_needs_absolute_support(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.vote(vote_id, True, False, sender=HOLDER29)
        app.vote(vote_id, False, False, sender=HOLDER20)
        # 29 / 100 of the snapshot power is not decisive yet
        assert not app.can_execute(vote_id)
        with pytest.raises(ThresholdsNotMetError):
            app.execute_vote(vote_id)

    def test_closed_vote_uses_relative_support(self):
        app, target, clock = make_app()
        vote_id = silent_vote(app)
        app.vote(vote_id, True, False, sender=HOLDER29)
        app.vote(vote_id, False, False, sender=HOLDER20)
        clock.advance(VOTE_TIME + 1)

        assert app.can_execute(vote_id)
        app.execute_vote(vote_id)
        assert target.counter == 2
        assert app.get_vote(vote_id).executed

    def test_closed_vote_without_support(self):
        app, _, clock = make_app()
        vote_id = silent_vote(app)
        app.vote(vote_id, False, False, sender=HOLDER29)
        app.vote(vote_id, True, False, sender=HOLDER20)
        clock.advance(VOTE_TIME + 1)
        with pytest.raises(ThresholdsNotMetError):
            app.execute_vote(vote_id)

    def test_closed_vote_without_quorum(self):
        token = make_token(balances=((HOLDER20, 10), (HOLDER51, 90)))
        app, _, clock = make_app(token=token)
        vote_id = silent_vote(app)
        app.vote(vote_id, True, False, sender=HOLDER20)
        clock.advance(VOTE_TIME + 1)
        # 100% support but only 10% participation
        assert not app.can_execute(vote_id)

    def test_closed_vote_without_votes(self):
        app, _, clock = make_app()
        vote_id = silent_vote(app)
        clock.advance(VOTE_TIME + 1)
        assert not linear_can_execute(app._proposals.get(vote_id), False)

    def test_cannot_re_execute(self):
        app, _, _ = make_app()
        vote_id = app.new_vote(encode_call_script([EXECUTE]), "", sender=HOLDER51)
        with pytest.raises(ProposalAlreadyExecutedError):
            app.execute_vote(vote_id)


class TestAtomicExecution:

    def test_failing_action_rolls_back_creation(self):
        app, target, _ = make_app()
        script = encode_call_script([EXECUTE, FAIL, EXECUTE])
        with pytest.raises(ActionExecutionFailedError):
            app.new_vote(script, "", sender=HOLDER51)
        assert target.counter == 0
        assert app.votes_length() == 0
        assert app.events == []

    def test_rolled_back_creation_does_not_consume_id(self):
        app, _, _ = make_app()
        with pytest.raises(ActionExecutionFailedError):
            app.new_vote(encode_call_script([FAIL]), "", sender=HOLDER51)
        assert app.new_vote(encode_call_script([]), "", sender=HOLDER51) == 0

    def test_truncated_script_fails_creation(self):
        app, _, _ = make_app()
        script = encode_call_script([EXECUTE])[:-1]
        with pytest.raises(InvalidScriptError):
            app.new_vote(script, "", sender=HOLDER51)
        assert app.votes_length() == 0

    def test_failing_auto_execution_rolls_back_vote(self):
        app, target, _ = make_app()
        vote_id = silent_vote(app, actions=(EXECUTE, FAIL))
        with pytest.raises(ActionExecutionFailedError):
            app.vote(vote_id, True, True, sender=HOLDER51)
        info = app.get_vote(vote_id)
        assert info.yea == 0
        assert not info.executed
        assert app.get_voter_state(vote_id, HOLDER51) == VoterState.ABSENT
        assert target.counter == 0

    def test_failed_execute_vote_is_retryable(self):
        app, target, _ = make_app()
        vote_id = silent_vote(app, actions=(EXECUTE, FAIL, EXECUTE))
        app.vote(vote_id, True, False, sender=HOLDER51)
        with pytest.raises(ActionExecutionFailedError):
            app.execute_vote(vote_id)
        assert target.counter == 0
        assert not app.get_vote(vote_id).executed
        assert app.can_execute(vote_id)

    def test_reentrant_execution_fails_closed(self):
        app, target, _ = make_app()
        app.surface.register(REENTRANT, ReentrantTarget(app))
        reenter = Action(REENTRANT, encode_call("reenter(uint256)", 0))
        vote_id = silent_vote(app, actions=(EXECUTE, reenter))
        app.vote(vote_id, True, False, sender=HOLDER51)

        with pytest.raises(ActionExecutionFailedError) as exc_info:
            app.execute_vote(vote_id)

        assert isinstance(exc_info.value.__cause__, ProposalAlreadyExecutedError)
        assert target.counter == 0
        assert not app.get_vote(vote_id).executed

    def test_vote_during_execution_fails_closed(self):
        app, target, _ = make_app()
        app.surface.register(REENTRANT, RevotingTarget(app))
        revote = Action(REENTRANT, encode_call("revote(uint256)", 0))
        vote_id = silent_vote(app, actions=(EXECUTE, revote))
        app.vote(vote_id, True, False, sender=HOLDER51)

        with pytest.raises(ActionExecutionFailedError) as exc_info:
            app.execute_vote(vote_id)

        assert isinstance(exc_info.value.__cause__, ProposalAlreadyExecutedError)
        info = app.get_vote(vote_id)
        assert not info.executed
        assert info.yea == 51
        assert info.nay == 0
        assert app.get_voter_state(vote_id, HOLDER51) == VoterState.YEA
        assert target.counter == 0

    def test_rollback_restores_only_the_voted_proposal(self, monkeypatch):
        app, _, _ = make_app()
        for _ in range(5):
            vote_id = silent_vote(app)
            app.vote(vote_id, False, False, sender=HOLDER20)
        failing = silent_vote(app, actions=(EXECUTE, FAIL))
        app.vote(failing, False, False, sender=HOLDER29)
        events = len(app.events)

        checkpoints = []
        original = Proposal.checkpoint

        def counting(proposal):
            checkpoints.append(proposal.id)
            return original(proposal)

        monkeypatch.setattr(Proposal, "checkpoint", counting)

        with pytest.raises(ActionExecutionFailedError):
            app.vote(failing, True, True, sender=HOLDER51)

        assert checkpoints == [failing]
        assert len(app.events) == events
        assert app.votes_length() == 6
        info = app.get_vote(failing)
        assert (info.yea, info.nay) == (0, 29)
        assert app.get_voter_state(failing, HOLDER51) == VoterState.ABSENT
        assert app.get_vote(0).nay == 20


# ══════════════════════════════════════════════════════════════════════
#  DELEGATION
# ══════════════════════════════════════════════════════════════════════

class TestDelegationRegistry:

    def test_delegate_and_aggregate(self):
        registry = DelegationRegistry()
        registry.delegate(HOLDER20, HOLDER29, Decimal(20), 0.0)
        registry.delegate(HOLDER51, HOLDER29, Decimal(51), 0.0)
        assert registry.delegate_of(HOLDER20) == HOLDER29
        assert registry.delegators_of(HOLDER29) == {HOLDER20, HOLDER51}
        assert registry.delegated_power(HOLDER29) == 71

    def test_redelegation_moves_weight(self):
        registry = DelegationRegistry()
        registry.delegate(HOLDER20, HOLDER29, Decimal(20), 0.0)
        _, previous = registry.delegate(HOLDER20, HOLDER51, Decimal(20), 1.0)
        assert previous == HOLDER29
        assert registry.delegated_power(HOLDER29) == 0
        assert registry.delegated_power(HOLDER51) == 20
        assert registry.delegators_of(HOLDER29) == set()

    def test_redelegation_to_same_delegate(self):
        registry = DelegationRegistry()
        registry.delegate(HOLDER20, HOLDER29, Decimal(20), 0.0)
        registry.delegate(HOLDER20, HOLDER29, Decimal(20), 1.0)
        assert registry.delegated_power(HOLDER29) == 20
        assert len(registry) == 1

    def test_self_delegation(self):
        registry = DelegationRegistry()
        with pytest.raises(DelegationError, match="itself"):
            registry.delegate(HOLDER20, HOLDER20, Decimal(20), 0.0)

    def test_undelegate(self):
        registry = DelegationRegistry()
        registry.delegate(HOLDER20, HOLDER29, Decimal(20), 0.0)
        edge = registry.undelegate(HOLDER20)
        assert edge.delegate == HOLDER29
        assert registry.delegate_of(HOLDER20) is None
        with pytest.raises(DelegationError):
            registry.undelegate(HOLDER20)


class TestDelegatedVoting:
    """Delegation over a vote created by holder51 without casting."""

    def test_holder_can_delegate_a_vote(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.vote(vote_id, False, True, sender=HOLDER29)

        assert app.get_vote(vote_id).nay == 49
        assert app.get_voter_state(vote_id, HOLDER29) == VoterState.NAY
        assert app.delegated_power(HOLDER29) == 20
        assert isinstance(app.events[-2], DelegateVoteEvent)

    def test_multiple_holders_same_delegate(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.delegate_vote(HOLDER29, sender=HOLDER51)
        app.vote(vote_id, False, True, sender=HOLDER29)
        assert app.get_vote(vote_id).nay == 100

    def test_delegator_overrides_after_delegate_votes(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.vote(vote_id, False, False, sender=HOLDER29)
        app.vote(vote_id, True, False, sender=HOLDER20)

        info = app.get_vote(vote_id)
        assert info.yea == 20
        assert info.nay == 29
        assert app.get_voter_state(vote_id, HOLDER29) == VoterState.NAY
        assert app.get_voter_state(vote_id, HOLDER20) == VoterState.YEA

    def test_delegator_votes_before_delegate(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.vote(vote_id, True, False, sender=HOLDER20)
        app.vote(vote_id, False, False, sender=HOLDER29)

        info = app.get_vote(vote_id)
        assert info.yea == 20
        assert info.nay == 29

    def test_delegation_is_not_transitive(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.delegate_vote(HOLDER51, sender=HOLDER29)
        app.vote(vote_id, True, False, sender=HOLDER29)
        app.vote(vote_id, False, False, sender=HOLDER51)

        info = app.get_vote(vote_id)
        assert info.yea == 49
        assert info.nay == 51

    def test_delegate_of_delegate_voting_first(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.delegate_vote(HOLDER51, sender=HOLDER29)
        app.vote(vote_id, False, False, sender=HOLDER51)
        assert app.get_vote(vote_id).nay == 80

        app.vote(vote_id, True, False, sender=HOLDER29)
        info = app.get_vote(vote_id)
        assert info.yea == 49
        assert info.nay == 51

    def test_revote_does_not_double_count(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.vote(vote_id, False, False, sender=HOLDER29)
        app.vote(vote_id, True, False, sender=HOLDER29)
        app.vote(vote_id, True, False, sender=HOLDER29)

        info = app.get_vote(vote_id)
        assert info.yea == 49
        assert info.nay == 0

    def test_delegate_without_own_tokens(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(NON_HOLDER, sender=HOLDER20)
        assert app.can_vote(vote_id, NON_HOLDER)
        app.vote(vote_id, True, False, sender=NON_HOLDER)
        assert app.get_vote(vote_id).yea == 20

    def test_delegated_weight_can_decide(self):
        app, target, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER51)
        app.vote(vote_id, True, True, sender=HOLDER29)
        assert target.counter == 2
        assert app.get_vote(vote_id).executed

    def test_undelegate_restores_own_weight(self):
        app, _, _ = make_app()
        vote_id = silent_vote(app)
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        app.undelegate_vote(sender=HOLDER20)
        app.vote(vote_id, False, False, sender=HOLDER29)
        assert app.get_vote(vote_id).nay == 29
        assert app.delegate_of(HOLDER20) is None

    def test_self_delegation_fails(self):
        app, _, _ = make_app()
        with pytest.raises(DelegationError):
            app.delegate_vote(HOLDER20, sender=HOLDER20)

    def test_non_holder_cannot_delegate(self):
        app, _, _ = make_app()
        with pytest.raises(NoVotingPowerError):
            app.delegate_vote(HOLDER29, sender=NON_HOLDER)

    def test_to_dict(self):
        app, _, _ = make_app()
        app.delegate_vote(HOLDER29, sender=HOLDER20)
        d = app.to_dict()
        assert d["app"] == "DelegateVoting"
        assert d["supportRequiredPct"] == "0.5"
        assert d["delegation"]["aggregates"][HOLDER29] == "20"
