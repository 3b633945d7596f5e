"""
Agora Governance Engine

Provides:
  - VotingPowerOracle / TokenVotingPower               (oracle.py)
  - AuthorizationGate / ACL                            (acl.py)
  - DelegationRegistry / Delegation                    (delegation.py)
  - Proposal / ProposalStore / VoterState / VoteInfo   (proposals.py)
  - BalanceBook / VotingBalance / quadratic_cost       (quadratic.py)
  - Action / encode_call_script / decode_call_script   (scripts.py)
  - CallTarget / ExecutionSurface / ScriptExecutor     (execution.py)
  - GovernanceApp / DelegateVoting / QuadraticVoting   (voting.py)
"""

from .acl import ACL, AuthorizationGate
from .delegation import Delegation, DelegationRegistry
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
from .execution import CallTarget, ExecutionSurface, ScriptExecutor
from .oracle import TokenVotingPower, VotingPowerOracle, as_oracle
from .proposals import (
    Proposal,
    ProposalStatus,
    ProposalStore,
    VoteInfo,
    VoterRecord,
    VoterState,
)
from .quadratic import BalanceBook, VotingBalance, quadratic_cost, reprice
from .scripts import (
    EMPTY_SCRIPT,
    Action,
    decode_call_script,
    encode_call,
    encode_call_script,
    script_hash,
    selector,
)
from .voting import DelegateVoting, GovernanceApp, QuadraticVoting

__all__ = [
    # Boundaries
    "ACL",
    "AuthorizationGate",
    "TokenVotingPower",
    "VotingPowerOracle",
    "as_oracle",
    # Delegation
    "Delegation",
    "DelegationRegistry",
    # Proposals
    "Proposal",
    "ProposalStatus",
    "ProposalStore",
    "VoteInfo",
    "VoterRecord",
    "VoterState",
    # Quadratic
    "BalanceBook",
    "VotingBalance",
    "quadratic_cost",
    "reprice",
    # Scripts & execution
    "EMPTY_SCRIPT",
    "Action",
    "CallTarget",
    "ExecutionSurface",
    "ScriptExecutor",
    "decode_call_script",
    "encode_call",
    "encode_call_script",
    "script_hash",
    "selector",
    # Apps
    "DelegateVoting",
    "GovernanceApp",
    "QuadraticVoting",
    # Events
    "CastVoteEvent",
    "ChangeMinQuorumEvent",
    "ChangeSupportRequiredEvent",
    "DelegateVoteEvent",
    "ExecuteVoteEvent",
    "RemoveVoteEvent",
    "StartVoteEvent",
    "UndelegateVoteEvent",
]
