"""
Agora Exceptions

Custom exception classes for the governance engine. Every rejected operation
raises one of these; none are swallowed.
"""


class AgoraException(Exception):
    """Base exception for Agora."""
    pass


class ConfigurationError(AgoraException):
    """Configuration error."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  GOVERNANCE
# ══════════════════════════════════════════════════════════════════════

class GovernanceError(AgoraException):
    """Base governance exception."""
    pass


class UninitializedError(GovernanceError):
    """Operation attempted before initialize()."""
    pass


class AlreadyInitializedError(GovernanceError):
    """initialize() called twice."""
    pass


class PetrifiedError(AlreadyInitializedError):
    """initialize() called on a template instance."""
    pass


class UnauthorizedError(GovernanceError):
    """Caller lacks the role required by the operation."""
    pass


class InvalidParameterError(GovernanceError):
    """Parameter outside its allowed range."""
    pass


class ProposalNotFoundError(GovernanceError):
    """Vote id out of range."""
    pass


class ProposalNotOpenError(GovernanceError):
    """Voting period has ended."""
    pass


class ProposalAlreadyExecutedError(GovernanceError):
    """Vote already executed, or execution in progress."""
    pass


class NoVotingPowerError(GovernanceError):
    """Caller has zero eligible weight at the vote snapshot."""
    pass


class NotAVoterError(GovernanceError):
    """Caller has no active vote on the proposal."""
    pass


class InsufficientVotingBalanceError(GovernanceError):
    """Quadratic cost exceeds the remaining voting points."""
    pass


class ThresholdsNotMetError(GovernanceError):
    """Execution attempted without support / quorum."""
    pass


class ZeroEligibleSupplyError(GovernanceError):
    """Vote creation against an empty electorate."""
    pass


class ScriptMismatchError(GovernanceError):
    """Supplied script does not match the stored commitment."""
    pass


class DelegationError(GovernanceError):
    """Invalid delegation request."""
    pass


class ActionExecutionFailedError(GovernanceError):
    """An action of the execution script failed; the whole batch was reverted."""
    pass


class InvalidScriptError(ActionExecutionFailedError):
    """Execution script could not be decoded."""
    pass
