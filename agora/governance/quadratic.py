"""
Quadratic Cost Engine and Term Clock

Casting n cumulative units on a proposal costs n² voting points. Each
participant holds a balance of at most `points_per_term` points, renewed
lazily: the first time a balance is read or charged after `term_length`
seconds have elapsed since its term started, it is reset to a full term.

Pricing is pure (`quadratic_cost`, `reprice`); the only mutable state is the
per-participant VotingBalance held by a BalanceBook, which is written only by
`commit` once an operation has passed every check.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..exceptions import InsufficientVotingBalanceError, InvalidParameterError
from ..logger import get_logger

logger = get_logger(__name__)


def quadratic_cost(units: int) -> int:
    """Points needed to hold *units* votes on one proposal."""
    if units < 0:
        raise InvalidParameterError(f"Unit count cannot be negative: {units}")
    return units * units


@dataclass(frozen=True)
class VotingBalance:
    remaining: int
    term_started_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {"remaining": self.remaining, "termStartedAt": self.term_started_at}


def reprice(
    balance: VotingBalance,
    points_per_term: int,
    old_units: int,
    paid_term: Optional[float],
    new_units: int,
) -> VotingBalance:
    """
    Balance after moving a vote from *old_units* to *new_units*.

    The old cost is refunded only if it was paid in *balance*'s term; the
    result never exceeds *points_per_term*.

    Raises:
        InsufficientVotingBalanceError: if the new cost is not covered
    """
    refund = quadratic_cost(old_units) if paid_term == balance.term_started_at else 0
    cost = quadratic_cost(new_units)
    available = min(points_per_term, balance.remaining + refund)
    if cost > available:
        raise InsufficientVotingBalanceError(
            f"{new_units} unit(s) cost {cost} points, only {available} available"
        )
    return VotingBalance(available - cost, balance.term_started_at)


class BalanceBook:
    """Per-participant voting-point balances with lazy term renewal."""

    def __init__(self, points_per_term: int, term_length: float):
        if points_per_term <= 0:
            raise InvalidParameterError("points_per_term must be > 0")
        if term_length <= 0:
            raise InvalidParameterError("term_length must be > 0")
        self.points_per_term = int(points_per_term)
        self.term_length = term_length
        self._balances: Dict[str, VotingBalance] = {}

    def project(self, participant: str, now: float) -> VotingBalance:
        """Balance *participant* would have if touched at *now*. Pure."""
        current = self._balances.get(participant)
        if current is None or now >= current.term_started_at + self.term_length:
            return VotingBalance(self.points_per_term, now)
        return current

    def voting_balance(self, participant: str, now: float) -> int:
        return self.project(participant, now).remaining

    def stored(self, participant: str) -> Optional[VotingBalance]:
        """Last committed balance, without applying term renewal."""
        return self._balances.get(participant)

    def commit(self, participant: str, balance: VotingBalance) -> None:
        previous = self._balances.get(participant)
        if previous is not None and balance.term_started_at != previous.term_started_at:
            logger.debug(f"Voting term renewed for {participant} at {balance.term_started_at}")
        self._balances[participant] = balance

    def __len__(self) -> int:
        return len(self._balances)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pointsPerTerm": self.points_per_term,
            "termLength": self.term_length,
            "balances": {p: b.to_dict() for p, b in self._balances.items()},
        }
