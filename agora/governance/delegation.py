"""
Delegation Registry

Single-hop delegation graph:

    delegator → delegate          (at most one outgoing edge)
    delegate  → {delegators}      (reverse index)
    delegate  → aggregate weight  (sum of amounts carried by incoming edges)

Edges persist across proposals. Per-proposal weight is not taken from the
aggregate: voting sums each direct delegator's balance at the proposal's
snapshot through `delegators_of`.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Set, Tuple

from ..exceptions import DelegationError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Delegation:
    """A delegation edge and the weight it carried when created."""
    delegator: str
    delegate: str
    amount: Decimal
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegator": self.delegator,
            "delegate": self.delegate,
            "amount": str(self.amount),
            "createdAt": self.created_at,
        }


class DelegationRegistry:
    """Tracks delegation edges and per-delegate aggregate weight."""

    def __init__(self):
        self._delegations: Dict[str, Delegation] = {}
        self._delegators: Dict[str, Set[str]] = {}
        self._aggregate: Dict[str, Decimal] = {}

    def delegate(
        self,
        delegator: str,
        delegate: str,
        amount: Decimal,
        now: float,
    ) -> Tuple[Delegation, Optional[str]]:
        """
        Point *delegator* at *delegate* carrying *amount*.

        An existing edge is replaced and its weight moved. Returns the new
        edge and the previous delegate (None if there was none).
        """
        if delegator == delegate:
            raise DelegationError(f"{delegator} cannot delegate to itself")
        if amount < 0:
            raise DelegationError(f"Negative delegation amount: {amount}")

        previous = self._remove(delegator)
        edge = Delegation(delegator, delegate, Decimal(amount), now)
        self._delegations[delegator] = edge
        self._delegators.setdefault(delegate, set()).add(delegator)
        self._aggregate[delegate] = self._aggregate.get(delegate, Decimal(0)) + edge.amount

        logger.info(
            f"Delegation: {delegator} → {delegate} ({edge.amount})"
            + (f", replacing {previous.delegate}" if previous else "")
        )
        return edge, previous.delegate if previous else None

    def undelegate(self, delegator: str) -> Delegation:
        edge = self._remove(delegator)
        if edge is None:
            raise DelegationError(f"{delegator} has no active delegation")
        logger.info(f"Delegation removed: {delegator} → {edge.delegate}")
        return edge

    def _remove(self, delegator: str) -> Optional[Delegation]:
        edge = self._delegations.pop(delegator, None)
        if edge is None:
            return None
        incoming = self._delegators[edge.delegate]
        incoming.discard(delegator)
        remaining = self._aggregate[edge.delegate] - edge.amount
        if incoming:
            self._aggregate[edge.delegate] = remaining
        else:
            del self._delegators[edge.delegate]
            del self._aggregate[edge.delegate]
        return edge

    # ── Queries ───────────────────────────────────────────────────────

    def delegate_of(self, delegator: str) -> Optional[str]:
        edge = self._delegations.get(delegator)
        return edge.delegate if edge else None

    def get_delegation(self, delegator: str) -> Optional[Delegation]:
        return self._delegations.get(delegator)

    def delegators_of(self, delegate: str) -> Set[str]:
        return set(self._delegators.get(delegate, ()))

    def delegated_power(self, delegate: str) -> Decimal:
        """Aggregate weight currently assigned to *delegate*."""
        return self._aggregate.get(delegate, Decimal(0))

    def __len__(self) -> int:
        return len(self._delegations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegations": [e.to_dict() for e in self._delegations.values()],
            "aggregates": {d: str(w) for d, w in self._aggregate.items()},
        }

    def __repr__(self) -> str:
        return f"<DelegationRegistry edges={len(self._delegations)}>"
