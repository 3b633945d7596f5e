"""
Tally & Quorum Evaluator

Pure predicates over a proposal's counters and its own stored thresholds.

Delegate (linear) voting, P = voting power fixed at the snapshot:
    open:    yea / P ≥ support   and  (yea + nay) / P ≥ min quorum
    closed:  yea / (yea + nay) ≥ support  and  (yea + nay) / P ≥ min quorum

Quadratic voting: yea units ≥ support (absolute), evaluated once closed.
"""

from decimal import Decimal
from typing import Union

from .proposals import Proposal

Number = Union[Decimal, int]


def is_value_pct(value: Number, total: Number, pct: Decimal) -> bool:
    """value / total ≥ pct, false for an empty total."""
    if total <= 0:
        return False
    return Decimal(value) >= Decimal(total) * pct


def linear_support_met(proposal: Proposal, is_open: bool) -> bool:
    if is_open:
        return is_value_pct(proposal.yea, proposal.voting_power, proposal.support_required)
    return is_value_pct(proposal.yea, proposal.yea + proposal.nay, proposal.support_required)


def linear_quorum_met(proposal: Proposal) -> bool:
    return is_value_pct(
        proposal.yea + proposal.nay,
        proposal.voting_power,
        proposal.min_accept_quorum or Decimal(0),
    )


def linear_can_execute(proposal: Proposal, is_open: bool) -> bool:
    if proposal.executed:
        return False
    return linear_support_met(proposal, is_open) and linear_quorum_met(proposal)


def quadratic_can_execute(proposal: Proposal, is_open: bool) -> bool:
    if proposal.executed or is_open:
        return False
    return proposal.yea >= proposal.support_required
