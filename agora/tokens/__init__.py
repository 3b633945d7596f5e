"""
Agora Governance Token

Provides:
  - SnapshotToken : checkpointed fungible token (balances queryable at past blocks)
"""

from .snapshot_token import (
    InsufficientBalanceError,
    SnapshotToken,
    TokenError,
    TransferEvent,
    TransfersDisabledError,
    ZERO_ADDRESS,
)

__all__ = [
    "InsufficientBalanceError",
    "SnapshotToken",
    "TokenError",
    "TransferEvent",
    "TransfersDisabledError",
    "ZERO_ADDRESS",
]
