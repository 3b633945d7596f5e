"""
Checkpointed Governance Token

A fungible token whose balances are recorded as checkpoints, so that any
holder's balance and the total supply can be queried as of a past block.
Proposals fix a block at creation time and read eligible weight from it.

Every state-mutating call advances the block height by one and writes its
checkpoints at the new height, so a block returned by `snapshot()` is never
affected by later mutations.
"""

import bisect
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from ..exceptions import AgoraException
from ..logger import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(AgoraException):
    """Base exception for token operations."""


class InsufficientBalanceError(TokenError):
    """Raised when a holder balance is too low."""


class TransfersDisabledError(TokenError):
    """Raised when transfers are disabled by the controller."""


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every balance movement (mint and burn use the zero address)."""
    token_symbol: str
    sender: str
    recipient: str
    amount: Decimal
    block: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "block": self.block,
            "timestamp": self.timestamp,
        }


ZERO_ADDRESS = "0x" + "00" * 20


# ══════════════════════════════════════════════════════════════════════
#  CHECKPOINTS
# ══════════════════════════════════════════════════════════════════════

class _Checkpoints:
    """Ordered (block, value) history for a single balance."""

    __slots__ = ("_blocks", "_values")

    def __init__(self):
        self._blocks: List[int] = []
        self._values: List[Decimal] = []

    def latest(self) -> Decimal:
        return self._values[-1] if self._values else ZERO

    def at(self, block: int) -> Decimal:
        idx = bisect.bisect_right(self._blocks, block)
        if idx == 0:
            return ZERO
        return self._values[idx - 1]

    def write(self, block: int, value: Decimal) -> None:
        if self._blocks and self._blocks[-1] == block:
            self._values[-1] = value
        else:
            self._blocks.append(block)
            self._values.append(value)

    def __len__(self) -> int:
        return len(self._blocks)


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class SnapshotToken:
    """
    Checkpointed fungible token.

        - balance_of(address) / balance_of_at(address, block) → Decimal
        - total_supply / total_supply_at(block) → Decimal
        - generate_tokens / destroy_tokens (controller operations)
        - transfer(sender, recipient, amount)
        - snapshot() → block usable as a snapshot reference
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = 0,
        *,
        transfers_enabled: bool = True,
    ):
        if not name:
            raise TokenError("Token name cannot be empty")
        if not symbol:
            raise TokenError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise TokenError(f"Decimals must be 0-18, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.transfers_enabled = transfers_enabled

        self._block = 0
        self._balances: Dict[str, _Checkpoints] = {}
        self._supply = _Checkpoints()
        self._events: List[TransferEvent] = []

        logger.info(f"Token deployed: {symbol} ({name}), decimals={decimals}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def block_number(self) -> int:
        return self._block

    @property
    def total_supply(self) -> Decimal:
        return self._supply.latest()

    def total_supply_at(self, block: int) -> Decimal:
        return self._supply.at(block)

    def balance_of(self, address: str) -> Decimal:
        cp = self._balances.get(address)
        return cp.latest() if cp else ZERO

    def balance_of_at(self, address: str, block: int) -> Decimal:
        cp = self._balances.get(address)
        return cp.at(block) if cp else ZERO

    def snapshot(self) -> int:
        """Current block; balances at it are frozen from now on."""
        return self._block

    @property
    def holders(self) -> List[str]:
        return [a for a, cp in self._balances.items() if cp.latest() > 0]

    @property
    def events(self) -> List[TransferEvent]:
        return list(self._events)

    # ── Mutations ─────────────────────────────────────────────────────

    def _next_block(self) -> int:
        self._block += 1
        return self._block

    def _write_balance(self, address: str, block: int, value: Decimal) -> None:
        self._balances.setdefault(address, _Checkpoints()).write(block, value)

    def _emit(self, sender: str, recipient: str, amount: Decimal, block: int) -> TransferEvent:
        event = TransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
            block=block,
        )
        self._events.append(event)
        return event

    def generate_tokens(self, owner: str, amount: Decimal) -> TransferEvent:
        """Mint *amount* to *owner*."""
        amount = Decimal(amount)
        if amount <= 0:
            raise TokenError("Mint amount must be positive")
        block = self._next_block()
        self._supply.write(block, self.total_supply + amount)
        self._write_balance(owner, block, self.balance_of(owner) + amount)
        logger.debug(f"Mint: {amount} {self.symbol} → {owner} at block {block}")
        return self._emit(ZERO_ADDRESS, owner, amount, block)

    def destroy_tokens(self, owner: str, amount: Decimal) -> TransferEvent:
        """Burn *amount* from *owner*."""
        amount = Decimal(amount)
        if amount <= 0:
            raise TokenError("Burn amount must be positive")
        bal = self.balance_of(owner)
        if bal < amount:
            raise InsufficientBalanceError(f"{owner} balance {bal} < burn amount {amount}")
        block = self._next_block()
        self._supply.write(block, self.total_supply - amount)
        self._write_balance(owner, block, bal - amount)
        logger.debug(f"Burn: {amount} {self.symbol} from {owner} at block {block}")
        return self._emit(owner, ZERO_ADDRESS, amount, block)

    def transfer(self, sender: str, recipient: str, amount: Decimal) -> TransferEvent:
        """Move *amount* from *sender* to *recipient*."""
        if not self.transfers_enabled:
            raise TransfersDisabledError(f"Transfers of {self.symbol} are disabled")
        amount = Decimal(amount)
        if amount <= 0:
            raise TokenError("Transfer amount must be positive")
        if sender == recipient:
            raise TokenError("Cannot transfer to self")
        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )
        block = self._next_block()
        self._write_balance(sender, block, bal - amount)
        self._write_balance(recipient, block, self.balance_of(recipient) + amount)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return self._emit(sender, recipient, amount, block)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": str(self.total_supply),
            "blockNumber": self._block,
            "holders": len(self.holders),
            "transfersEnabled": self.transfers_enabled,
        }

    def __repr__(self) -> str:
        return f"<SnapshotToken {self.symbol} supply={self.total_supply} block={self._block}>"
