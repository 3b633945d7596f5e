"""
Action Scripts

Codec for the encoded action sequence attached to a proposal.

Layout (CallsScript, spec id 0x00000001):

    spec_id (4 bytes)
    repeated:
        target   (20 bytes, canonical address)
        length   (4 bytes, big endian)
        calldata (length bytes)

Calldata is `selector ‖ word*` where `selector = keccak256(signature)[:4]`
and each word is a 32-byte big-endian unsigned integer.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from eth_utils import (
    decode_hex,
    encode_hex,
    keccak,
    to_canonical_address,
    to_checksum_address,
)

from ..constants import (
    ABI_WORD_LENGTH,
    CALLS_SCRIPT_SPEC_ID,
    SCRIPT_ADDRESS_LENGTH,
    SCRIPT_CALLDATA_LENGTH_BYTES,
    SCRIPT_SPEC_ID_LENGTH,
    SELECTOR_LENGTH,
)
from ..exceptions import InvalidScriptError

ScriptLike = Union[bytes, str]

SPEC_ID_BYTES = CALLS_SCRIPT_SPEC_ID.to_bytes(SCRIPT_SPEC_ID_LENGTH, "big")
EMPTY_SCRIPT = SPEC_ID_BYTES


@dataclass(frozen=True)
class Action:
    """A single call: *calldata* sent to the target at address *to*."""
    to: str
    calldata: bytes

    def __post_init__(self):
        object.__setattr__(self, "to", to_checksum_address(self.to))
        object.__setattr__(self, "calldata", bytes(self.calldata))

    @property
    def selector(self) -> bytes:
        return self.calldata[:SELECTOR_LENGTH]

    def to_dict(self):
        return {"to": self.to, "calldata": encode_hex(self.calldata)}


def as_bytes(script: ScriptLike) -> bytes:
    if isinstance(script, str):
        return decode_hex(script)
    return bytes(script)


def selector(signature: str) -> bytes:
    """4-byte function selector, e.g. ``selector("execute()")``."""
    return keccak(text=signature)[:SELECTOR_LENGTH]


def encode_call(signature: str, *args: int) -> bytes:
    """Build calldata for *signature* with unsigned integer arguments."""
    words = b"".join(int(a).to_bytes(ABI_WORD_LENGTH, "big") for a in args)
    return selector(signature) + words


def decode_words(data: bytes) -> List[int]:
    """Split ABI argument bytes into 32-byte unsigned integers."""
    if len(data) % ABI_WORD_LENGTH:
        raise InvalidScriptError(
            f"Calldata arguments length {len(data)} is not a multiple of {ABI_WORD_LENGTH}"
        )
    return [
        int.from_bytes(data[i:i + ABI_WORD_LENGTH], "big")
        for i in range(0, len(data), ABI_WORD_LENGTH)
    ]


def encode_call_script(actions: Iterable[Action]) -> bytes:
    """Encode *actions* as a CallsScript."""
    out = bytearray(SPEC_ID_BYTES)
    for action in actions:
        out += to_canonical_address(action.to)
        out += len(action.calldata).to_bytes(SCRIPT_CALLDATA_LENGTH_BYTES, "big")
        out += action.calldata
    return bytes(out)


def decode_call_script(script: ScriptLike) -> List[Action]:
    """
    Decode a CallsScript into its actions.

    An empty script decodes to no actions. Raises InvalidScriptError on an
    unknown spec id or a truncated action.
    """
    data = as_bytes(script)
    if not data:
        return []
    if len(data) < SCRIPT_SPEC_ID_LENGTH:
        raise InvalidScriptError(f"Script too short ({len(data)} bytes)")
    spec_id = int.from_bytes(data[:SCRIPT_SPEC_ID_LENGTH], "big")
    if spec_id != CALLS_SCRIPT_SPEC_ID:
        raise InvalidScriptError(f"Unknown script spec id {spec_id}")

    actions: List[Action] = []
    header = SCRIPT_ADDRESS_LENGTH + SCRIPT_CALLDATA_LENGTH_BYTES
    pos = SCRIPT_SPEC_ID_LENGTH
    while pos < len(data):
        if pos + header > len(data):
            raise InvalidScriptError(f"Truncated action header at byte {pos}")
        target = data[pos:pos + SCRIPT_ADDRESS_LENGTH]
        length = int.from_bytes(data[pos + SCRIPT_ADDRESS_LENGTH:pos + header], "big")
        start = pos + header
        end = start + length
        if end > len(data):
            raise InvalidScriptError(
                f"Truncated calldata at byte {start}: expected {length} bytes, "
                f"got {len(data) - start}"
            )
        actions.append(Action(to=to_checksum_address(target), calldata=data[start:end]))
        pos = end
    return actions


def script_hash(script: ScriptLike) -> bytes:
    """keccak256 commitment of a script."""
    return keccak(as_bytes(script))


def describe(actions: Sequence[Action]) -> str:
    return ", ".join(f"{a.to}:{encode_hex(a.selector)}" for a in actions) or "<empty>"
