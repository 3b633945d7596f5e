"""
Script Execution Engine

Implements:
  - CallTarget: base for objects reachable from action scripts, dispatching
    calldata to methods by 4-byte selector
  - ExecutionSurface: address → target registry that runs an action batch
    all-or-nothing (target state is snapshotted and reverted on any failure)
  - ScriptExecutor: executes a proposal's script exactly once, guarding
    against re-entry while actions run
"""

import copy
import re
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from eth_utils import encode_hex, to_checksum_address

from ..exceptions import (
    ActionExecutionFailedError,
    InvalidScriptError,
    ProposalAlreadyExecutedError,
)
from ..logger import get_logger
from .scripts import Action, ScriptLike, decode_call_script, decode_words, describe, selector

logger = get_logger(__name__)

_PARAMS_RE = re.compile(r"^\w+\((.*)\)$")


# ══════════════════════════════════════════════════════════════════════
#  CALL TARGETS
# ══════════════════════════════════════════════════════════════════════

class CallTarget:
    """
    Object addressable from an action script.

    Subclasses list their callable methods in EXPORTS as
    ``{"signature(uint256)": "method_name"}``; arguments are decoded as
    32-byte unsigned integers. Attributes named in UNSNAPSHOTTED are left
    out of the state snapshot taken before a batch (e.g. references to the
    engine itself).
    """

    EXPORTS: Dict[str, str] = {}
    UNSNAPSHOTTED: Tuple[str, ...] = ()

    @classmethod
    def _selector_table(cls) -> Dict[bytes, Tuple[str, int]]:
        table = cls.__dict__.get("_selectors")
        if table is None:
            table = {}
            for signature, method in cls.EXPORTS.items():
                m = _PARAMS_RE.match(signature)
                if m is None:
                    raise ValueError(f"Malformed signature: {signature}")
                arity = len([p for p in m.group(1).split(",") if p.strip()])
                table[selector(signature)] = (method, arity)
            cls._selectors = table
        return table

    def dispatch(self, calldata: bytes) -> Any:
        if len(calldata) < 4:
            raise InvalidScriptError(f"Calldata too short ({len(calldata)} bytes)")
        entry = self._selector_table().get(calldata[:4])
        if entry is None:
            raise ActionExecutionFailedError(
                f"{type(self).__name__} has no method for selector {encode_hex(calldata[:4])}"
            )
        method, arity = entry
        args = decode_words(calldata[4:])
        if len(args) != arity:
            raise InvalidScriptError(
                f"{method} expects {arity} argument(s), got {len(args)}"
            )
        return getattr(self, method)(*args)

    def snapshot_state(self) -> Dict[str, Any]:
        return copy.deepcopy(
            {k: v for k, v in vars(self).items() if k not in self.UNSNAPSHOTTED}
        )

    def restore_state(self, state: Dict[str, Any]) -> None:
        for key in [k for k in vars(self) if k not in self.UNSNAPSHOTTED]:
            del self.__dict__[key]
        self.__dict__.update(state)


# ══════════════════════════════════════════════════════════════════════
#  EXECUTION SURFACE
# ══════════════════════════════════════════════════════════════════════

class ExecutionSurface:
    """Registry of call targets; runs action batches atomically."""

    def __init__(self):
        self._targets: Dict[str, CallTarget] = {}

    def register(self, address: str, target: CallTarget) -> str:
        address = to_checksum_address(address)
        self._targets[address] = target
        logger.debug(f"Call target registered: {address} ({type(target).__name__})")
        return address

    def unregister(self, address: str) -> None:
        self._targets.pop(to_checksum_address(address), None)

    def get(self, address: str) -> Optional[CallTarget]:
        return self._targets.get(to_checksum_address(address))

    def __contains__(self, address: str) -> bool:
        return self.get(address) is not None

    def run(self, actions: Iterable[Action]) -> List[Any]:
        """
        Run *actions* in order.

        All targets are resolved before the first action runs. If any action
        raises, the state of every target touched by the batch is restored
        and ActionExecutionFailedError is raised.
        """
        plan: List[Tuple[Action, CallTarget]] = []
        for i, action in enumerate(actions):
            target = self._targets.get(action.to)
            if target is None:
                raise ActionExecutionFailedError(
                    f"Action {i}: no call target at {action.to}"
                )
            plan.append((action, target))

        saved: Dict[int, Tuple[CallTarget, Dict[str, Any]]] = {}
        for _, target in plan:
            if id(target) not in saved:
                saved[id(target)] = (target, target.snapshot_state())

        results: List[Any] = []
        for i, (action, target) in enumerate(plan):
            try:
                results.append(target.dispatch(action.calldata))
            except Exception as exc:
                for t, state in saved.values():
                    t.restore_state(state)
                logger.error(
                    f"Action {i} → {action.to} failed, reverted {len(saved)} target(s): {exc}"
                )
                raise ActionExecutionFailedError(
                    f"Action {i} ({action.to}) failed: {exc}"
                ) from exc
        return results

    def __repr__(self) -> str:
        return f"<ExecutionSurface targets={len(self._targets)}>"


# ══════════════════════════════════════════════════════════════════════
#  SCRIPT EXECUTOR
# ══════════════════════════════════════════════════════════════════════

class ScriptExecutor:
    """
    Executes a proposal's script against an ExecutionSurface.

    The proposal is flagged `executing` before any action runs, so a target
    calling back into execution of the same proposal is rejected. The flag is
    cleared when the proposal is marked executed, or when the batch reverts
    (leaving the proposal retryable).
    """

    def __init__(self, surface: Optional[ExecutionSurface] = None):
        self.surface = surface or ExecutionSurface()
        self._execution_log: List[Dict[str, Any]] = []

    def execute(self, proposal, script: ScriptLike) -> List[Any]:
        if proposal.executed:
            raise ProposalAlreadyExecutedError(f"Vote #{proposal.id} already executed")
        if proposal.executing:
            raise ProposalAlreadyExecutedError(f"Vote #{proposal.id} is being executed")

        actions = decode_call_script(script)

        proposal.executing = True
        try:
            results = self.surface.run(actions)
        except ActionExecutionFailedError:
            proposal.executing = False
            raise
        proposal.executed = True
        proposal.executing = False

        self._execution_log.append({
            "voteId": proposal.id,
            "actions": [a.to_dict() for a in actions],
            "executedAt": time.time(),
        })
        logger.info(f"Vote #{proposal.id} EXECUTED: {describe(actions)}")
        return results

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def execution_log(self) -> List[Dict[str, Any]]:
        return list(self._execution_log)

    def execution_count(self) -> int:
        return len(self._execution_log)

    def __repr__(self) -> str:
        return f"<ScriptExecutor executed={len(self._execution_log)}>"
