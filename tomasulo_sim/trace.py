"""
Per-cycle event records produced by the scheduling engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .isa import Instruction
from .state import StationId


class EventKind(Enum):
    ISSUE = "issue"
    ISSUE_STALL = "issue-stall"
    DISPATCH = "dispatch"
    BROADCAST = "broadcast"
    STALL = "stall"


@dataclass(frozen=True)
class TraceEvent:
    cycle: int
    kind: EventKind
    station: Optional[StationId] = None
    instruction: Optional[Instruction] = None
    detail: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def describe(self) -> str:
        """One-line human readable form, e.g. 'c12 broadcast Mul0 Mul R2, R0, R1 value=12'."""
        parts = [f"c{self.cycle}", self.kind.value]
        if self.station is not None:
            parts.append(str(self.station))
        if self.instruction is not None:
            parts.append(str(self.instruction))
        parts.extend(f"{k}={v}" for k, v in self.detail.items())
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle": self.cycle,
            "kind": self.kind.value,
            "station": str(self.station) if self.station is not None else None,
            "instruction": str(self.instruction) if self.instruction is not None else None,
            "detail": dict(self.detail),
        }
