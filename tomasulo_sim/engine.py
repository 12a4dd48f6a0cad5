"""
Tomasulo Scheduling Engine
==========================

Cycle-stepped model of dynamic scheduling with register renaming and
reservation stations. Each cycle runs four phases in a fixed order and
then advances the clock:

    dispatch -> issue -> refill -> broadcast -> cycle += 1

Later phases see what earlier phases did in the same cycle. A station
dispatched this cycle cannot broadcast this cycle (every latency is >= 1),
and a station freed by this cycle's broadcast is only reusable next cycle.

Usage:
    engine = TomasuloEngine(program, registers)
    engine.run(cycle_budget)
    print(engine.register_file.values())
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .config import EngineConfig
from .errors import ProgramError
from .isa import Instruction, Pool
from .selection import (
    BROADCAST_PRIORITY,
    DISPATCH_ORDER,
    contenders,
    first_broadcasting,
    first_free,
    first_ready,
)
from .state import (
    InstructionQueue,
    RegisterAliasTable,
    RegisterFile,
    ReservationStation,
    StationId,
    StationPool,
)
from .trace import EventKind, TraceEvent

logger = logging.getLogger(__name__)


class TomasuloEngine:
    """
    One independent simulation instance.

    Args:
        program: Instruction stream, consumed in order by the queue refill
        registers: Initial register file values, one per register
        config: Machine configuration; defaults to the reference machine
    """

    def __init__(
        self,
        program: Iterable[Instruction],
        registers: Iterable[int],
        config: Optional[EngineConfig] = None,
    ):
        self.config = (config or EngineConfig()).validate()
        self.program: List[Instruction] = list(program)
        registers = list(registers)

        reg_count = self.config.machine.register_count
        if len(registers) != reg_count:
            raise ProgramError(f"expected {reg_count} initial register values, got {len(registers)}")
        for pc, ins in enumerate(self.program):
            if not isinstance(ins, Instruction):
                raise ProgramError(f"instruction {pc}: not an Instruction: {ins!r}")
            for reg in ins.registers:
                if reg >= reg_count:
                    raise ProgramError(f"instruction {pc} ({ins}): register R{reg} out of range [0, {reg_count})")

        self.cycle = 0
        self.next_pc = 0
        self.register_file = RegisterFile(registers)
        self.rat = RegisterAliasTable(reg_count)
        self.queue = InstructionQueue(self.config.machine.queue_capacity)
        self.pools: Dict[Pool, StationPool] = {
            pool: StationPool(pool, self.config.stations.capacity(pool))
            for pool in (Pool.ADD, Pool.MUL)
        }
        self.events: List[TraceEvent] = []
        self._events_by_cycle: Dict[int, List[TraceEvent]] = {}

    # ═══════════════════════════════════════════════════════════════════════
    # Phases
    # ═══════════════════════════════════════════════════════════════════════
    def dispatch(self) -> List[ReservationStation]:
        """Start execution of at most one ready station per pool."""
        started = []
        for pool in DISPATCH_ORDER:
            st = first_ready(self.pools[pool])
            if st is None:
                continue
            st.dispatch(self.cycle, self.config.latency.of(st.opcode))
            self._record(EventKind.DISPATCH, st.sid, st.instruction,
                         broadcast_cycle=st.broadcast_cycle)
            started.append(st)
        return started

    def issue(self) -> Optional[ReservationStation]:
        """
        Move the queue head into a free station of its pool.

        Only the head is ever looked at: if its pool has no free station the
        whole queue waits, even when later instructions could go elsewhere.
        """
        ins = self.queue.head()
        if ins is None:
            return None

        st = first_free(self.pools[ins.opcode.pool], self.cycle)
        if st is None:
            self._record(EventKind.ISSUE_STALL, None, ins, pool=ins.opcode.pool.value)
            return None

        # Sources are read before dst is renamed, so "Add R1, R1, R2" sees the old R1.
        st.load(ins, self.register_file, self.rat)
        self.rat.rename(ins.dst, st.sid)
        self.queue.pop()
        self._record(EventKind.ISSUE, st.sid, ins,
                     qj=_tag(st.qj), qk=_tag(st.qk))
        return st

    def refill(self) -> int:
        """Top up the queue from the program stream; returns how many were added."""
        added = 0
        while self.next_pc < len(self.program) and not self.queue.is_full():
            self.queue.push(self.program[self.next_pc])
            self.next_pc += 1
            added += 1
        return added

    def broadcast(self) -> List[ReservationStation]:
        """
        Publish at most one result per pool, Mul bus before Add bus.

        The winner's value is captured by waiting stations and by every RAT
        entry still naming it. Losers on the same bus are pushed back one
        cycle and compete again next cycle under the same priority.
        """
        finished = []
        for pool in BROADCAST_PRIORITY:
            stations = self.pools[pool]
            winner = first_broadcasting(stations, self.cycle)
            if winner is None:
                continue

            value = winner.compute(self.cycle)
            captured = self._capture(winner.sid, value)
            registers = self.rat.resolve(winner.sid)
            for reg in registers:
                self.register_file.write(reg, value)
            self._record(EventKind.BROADCAST, winner.sid, winner.instruction,
                         value=value, registers=registers, captured=captured)

            for st in contenders(stations, winner, self.cycle):
                st.defer()
                self._record(EventKind.STALL, st.sid, st.instruction,
                             broadcast_cycle=st.broadcast_cycle, blocked_by=str(winner.sid))

            winner.release(self.cycle)
            finished.append(winner)
        return finished

    def _capture(self, sid: StationId, value: int) -> List[str]:
        captured = []
        for st in self.stations():
            if st.busy and st.capture(sid, value):
                captured.append(str(st.sid))
        return captured

    # ═══════════════════════════════════════════════════════════════════════
    # Clock
    # ═══════════════════════════════════════════════════════════════════════
    def step(self) -> None:
        """Run one full cycle."""
        self.dispatch()
        self.issue()
        self.refill()
        self.broadcast()
        self.cycle += 1

    def run(self, cycle_budget: int) -> "TomasuloEngine":
        """Step until the clock passes cycle_budget (cycles 0..cycle_budget inclusive)."""
        if cycle_budget < 0:
            raise ValueError(f"cycle budget must be >= 0, got {cycle_budget}")
        logger.debug(f"Running until cycle {cycle_budget} (now at {self.cycle})")
        while self.cycle <= cycle_budget:
            self.step()
        return self

    def is_idle(self) -> bool:
        """Nothing left anywhere: stream drained, queue empty, all stations free."""
        return (
            self.next_pc >= len(self.program)
            and not self.queue
            and all(not st.busy for st in self.stations())
        )

    # ═══════════════════════════════════════════════════════════════════════
    # Read accessors
    # ═══════════════════════════════════════════════════════════════════════
    def stations(self) -> List[ReservationStation]:
        """All stations in display order: add pool, then mul pool."""
        return list(self.pools[Pool.ADD]) + list(self.pools[Pool.MUL])

    def station(self, sid: StationId) -> ReservationStation:
        return self.pools[sid.pool][sid.index]

    def station_number(self, sid: StationId) -> int:
        """Global RS<n> number: add stations first, then mul stations."""
        if sid.pool is Pool.ADD:
            return sid.index
        return len(self.pools[Pool.ADD]) + sid.index

    @property
    def pending_instructions(self) -> List[Instruction]:
        """Program instructions not yet moved into the queue."""
        return self.program[self.next_pc:]

    def events_at(self, cycle: int) -> List[TraceEvent]:
        return list(self._events_by_cycle.get(cycle, ()))

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data copy of the full machine state."""
        return {
            "cycle": self.cycle,
            "stations": [
                {
                    "station": str(st.sid),
                    "busy": st.busy,
                    "op": st.opcode.mnemonic if st.busy else None,
                    "vj": st.vj if st.busy and st.qj is None else None,
                    "vk": st.vk if st.busy and st.qk is None else None,
                    "qj": _tag(st.qj) if st.busy else None,
                    "qk": _tag(st.qk) if st.busy else None,
                    "dispatched": st.dispatched,
                    "broadcast_cycle": st.broadcast_cycle,
                }
                for st in self.stations()
            ],
            "registers": [
                {"index": i, "value": value, "waiting_on": _tag(tag)}
                for i, (value, tag) in enumerate(zip(self.register_file.values(), self.rat))
            ],
            "queue": [str(ins) for ins in self.queue],
            "pending": len(self.pending_instructions),
        }

    def _record(self, kind: EventKind, sid: Optional[StationId],
                ins: Optional[Instruction], **detail) -> None:
        ev = TraceEvent(self.cycle, kind, sid, ins, detail)
        self.events.append(ev)
        self._events_by_cycle.setdefault(ev.cycle, []).append(ev)
        logger.debug(ev.describe())


def _tag(sid: Optional[StationId]) -> Optional[str]:
    return str(sid) if sid is not None else None
