"""
Hardware state of the simulated machine.

All structures are fixed-capacity containers owned by one engine instance:

- RegisterFile        committed register values
- RegisterAliasTable  per-register pending writer (None = value is in the RF)
- ReservationStation  one slot of a functional-unit pool
- StationPool         fixed array of stations for one Pool
- InstructionQueue    bounded FIFO between the program stream and issue
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List, Optional

from .errors import DivisionByZeroError
from .isa import Instruction, Opcode, Pool, execute


@dataclass(frozen=True)
class StationId:
    """Station tag: pool plus in-pool index."""
    pool: Pool
    index: int

    def __str__(self) -> str:
        return f"{self.pool.value}{self.index}"


# ═══════════════════════════════════════════════════════════════════════════
# Registers
# ═══════════════════════════════════════════════════════════════════════════
class RegisterFile:
    def __init__(self, values: List[int]):
        self._values = list(values)

    def read(self, index: int) -> int:
        return self._values[index]

    def write(self, index: int, value: int) -> None:
        self._values[index] = value

    def values(self) -> List[int]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)


class RegisterAliasTable:
    """
    Maps each architectural register to the station that will produce its
    next value, or None when the committed value in the RF is current.

    Renaming overwrites: only the latest writer's tag is kept, so an older
    in-flight writer never lands in the RF once it has been superseded.
    """

    def __init__(self, size: int):
        self._entries: List[Optional[StationId]] = [None] * size

    def lookup(self, reg: int) -> Optional[StationId]:
        return self._entries[reg]

    def rename(self, reg: int, station: StationId) -> None:
        self._entries[reg] = station

    def resolve(self, station: StationId) -> List[int]:
        """Clear every entry waiting on station, return the registers cleared."""
        cleared = []
        for reg, entry in enumerate(self._entries):
            if entry == station:
                self._entries[reg] = None
                cleared.append(reg)
        return cleared

    def references(self, station: StationId) -> bool:
        return station in self._entries

    def __iter__(self) -> Iterator[Optional[StationId]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


# ═══════════════════════════════════════════════════════════════════════════
# Reservation Stations
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class ReservationStation:
    sid: StationId
    busy: bool = False
    opcode: Optional[Opcode] = None
    vj: int = 0
    vk: int = 0
    qj: Optional[StationId] = None
    qk: Optional[StationId] = None
    dispatched: bool = False
    dispatch_cycle: Optional[int] = None
    broadcast_cycle: Optional[int] = None
    result: Optional[int] = None
    freed_cycle: Optional[int] = None
    instruction: Optional[Instruction] = None

    def is_ready(self) -> bool:
        """Waiting station whose operands have both resolved."""
        return self.busy and not self.dispatched and self.qj is None and self.qk is None

    def is_broadcasting(self, cycle: int) -> bool:
        return self.busy and self.dispatched and self.broadcast_cycle == cycle

    def is_allocatable(self, cycle: int) -> bool:
        # A station freed this cycle needs one cycle of turnaround.
        return not self.busy and self.freed_cycle != cycle

    def waits_on(self, station: StationId) -> bool:
        return self.qj == station or self.qk == station

    def load(self, instruction: Instruction, rf: RegisterFile, rat: RegisterAliasTable) -> None:
        """Fill the station from an issuing instruction, reading operands through the RAT."""
        self.busy = True
        self.opcode = instruction.opcode
        self.instruction = instruction
        self.qj = rat.lookup(instruction.src1)
        self.qk = rat.lookup(instruction.src2)
        self.vj = rf.read(instruction.src1) if self.qj is None else 0
        self.vk = rf.read(instruction.src2) if self.qk is None else 0
        self.dispatched = False
        self.dispatch_cycle = None
        self.broadcast_cycle = None
        self.result = None

    def dispatch(self, cycle: int, latency: int) -> None:
        self.dispatched = True
        self.dispatch_cycle = cycle
        self.broadcast_cycle = cycle + latency

    def defer(self) -> None:
        self.broadcast_cycle += 1

    def capture(self, station: StationId, value: int) -> bool:
        """Take a broadcast value for any operand waiting on station."""
        captured = False
        if self.qj == station:
            self.vj = value
            self.qj = None
            captured = True
        if self.qk == station:
            self.vk = value
            self.qk = None
            captured = True
        return captured

    def compute(self, cycle: Optional[int] = None) -> int:
        try:
            self.result = execute(self.opcode, self.vj, self.vk)
        except ZeroDivisionError as e:
            raise DivisionByZeroError(self.sid, cycle, self.vj) from e
        return self.result

    def release(self, cycle: int) -> None:
        self.busy = False
        self.dispatched = False
        self.broadcast_cycle = None
        self.freed_cycle = cycle


class StationPool:
    """Fixed array of reservation stations serving one functional-unit class."""

    def __init__(self, pool: Pool, capacity: int):
        self.pool = pool
        self.stations = [ReservationStation(StationId(pool, i)) for i in range(capacity)]

    def busy_count(self) -> int:
        return sum(1 for st in self.stations if st.busy)

    def __getitem__(self, index: int) -> ReservationStation:
        return self.stations[index]

    def __iter__(self) -> Iterator[ReservationStation]:
        return iter(self.stations)

    def __len__(self) -> int:
        return len(self.stations)


# ═══════════════════════════════════════════════════════════════════════════
# Instruction Queue
# ═══════════════════════════════════════════════════════════════════════════
class InstructionQueue:
    def __init__(self, capacity: int):
        self.capacity = capacity
        self._items: Deque[Instruction] = deque()

    def is_full(self) -> bool:
        return len(self._items) >= self.capacity

    def push(self, instruction: Instruction) -> None:
        if self.is_full():
            raise OverflowError(f"instruction queue full ({self.capacity})")
        self._items.append(instruction)

    def head(self) -> Optional[Instruction]:
        return self._items[0] if self._items else None

    def pop(self) -> Instruction:
        return self._items.popleft()

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
