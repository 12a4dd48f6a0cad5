"""
Instruction set of the simulated machine.

Four register-register operations, split over two functional-unit classes:

    code  mnemonic  pool   default latency
    0     Add       Add    2
    1     Sub       Add    2
    2     Mul       Mul    10
    3     Div       Mul    40
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict

from .errors import ProgramError


class Pool(Enum):
    """Functional-unit class; each class owns one station pool and one result bus."""
    ADD = "Add"
    MUL = "Mul"


class Opcode(IntEnum):
    ADD = 0
    SUB = 1
    MUL = 2
    DIV = 3

    @classmethod
    def from_code(cls, code: int) -> "Opcode":
        try:
            return cls(code)
        except ValueError:
            raise ProgramError(f"unknown opcode code: {code}") from None

    @property
    def mnemonic(self) -> str:
        return self.name.capitalize()

    @property
    def pool(self) -> Pool:
        if self in (Opcode.ADD, Opcode.SUB):
            return Pool.ADD
        return Pool.MUL


DEFAULT_LATENCIES: Dict[Opcode, int] = {
    Opcode.ADD: 2,
    Opcode.SUB: 2,
    Opcode.MUL: 10,
    Opcode.DIV: 40,
}


def _truncating_div(a: int, b: int) -> int:
    # Floor division rounds toward -inf; hardware dividers truncate toward zero.
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def execute(opcode: Opcode, a: int, b: int) -> int:
    """
    Apply an opcode to two resolved operands.

    Raises:
        ZeroDivisionError: Div with b == 0
    """
    if opcode is Opcode.ADD:
        return a + b
    if opcode is Opcode.SUB:
        return a - b
    if opcode is Opcode.MUL:
        return a * b
    if b == 0:
        raise ZeroDivisionError(f"{a} / 0")
    return _truncating_div(a, b)


@dataclass(frozen=True)
class Instruction:
    """One program instruction: opcode plus destination and two source registers."""
    opcode: Opcode
    dst: int
    src1: int
    src2: int

    def __post_init__(self):
        if isinstance(self.opcode, bool):
            raise ProgramError(f"unknown opcode code: {self.opcode!r}")
        object.__setattr__(self, "opcode", Opcode.from_code(self.opcode))
        for name in ("dst", "src1", "src2"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ProgramError(f"{name} must be a non-negative register index, got {value!r}")

    @classmethod
    def from_codes(cls, op: int, dst: int, src1: int, src2: int) -> "Instruction":
        """Build from the four integers of the input format."""
        return cls(Opcode.from_code(op), dst, src1, src2)

    @property
    def registers(self):
        return (self.dst, self.src1, self.src2)

    def __str__(self) -> str:
        return f"{self.opcode.mnemonic} R{self.dst}, R{self.src1}, R{self.src2}"
