"""
Program input reader.

Input is a stream of whitespace-separated integers:

    N T
    op dst src1 src2      (N times; op: 0=Add 1=Sub 2=Mul 3=Div)
    r0 r1 ... r{R-1}      (one initial value per register)

N is the program size, T the cycle budget, R the configured register count.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from .errors import ProgramError
from .isa import Instruction

logger = logging.getLogger(__name__)


@dataclass
class ProgramInput:
    instructions: List[Instruction]
    cycle_budget: int
    registers: List[int]


def _to_ints(text: str) -> List[int]:
    values = []
    for pos, token in enumerate(text.split()):
        try:
            values.append(int(token))
        except ValueError:
            raise ProgramError(f"token {pos + 1}: expected an integer, got {token!r}") from None
    return values


def parse_program(text: str, register_count: int = 8) -> ProgramInput:
    """Parse the integer stream; see the module docstring for the layout."""
    values = _to_ints(text)
    if len(values) < 2:
        raise ProgramError("input must start with program size and cycle budget")

    size, budget = values[0], values[1]
    if size < 0:
        raise ProgramError(f"program size must be >= 0, got {size}")
    if budget < 0:
        raise ProgramError(f"cycle budget must be >= 0, got {budget}")

    expected = 2 + 4 * size + register_count
    if len(values) < expected:
        raise ProgramError(
            f"truncated input: {size} instructions and {register_count} registers "
            f"need {expected} integers, got {len(values)}"
        )
    if len(values) > expected:
        logger.warning(f"Ignoring {len(values) - expected} trailing value(s) in program input")

    instructions = []
    for i in range(size):
        op, dst, src1, src2 = values[2 + 4 * i: 6 + 4 * i]
        try:
            ins = Instruction.from_codes(op, dst, src1, src2)
        except ProgramError as e:
            raise ProgramError(f"instruction {i}: {e}") from None
        for reg in ins.registers:
            if reg >= register_count:
                raise ProgramError(f"instruction {i} ({ins}): register R{reg} out of range [0, {register_count})")
        instructions.append(ins)

    start = 2 + 4 * size
    registers = values[start:start + register_count]
    return ProgramInput(instructions, budget, registers)


def read_program(source: Union[str, Path], register_count: int = 8) -> ProgramInput:
    """Read and parse a program file; '-' reads standard input."""
    try:
        if str(source) == "-":
            text = sys.stdin.read()
        else:
            with open(source, "r", encoding="utf-8") as f:
                text = f.read()
    except UnicodeDecodeError as e:
        raise ProgramError(f"{source}: not a text file ({e})") from e
    return parse_program(text, register_count)
