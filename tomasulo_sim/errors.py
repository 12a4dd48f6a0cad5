"""
Exception hierarchy for the Tomasulo simulator.

Input and configuration problems are rejected before the first cycle runs;
the only fault that can surface mid-simulation is a division by zero.
"""

from typing import Optional


class TomasuloError(Exception):
    """Base class for all simulator errors."""


class ProgramError(TomasuloError, ValueError):
    """Malformed program input: bad opcode, register index or layout."""


class ConfigError(TomasuloError, ValueError):
    """Invalid engine configuration."""


class DivisionByZeroError(TomasuloError, ZeroDivisionError):
    """A Div station tried to compute its result with a zero divisor."""

    def __init__(self, station, cycle: Optional[int] = None, dividend: int = 0):
        self.station = station
        self.cycle = cycle
        self.dividend = dividend
        where = f" at cycle {cycle}" if cycle is not None else ""
        super().__init__(f"division by zero in station {station}{where} ({dividend} / 0)")
