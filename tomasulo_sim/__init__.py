"""
Cycle-accurate simulator of Tomasulo dynamic scheduling with register
renaming, reservation stations and per-class result buses.
"""

__version__ = "1.0.0"

from .config import EngineConfig, load_config
from .engine import TomasuloEngine
from .errors import ConfigError, DivisionByZeroError, ProgramError, TomasuloError
from .isa import Instruction, Opcode, Pool
from .program import ProgramInput, parse_program, read_program
from .state import StationId
from .trace import EventKind, TraceEvent

__all__ = [
    "ConfigError",
    "DivisionByZeroError",
    "EngineConfig",
    "EventKind",
    "Instruction",
    "Opcode",
    "Pool",
    "ProgramError",
    "ProgramInput",
    "StationId",
    "TomasuloEngine",
    "TomasuloError",
    "TraceEvent",
    "load_config",
    "parse_program",
    "read_program",
]
