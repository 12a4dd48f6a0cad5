import pytest

from tomasulo_sim.config import EngineConfig, LatencyConfig, MachineConfig, StationConfig
from tomasulo_sim.engine import TomasuloEngine
from tomasulo_sim.isa import Instruction, Opcode


def ins(op, dst, src1, src2):
    """Shorthand: ins("add", 2, 0, 1) -> Add R2, R0, R1"""
    return Instruction(Opcode[op.upper()], dst, src1, src2)


def make_config(queue=10, add_rs=3, mul_rs=2, registers=8, **latency):
    """Small config builder; keyword latencies use the opcode names (add=, mul=, ...)."""
    return EngineConfig(
        machine=MachineConfig(register_count=registers, queue_capacity=queue),
        stations=StationConfig(add=add_rs, mul=mul_rs),
        latency=LatencyConfig(**latency),
    )


@pytest.fixture
def build():
    """Factory: build(program, regs=None, **config_overrides) -> TomasuloEngine"""
    def _build(program, regs=None, **overrides):
        config = make_config(**overrides)
        if regs is None:
            regs = [0] * config.machine.register_count
        regs = list(regs) + [0] * (config.machine.register_count - len(regs))
        return TomasuloEngine(program, regs, config)
    return _build
