import random

import pytest

from conftest import ins, make_config
from tomasulo_sim.engine import TomasuloEngine
from tomasulo_sim.errors import DivisionByZeroError, ProgramError
from tomasulo_sim.isa import Instruction, Opcode, Pool, execute
from tomasulo_sim.state import StationId
from tomasulo_sim.trace import EventKind

ADD0, ADD1, ADD2 = (StationId(Pool.ADD, i) for i in range(3))
MUL0, MUL1 = (StationId(Pool.MUL, i) for i in range(2))


def kinds(engine, cycle, kind):
    return [ev.station for ev in engine.events_at(cycle) if ev.kind is kind]


# ═══════════════════════════════════════════════════════════════════════════
# Scenarios
# ═══════════════════════════════════════════════════════════════════════════
def test_single_add_writes_back(build):
    engine = build([ins("add", 2, 0, 1)], [3, 4])

    engine.run(3)
    st = engine.station(ADD0)
    assert engine.cycle == 4
    assert st.busy and st.dispatched
    assert st.dispatch_cycle == 2
    assert st.broadcast_cycle == 4
    assert engine.rat.lookup(2) == ADD0
    assert engine.register_file.read(2) == 0

    engine.step()
    assert engine.register_file.read(2) == 7
    assert engine.rat.lookup(2) is None
    assert not st.busy
    assert st.freed_cycle == 4
    assert engine.is_idle()


def test_queue_starts_empty_so_first_issue_is_cycle_one(build):
    engine = build([ins("add", 2, 0, 1)], [3, 4])
    engine.step()
    assert [ev.kind for ev in engine.events] == []
    assert list(engine.queue) == [ins("add", 2, 0, 1)]
    engine.step()
    assert kinds(engine, 1, EventKind.ISSUE) == [ADD0]


def test_one_dispatch_per_pool_per_cycle(build):
    program = [ins("mul", 2, 0, 1), ins("add", 3, 2, 0), ins("add", 4, 2, 1)]
    engine = build(program, [2, 5])

    engine.run(3)
    assert engine.station(ADD0).qj == MUL0
    assert engine.station(ADD1).qj == MUL0
    assert engine.station(ADD0).vk == 2
    assert engine.station(ADD1).vk == 5

    engine.run(12)
    bcast = engine.events_at(12)[0]
    assert bcast.kind is EventKind.BROADCAST
    assert bcast.detail["captured"] == ["Add0", "Add1"]
    assert engine.register_file.read(2) == 10

    engine.run(13)
    assert kinds(engine, 13, EventKind.DISPATCH) == [ADD0]
    assert not engine.station(ADD1).dispatched

    engine.run(14)
    assert kinds(engine, 14, EventKind.DISPATCH) == [ADD1]

    engine.run(16)
    assert engine.register_file.read(3) == 12
    assert engine.register_file.read(4) == 15


def test_each_pool_has_its_own_bus(build):
    # Add latency stretched so both results are due in cycle 12.
    engine = build([ins("mul", 2, 0, 1), ins("add", 3, 0, 1)], [6, 3], add=9)

    engine.run(12)
    assert kinds(engine, 12, EventKind.BROADCAST) == [MUL0, ADD0]
    assert kinds(engine, 12, EventKind.STALL) == []
    assert engine.register_file.read(2) == 18
    assert engine.register_file.read(3) == 9


def test_same_bus_collision_defers_loser_one_cycle(build):
    engine = build([ins("mul", 2, 0, 1), ins("div", 3, 0, 1)], [6, 3], mul=3, div=2)

    engine.run(4)
    assert engine.station(MUL0).broadcast_cycle == 5
    assert engine.station(MUL1).broadcast_cycle == 5

    engine.run(5)
    assert kinds(engine, 5, EventKind.BROADCAST) == [MUL0]
    assert kinds(engine, 5, EventKind.STALL) == [MUL1]
    assert engine.station(MUL1).broadcast_cycle == 6
    assert engine.register_file.read(2) == 18
    assert engine.rat.lookup(3) == MUL1

    engine.step()
    assert engine.register_file.read(3) == 2
    assert engine.rat.lookup(3) is None


def _preload(engine, sid, dst, a, b, bcast, op=Opcode.ADD):
    st = engine.station(sid)
    st.busy = st.dispatched = True
    st.opcode = op
    st.vj, st.vk = a, b
    st.dispatch_cycle = 0
    st.broadcast_cycle = bcast
    engine.rat.rename(dst, sid)
    return st


def test_same_opcode_contenders_queue_up(build):
    engine = build([])
    _preload(engine, ADD0, 1, 1, 2, 0)
    _preload(engine, ADD1, 2, 3, 4, 0)
    _preload(engine, ADD2, 3, 5, 6, 0)

    engine.step()
    assert kinds(engine, 0, EventKind.BROADCAST) == [ADD0]
    assert kinds(engine, 0, EventKind.STALL) == [ADD1, ADD2]
    assert engine.station(ADD1).broadcast_cycle == 1
    assert engine.station(ADD2).broadcast_cycle == 1

    engine.step()
    assert kinds(engine, 1, EventKind.BROADCAST) == [ADD1]
    assert engine.station(ADD2).broadcast_cycle == 2

    engine.step()
    assert kinds(engine, 2, EventKind.BROADCAST) == [ADD2]
    assert engine.register_file.values()[1:4] == [3, 7, 11]


def test_stall_does_not_touch_later_or_other_pool_stations(build):
    engine = build([])
    _preload(engine, ADD0, 1, 1, 1, 0)
    later = _preload(engine, ADD1, 2, 1, 1, 5)
    mul = _preload(engine, MUL0, 3, 2, 2, 0, op=Opcode.MUL)

    engine.step()
    assert later.broadcast_cycle == 5
    assert kinds(engine, 0, EventKind.BROADCAST) == [MUL0, ADD0]
    assert not mul.busy


def test_refill_waits_for_queue_space(build):
    program = [ins("add", r, 0, 0) for r in (1, 2, 3, 4)]
    engine = build(program, [1], queue=2, add_rs=1)

    engine.step()
    assert list(engine.queue) == program[:2]
    assert engine.pending_instructions == program[2:]

    engine.run(3)
    assert list(engine.queue) == program[1:3]
    assert engine.pending_instructions == program[3:]
    assert kinds(engine, 2, EventKind.ISSUE_STALL) == [None]
    assert kinds(engine, 3, EventKind.ISSUE_STALL) == [None]

    engine.run(4)
    assert list(engine.queue) == program[1:3]
    assert engine.register_file.read(1) == 2

    engine.step()
    assert kinds(engine, 5, EventKind.ISSUE) == [ADD0]
    assert list(engine.queue) == program[2:]
    assert engine.pending_instructions == []


def test_issue_is_strictly_in_order(build):
    program = [ins("add", 1, 0, 0), ins("add", 2, 0, 0), ins("mul", 3, 0, 0)]
    engine = build(program, [1], add_rs=1)

    engine.run(3)
    assert engine.pools[Pool.MUL].busy_count() == 0
    assert engine.queue.head() == program[1]
    assert list(engine.queue) == program[1:]


def test_sources_read_before_destination_renamed(build):
    engine = build([ins("add", 1, 0, 0), ins("add", 1, 1, 1)], [1])

    engine.run(2)
    second = engine.station(ADD1)
    assert second.qj == ADD0 and second.qk == ADD0
    assert engine.rat.lookup(1) == ADD1

    engine.run(7)
    assert engine.register_file.read(1) == 4


def test_only_latest_writer_lands_in_register_file(build):
    engine = build([ins("mul", 1, 0, 0), ins("add", 1, 0, 0)], [3])

    engine.run(5)
    assert engine.register_file.read(1) == 6
    assert engine.rat.lookup(1) is None

    engine.run(12)
    assert kinds(engine, 12, EventKind.BROADCAST) == [MUL0]
    assert engine.register_file.read(1) == 6


def test_engine_keeps_cycling_when_idle(build):
    engine = build([])
    engine.run(20)
    assert engine.cycle == 21
    assert engine.is_idle()
    assert engine.events == []


def test_division_by_zero_is_fatal(build):
    engine = build([ins("div", 2, 0, 1)], [5, 0])
    with pytest.raises(DivisionByZeroError) as exc:
        engine.run(50)
    assert exc.value.station == MUL0
    assert exc.value.cycle == 42


# ═══════════════════════════════════════════════════════════════════════════
# Construction
# ═══════════════════════════════════════════════════════════════════════════
def test_register_out_of_range_rejected():
    with pytest.raises(ProgramError, match="R8"):
        TomasuloEngine([ins("add", 8, 0, 0)], [0] * 8)


def test_register_count_mismatch_rejected():
    with pytest.raises(ProgramError, match="expected 8"):
        TomasuloEngine([], [0] * 7)


def test_non_instruction_rejected():
    with pytest.raises(ProgramError):
        TomasuloEngine([(0, 1, 2, 3)], [0] * 8)


def test_negative_budget_rejected(build):
    with pytest.raises(ValueError):
        build([]).run(-1)


def test_station_numbering(build):
    engine = build([])
    assert [engine.station_number(st.sid) for st in engine.stations()] == [0, 1, 2, 3, 4]
    assert engine.station_number(MUL1) == 4


# ═══════════════════════════════════════════════════════════════════════════
# Properties over random programs
# ═══════════════════════════════════════════════════════════════════════════
def random_program(rng, length, registers=8):
    ops = ["add", "sub", "mul"]
    return [
        ins(rng.choice(ops), rng.randrange(registers), rng.randrange(registers), rng.randrange(registers))
        for _ in range(length)
    ]


def sequential(program, regs):
    regs = list(regs)
    for i in program:
        regs[i.dst] = execute(i.opcode, regs[i.src1], regs[i.src2])
    return regs


CONFIGS = [
    {},
    {"queue": 3, "add_rs": 1, "mul_rs": 1},
    {"queue": 4, "add_rs": 2, "mul_rs": 2, "add": 1, "sub": 1, "mul": 3},
]


@pytest.mark.parametrize("params", CONFIGS)
@pytest.mark.parametrize("seed", [1, 7, 42])
def test_invariants_hold_every_cycle(params, seed):
    rng = random.Random(seed)
    program = random_program(rng, 25)
    regs = [rng.randint(1, 5) for _ in range(8)]
    engine = TomasuloEngine(program, regs, make_config(**params))

    last_broadcast = {}
    dispatched_at = {}
    stalls = {}
    while not engine.is_idle() or engine.cycle < 5:
        cycle = engine.cycle
        engine.step()
        events = engine.events_at(cycle)

        broadcasts = [ev.station for ev in events if ev.kind is EventKind.BROADCAST]
        assert len({sid.pool for sid in broadcasts}) == len(broadcasts)

        for ev in events:
            if ev.kind is EventKind.DISPATCH:
                dispatched_at[ev.station] = cycle
                stalls[ev.station] = 0
            elif ev.kind is EventKind.STALL:
                stalls[ev.station] += 1
            elif ev.kind is EventKind.ISSUE:
                assert last_broadcast.get(ev.station, -1) < cycle

        for sid in broadcasts:
            last_broadcast[sid] = cycle
            latency = engine.config.latency.of(engine.station(sid).opcode)
            assert cycle == dispatched_at[sid] + latency + stalls[sid]
            assert not engine.rat.references(sid)
            for st in engine.stations():
                assert not (st.busy and st.waits_on(sid))
            assert not engine.station(sid).busy

        assert engine.cycle < 2000

    assert engine.register_file.values() == sequential(program, regs)


def test_issue_order_matches_program_order(build):
    rng = random.Random(3)
    program = random_program(rng, 30)
    engine = build(program, [1, 2, 3, 4, 5, 6, 7, 8], queue=4, add_rs=1, mul_rs=1)
    engine.run(1500)
    issued = [ev.instruction for ev in engine.events if ev.kind is EventKind.ISSUE]
    assert issued == program


def test_repeated_runs_are_identical():
    rng = random.Random(11)
    program = random_program(rng, 20)
    regs = [rng.randint(1, 9) for _ in range(8)]

    first = TomasuloEngine(program, regs).run(150)
    second = TomasuloEngine(program, regs).run(150)

    assert first.snapshot() == second.snapshot()
    assert first.events == second.events


def test_integer_opcode_runs_like_enum_opcode(build):
    engine = build([Instruction(0, 2, 0, 1)], [3, 4]).run(4)
    assert engine.register_file.read(2) == 7


def test_events_at_matches_full_log(build):
    program = [ins("add", 1, 0, 0), ins("add", 2, 0, 0), ins("mul", 3, 1, 2)]
    engine = build(program, [1], add_rs=1).run(30)
    for cycle in range(engine.cycle):
        assert engine.events_at(cycle) == [ev for ev in engine.events if ev.cycle == cycle]
    engine.events_at(3).clear()
    assert engine.events_at(3) == [ev for ev in engine.events if ev.cycle == 3]
