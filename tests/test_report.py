import json

from conftest import ins
from tomasulo_sim.report import (
    BANNER,
    RULE,
    format_registers,
    format_state,
    format_station,
    format_trace,
    print_state,
    state_to_dict,
)


def _busy_engine(build):
    # c1: Mul issues to RS3; c2: Mul dispatches and Add issues waiting on RS3.
    engine = build([ins("mul", 2, 0, 1), ins("add", 3, 2, 0)], [2, 5])
    return engine.run(2)


def test_fresh_engine_dump(build):
    engine = build([])
    free = "\t" * 6
    expected = (
        f"\n{BANNER}\n{RULE}\n"
        "\tBusy\tOp\tVj\tVk\tQj\tQk\tDisp\n"
        + "".join(f"RS{i}\t0\t{free}\n" for i in range(5))
        + f"\n{RULE}\n"
        "\tRF\tRAT\n"
        + "".join(f"{i}:\t0\n" for i in range(8))
        + f"\n{RULE}\n"
        "Instruction Queue\n\n"
        f"\n{RULE}\n{RULE}\n"
    )
    assert format_state(engine) == expected


def test_busy_and_waiting_station_lines(build):
    engine = _busy_engine(build)
    add0, mul0 = engine.stations()[0], engine.stations()[3]
    assert format_station(engine, add0) == "RS0\t1\tAdd\t\t2\tRS3\t\t0"
    assert format_station(engine, mul0) == "RS3\t1\tMul\t2\t5\t\t\t1"


def test_register_lines_show_pending_tags(build):
    lines = format_registers(_busy_engine(build)).splitlines()
    assert lines[0] == "\tRF\tRAT"
    assert lines[1] == "0:\t2"
    assert lines[3] == "2:\t0\tRS3"
    assert lines[4] == "3:\t0\tRS0"


def test_queue_lists_waiting_instructions(build):
    program = [ins("add", 1, 0, 0), ins("add", 2, 0, 0), ins("sub", 3, 1, 2)]
    engine = build(program, add_rs=1).run(1)
    text = format_state(engine)
    assert "Instruction Queue\n\nAdd R2, R0, R0\nSub R3, R1, R2\n" in text


def test_print_state_plain(build, capsys):
    engine = build([])
    print_state(engine, color=False)
    assert capsys.readouterr().out == format_state(engine)


def test_trace_lines(build):
    engine = build([ins("add", 2, 0, 1)], [3, 4]).run(4)
    lines = format_trace(engine.events).splitlines()
    assert lines[0] == "c1 issue Add0 Add R2, R0, R1 qj=None qk=None"
    assert lines[1] == "c2 dispatch Add0 Add R2, R0, R1 broadcast_cycle=4"
    assert lines[2].startswith("c4 broadcast Add0 Add R2, R0, R1 value=7 registers=[2]")


def test_state_to_dict_is_json_ready(build):
    engine = _busy_engine(build)
    data = state_to_dict(engine, include_trace=True)
    json.dumps(data)

    assert data["cycle"] == 3
    add0 = data["stations"][0]
    assert add0 == {
        "name": "RS0", "station": "Add0", "busy": True, "op": "Add",
        "vj": None, "vk": 2, "qj": "RS3", "qk": None,
        "dispatched": False, "broadcast_cycle": None,
    }
    assert data["stations"][1] == {"name": "RS1", "station": "Add1", "busy": False}
    assert data["stations"][3]["broadcast_cycle"] == 12
    assert data["registers"][2] == {"index": 2, "value": 0, "rat": "RS3"}
    assert data["queue"] == []
    assert [ev["kind"] for ev in data["trace"]] == ["issue", "dispatch", "issue"]


def test_state_to_dict_without_trace(build):
    assert "trace" not in state_to_dict(build([]))
