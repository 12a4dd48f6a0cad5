"""
State dump and trace rendering.

format_state() produces the tab-separated hardware dump:

    - reservation stations (Busy, Op, Vj, Vk, Qj, Qk, Disp)
    - register file with pending RAT tags
    - instructions still waiting in the queue

Stations are numbered RS0.. with the add pool first, and waiting tags use
the same numbering.
"""

from typing import Any, Dict, Iterable, List, Optional

from colorama import Fore, Style

from .engine import TomasuloEngine
from .state import ReservationStation, StationId
from .trace import EventKind, TraceEvent

RULE = "-" * 60
BANNER = "-------------------------- STATE ---------------------------"

EVENT_COLORS = {
    EventKind.ISSUE: Fore.GREEN,
    EventKind.ISSUE_STALL: Fore.YELLOW,
    EventKind.DISPATCH: Fore.CYAN,
    EventKind.BROADCAST: Fore.MAGENTA,
    EventKind.STALL: Fore.YELLOW,
}


def _rs(engine: TomasuloEngine, sid: Optional[StationId]) -> str:
    return f"RS{engine.station_number(sid)}" if sid is not None else ""


def format_station(engine: TomasuloEngine, st: ReservationStation) -> str:
    line = f"RS{engine.station_number(st.sid)}\t{int(st.busy)}\t"
    if not st.busy:
        return line + "\t" * 6
    cols = [
        st.opcode.mnemonic,
        str(st.vj) if st.qj is None else "",
        str(st.vk) if st.qk is None else "",
        _rs(engine, st.qj),
        _rs(engine, st.qk),
        str(int(st.dispatched)),
    ]
    return line + "\t".join(cols)


def format_stations(engine: TomasuloEngine) -> str:
    lines = ["\tBusy\tOp\tVj\tVk\tQj\tQk\tDisp"]
    lines.extend(format_station(engine, st) for st in engine.stations())
    return "\n".join(lines) + "\n"


def format_registers(engine: TomasuloEngine) -> str:
    lines = ["\tRF\tRAT"]
    for i, (value, tag) in enumerate(zip(engine.register_file.values(), engine.rat)):
        line = f"{i}:\t{value}"
        if tag is not None:
            line += f"\t{_rs(engine, tag)}"
        lines.append(line)
    return "\n".join(lines) + "\n"


def format_queue(engine: TomasuloEngine) -> str:
    out = "Instruction Queue\n\n"
    for ins in engine.queue:
        out += f"{ins}\n"
    return out


def format_state(engine: TomasuloEngine) -> str:
    """Full hardware dump as plain text."""
    parts = [
        f"\n{BANNER}\n{RULE}\n",
        format_stations(engine),
        f"\n{RULE}\n",
        format_registers(engine),
        f"\n{RULE}\n",
        format_queue(engine),
        f"\n{RULE}\n{RULE}\n",
    ]
    return "".join(parts)


def print_state(engine: TomasuloEngine, color: bool = True) -> None:
    text = format_state(engine)
    if color:
        text = text.replace(BANNER, f"{Fore.CYAN}{BANNER}{Style.RESET_ALL}")
    print(text, end="")


def format_trace(events: Iterable[TraceEvent], color: bool = False) -> str:
    """One event per line, in the order the engine produced them."""
    lines = []
    for ev in events:
        text = ev.describe()
        if color:
            text = f"{EVENT_COLORS.get(ev.kind, '')}{text}{Style.RESET_ALL}"
        lines.append(text)
    return "\n".join(lines)


def state_to_dict(engine: TomasuloEngine, include_trace: bool = False) -> Dict[str, Any]:
    """JSON-ready dump; stations and tags use the RS<n> numbering."""
    stations: List[Dict[str, Any]] = []
    for st in engine.stations():
        entry = {
            "name": f"RS{engine.station_number(st.sid)}",
            "station": str(st.sid),
            "busy": st.busy,
        }
        if st.busy:
            entry.update({
                "op": st.opcode.mnemonic,
                "vj": st.vj if st.qj is None else None,
                "vk": st.vk if st.qk is None else None,
                "qj": _rs(engine, st.qj) or None,
                "qk": _rs(engine, st.qk) or None,
                "dispatched": st.dispatched,
                "broadcast_cycle": st.broadcast_cycle,
            })
        stations.append(entry)

    data = {
        "cycle": engine.cycle,
        "stations": stations,
        "registers": [
            {"index": i, "value": value, "rat": _rs(engine, tag) or None}
            for i, (value, tag) in enumerate(zip(engine.register_file.values(), engine.rat))
        ],
        "queue": [str(ins) for ins in engine.queue],
    }
    if include_trace:
        data["trace"] = [ev.to_dict() for ev in engine.events]
    return data
