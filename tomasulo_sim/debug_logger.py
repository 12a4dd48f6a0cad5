"""
Debug Logger for simulation runs
================================

Writes a detailed, sectioned debug log for each run: where every config
value came from, a summary of the input program, the per-cycle event
trace and the final result. Two files are produced per run, a text log
and a structured JSON log, plus "latest" copies for easy access.

Usage:
    from tomasulo_sim.debug_logger import create_logger

    with create_logger("run", log_dir, True) as dbg:
        dbg.section("Configuration")
        dbg.params_from_dataclass(config.stations, "json", prefix="stations")
        dbg.section("Execution")
        dbg.events(engine.events)
        dbg.result(True, 0, "Simulation finished")
"""

import json
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .trace import TraceEvent


# ═══════════════════════════════════════════════════════════════════════════
# Debug Logger Class
# ═══════════════════════════════════════════════════════════════════════════
class DebugLogger:
    """Collects log lines and structured sections, then saves both on save()."""

    SOURCE_TAGS = {
        "cli": "CLI",
        "json": "FILE",
        "default": "DEF",
        "env": "ENV",
        "input": "IN",
        "computed": "CALC",
        "unknown": "???",
    }

    def __init__(
        self,
        run_name: str,
        log_dir: Optional[Path] = None,
        enabled: bool = True,
        console_echo: bool = False,
    ):
        """
        Args:
            run_name: Name used in the log file names
            log_dir: Log directory (defaults to a directory under /tmp)
            enabled: When False every call is a no-op
            console_echo: Also print each line to stdout
        """
        self.run_name = run_name
        self.enabled = enabled
        self.console_echo = console_echo
        self.start_time = datetime.now()
        self.log_dir = Path(log_dir) if log_dir else Path("/tmp") / f"tomasulo_{run_name}_debug"

        self.lines: List[str] = []
        self.sections: List[Dict[str, Any]] = []
        self.current_section: Optional[Dict[str, Any]] = None

        self.metadata: Dict[str, Any] = {
            "run": run_name,
            "start_time": self.start_time.isoformat(),
            "python_version": sys.version,
            "cwd": os.getcwd(),
            "argv": sys.argv,
        }

        self._write_header()

    def _write_header(self) -> None:
        self._log("=" * 80)
        self._log(f"  Tomasulo Simulator - {self.run_name.upper()} Debug Log")
        self._log("=" * 80)
        self._log(f"  Started: {self.start_time.strftime('%Y-%m-%d %H:%M:%S')}")
        self._log(f"  CWD:     {os.getcwd()}")
        self._log(f"  Python:  {sys.version.split()[0]}")
        self._log("=" * 80)
        self._log("")

    def _log(self, line: str) -> None:
        if not self.enabled:
            return
        self.lines.append(line)
        if self.console_echo:
            print(f"[DEBUG] {line}")

    # ═══════════════════════════════════════════════════════════════════════
    # Sections and parameters
    # ═══════════════════════════════════════════════════════════════════════
    def section(self, name: str) -> None:
        if not self.enabled:
            return
        if self.current_section:
            self.sections.append(self.current_section)

        self.current_section = {
            "name": name,
            "timestamp": datetime.now().isoformat(),
            "params": {},
            "events": [],
            "notes": [],
        }

        self._log("")
        self._log(f"┌{'─' * 78}┐")
        self._log(f"│ {name:<76} │")
        self._log(f"└{'─' * 78}┘")

    def param(self, name: str, value: Any, source: str = "unknown", note: str = "") -> None:
        """
        Log one parameter.

        Args:
            name: Parameter name
            value: Parameter value
            source: Where it came from (cli, json, default, env, input, computed)
            note: Free-form note
        """
        if not self.enabled:
            return

        value_str = json.dumps(value, default=str) if isinstance(value, (list, dict)) else str(value)
        display_value = value_str[:57] + "..." if len(value_str) > 60 else value_str

        src_tag = self.SOURCE_TAGS.get(source, source[:4].upper())
        line = f"  [{src_tag:4}] {name:<25} = {display_value}"
        if note:
            line += f"  # {note}"
        self._log(line)

        if self.current_section:
            self.current_section["params"][name] = {
                "value": value,
                "source": source,
                "note": note,
            }

    def params_from_dataclass(self, obj: Any, source: str = "unknown", prefix: str = "") -> None:
        if hasattr(obj, "__dataclass_fields__"):
            for field_name in obj.__dataclass_fields__:
                full_key = f"{prefix}.{field_name}" if prefix else field_name
                self.param(full_key, getattr(obj, field_name), source)

    # ═══════════════════════════════════════════════════════════════════════
    # Events and notes
    # ═══════════════════════════════════════════════════════════════════════
    def events(self, events: Iterable[TraceEvent]) -> int:
        """Log engine trace events grouped by cycle; returns the count."""
        if not self.enabled:
            return 0
        count = 0
        last_cycle = None
        for ev in events:
            if ev.cycle != last_cycle:
                self._log(f"  cycle {ev.cycle}:")
                last_cycle = ev.cycle
            self._log(f"    {ev.describe()}")
            if self.current_section:
                self.current_section["events"].append(ev.to_dict())
            count += 1
        return count

    def note(self, message: str) -> None:
        self._log(f"  📝 {message}")
        if self.enabled and self.current_section:
            self.current_section["notes"].append(message)

    def error(self, message: str) -> None:
        self._log(f"  ❌ ERROR: {message}")
        if self.enabled and self.current_section:
            self.current_section["notes"].append(f"[ERROR] {message}")

    # ═══════════════════════════════════════════════════════════════════════
    # Result and Save
    # ═══════════════════════════════════════════════════════════════════════
    def result(
        self,
        success: bool,
        exit_code: int = 0,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not self.enabled:
            return
        end_time = datetime.now()
        elapsed = (end_time - self.start_time).total_seconds()

        self._log("")
        self._log("=" * 80)
        if success:
            self._log(f"  ✅ SUCCESS - {message or 'Completed successfully'}")
        else:
            self._log(f"  ❌ FAILED - {message or 'Simulation failed'}")
        self._log(f"  Exit Code: {exit_code}")
        self._log(f"  Duration:  {elapsed:.2f} seconds")

        if details:
            self._log("")
            self._log("  Details:")
            for key, value in details.items():
                self._log(f"    {key}: {value}")

        self._log("=" * 80)

        self.metadata["end_time"] = end_time.isoformat()
        self.metadata["elapsed_seconds"] = elapsed
        self.metadata["success"] = success
        self.metadata["exit_code"] = exit_code

    def save(self) -> Optional[Path]:
        """
        Write the text and JSON logs.

        Returns:
            Path of the text log, or None when disabled
        """
        if not self.enabled:
            return None

        if self.current_section:
            self.sections.append(self.current_section)
            self.current_section = None

        self.log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = self.start_time.strftime("%Y%m%d_%H%M%S")
        log_file = self.log_dir / f"debug_{self.run_name}_{timestamp}.log"
        json_file = self.log_dir / f"debug_{self.run_name}_{timestamp}.json"
        json_data = {"metadata": self.metadata, "sections": self.sections}

        for text_path, json_path in (
            (log_file, json_file),
            (self.log_dir / f"debug_{self.run_name}_latest.log",
             self.log_dir / f"debug_{self.run_name}_latest.json"),
        ):
            with open(text_path, "w") as f:
                f.write("\n".join(self.lines))
            with open(json_path, "w") as f:
                json.dump(json_data, f, indent=2, default=str)

        return log_file

    # ═══════════════════════════════════════════════════════════════════════
    # Context Manager
    # ═══════════════════════════════════════════════════════════════════════
    def __enter__(self) -> "DebugLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.error(f"Exception: {exc_type.__name__}: {exc_val}")
        self.save()


def create_logger(
    run_name: str,
    log_dir: Optional[Path] = None,
    debug_enabled: bool = False,
) -> DebugLogger:
    """
    Build a DebugLogger.

    Enabled by the --debug flag or TOMASULO_DEBUG=1; TOMASULO_DEBUG_ECHO=1
    echoes every line to the console.
    """
    enabled = debug_enabled or os.environ.get("TOMASULO_DEBUG", "0") == "1"

    return DebugLogger(
        run_name=run_name,
        log_dir=log_dir,
        enabled=enabled,
        console_echo=os.environ.get("TOMASULO_DEBUG_ECHO", "0") == "1",
    )
