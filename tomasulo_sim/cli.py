#!/usr/bin/env python3
"""
tomasulo-sim: command line driver
=================================

Reads a program, runs the engine for the requested number of cycles and
prints the final hardware state.

Exit Codes:
  0 - Simulation completed
  1 - Simulation fault (division by zero)
  2 - Bad input or configuration
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style, init

from . import __version__
from .config import load_config
from .debug_logger import create_logger
from .engine import TomasuloEngine
from .errors import ConfigError, DivisionByZeroError, ProgramError
from .program import read_program
from .report import format_trace, print_state, state_to_dict

logger = logging.getLogger("tomasulo_sim")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="tomasulo-sim",
        description="Cycle-accurate Tomasulo scheduling simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a program file for the cycle budget given in the file
  %(prog)s program.txt

  # Read from stdin, override the budget, print the event trace
  %(prog)s - --cycles 50 --trace < program.txt

  # Use a config profile and emit JSON
  %(prog)s program.txt --config config/tomasulo.json --profile wide --json
        """,
    )
    ap.add_argument("input", nargs="?", default="-",
                    help="Program file ('-' or omitted reads stdin)")
    ap.add_argument("--cycles", "-n", type=int, metavar="T",
                    help="Override the cycle budget from the input")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    cfg = ap.add_argument_group("Configuration")
    cfg.add_argument("--config", "-c", type=Path, help="Engine config file (JSON or YAML)")
    cfg.add_argument("--local", "-l", type=Path, help="Local override file")
    cfg.add_argument("--profile", "-p", help="Profile to apply from the config file")
    cfg.add_argument("--strict", "-s", action="store_true",
                     help="Treat config warnings as errors")

    out = ap.add_argument_group("Output options")
    out.add_argument("--json", action="store_true", help="Print the final state as JSON")
    out.add_argument("--trace", action="store_true", help="Print the per-cycle event trace")
    out.add_argument("--no-color", action="store_true", help="Disable coloured output")
    out.add_argument("--debug", action="store_true",
                     help="Write a debug log (also enabled by TOMASULO_DEBUG=1)")
    out.add_argument("--log-dir", type=Path, help="Debug log directory")

    verb = ap.add_argument_group("Verbosity options")
    verb.add_argument("-v", "--verbose", action="store_true", help="Log every engine event")
    verb.add_argument("-q", "--quiet", action="store_true", help="Only log errors")

    return ap.parse_args(argv)


def _red(text: str, color: bool) -> str:
    return f"{Fore.RED}{text}{Style.RESET_ALL}" if color else text


def setup_logging(verbose: bool, quiet: bool) -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    if quiet:
        logger.setLevel(logging.ERROR)
    elif verbose:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    color = not args.no_color and sys.stdout.isatty()
    if color:
        init()
    setup_logging(args.verbose, args.quiet)

    with create_logger("run", args.log_dir, args.debug) as dbg:
        dbg.section("Configuration")
        dbg.param("input", args.input, "cli")
        try:
            config = load_config(args.config, args.local, args.profile, args.strict)
        except (ConfigError, OSError, ValueError) as e:
            logger.error(_red(f"Configuration error: {e}", color))
            dbg.result(False, 2, str(e))
            return 2
        source = "json" if config.config_file else "default"
        for section in ("machine", "stations", "latency"):
            dbg.params_from_dataclass(getattr(config, section), source, prefix=section)

        dbg.section("Input")
        try:
            prog = read_program(args.input, config.machine.register_count)
            budget = args.cycles if args.cycles is not None else prog.cycle_budget
            if budget < 0:
                raise ProgramError(f"cycle budget must be >= 0, got {budget}")
            engine = TomasuloEngine(prog.instructions, prog.registers, config)
        except (ProgramError, OSError) as e:
            logger.error(_red(f"Input error: {e}", color))
            dbg.result(False, 2, str(e))
            return 2
        dbg.param("instructions", len(prog.instructions), "input")
        dbg.param("cycle_budget", budget, "cli" if args.cycles is not None else "input")
        dbg.param("registers", prog.registers, "input")

        dbg.section("Execution")
        try:
            engine.run(budget)
        except DivisionByZeroError as e:
            dbg.events(engine.events)
            logger.error(_red(f"Simulation fault: {e}", color))
            dbg.result(False, 1, str(e))
            return 1
        dbg.events(engine.events)

        if args.trace and not args.json:
            print(format_trace(engine.events, color=color))
        if args.json:
            print(json.dumps(state_to_dict(engine, include_trace=args.trace), indent=2))
        else:
            print_state(engine, color=color)

        dbg.result(True, 0, f"Simulated {engine.cycle} cycles",
                   details={"events": len(engine.events), "idle": engine.is_idle()})
    return 0


if __name__ == "__main__":
    sys.exit(main())
