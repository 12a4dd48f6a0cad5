"""
Engine Configuration Manager
============================

Reads a JSON or YAML configuration file, validates it against the schema
and turns it into an EngineConfig. Supports a local override file and
named profiles, the same way the simulator runner configs do.

Usage:
    from tomasulo_sim.config import load_config

    config = load_config(Path("config/tomasulo.json"), profile="wide")
    print(config.stations.add)

Without a file, EngineConfig() is the reference machine: 8 registers,
a 10-entry instruction queue, 3 add and 2 mul stations, latencies
Add=2 Sub=2 Mul=10 Div=40.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError
from .isa import DEFAULT_LATENCIES, Opcode, Pool

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Warning/Info Messages
# ═══════════════════════════════════════════════════════════════════════════
def warn(msg: str) -> None:
    logger.warning(f"[CONFIG WARN] {msg}")


def info(msg: str) -> None:
    logger.info(f"[CONFIG] {msg}")


# ═══════════════════════════════════════════════════════════════════════════
# Configuration Schema Definition
# ═══════════════════════════════════════════════════════════════════════════
CONFIG_SCHEMA = {
    "machine": {
        "register_count": {"type": "int", "default": 8, "min": 1},
        "queue_capacity": {"type": "int", "default": 10, "min": 1},
    },
    "stations": {
        "add": {"type": "int", "default": 3, "min": 1},
        "mul": {"type": "int", "default": 2, "min": 1},
    },
    "latency": {
        "add": {"type": "int", "default": DEFAULT_LATENCIES[Opcode.ADD], "min": 1},
        "sub": {"type": "int", "default": DEFAULT_LATENCIES[Opcode.SUB], "min": 1},
        "mul": {"type": "int", "default": DEFAULT_LATENCIES[Opcode.MUL], "min": 1},
        "div": {"type": "int", "default": DEFAULT_LATENCIES[Opcode.DIV], "min": 1},
    },
}

SKIP_KEYS = {"$schema", "_comment", "_description", "profiles"}


# ═══════════════════════════════════════════════════════════════════════════
# Dataclass Definitions
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class MachineConfig:
    register_count: int = 8
    queue_capacity: int = 10


@dataclass
class StationConfig:
    add: int = 3
    mul: int = 2

    def capacity(self, pool: Pool) -> int:
        return self.add if pool is Pool.ADD else self.mul


@dataclass
class LatencyConfig:
    add: int = DEFAULT_LATENCIES[Opcode.ADD]
    sub: int = DEFAULT_LATENCIES[Opcode.SUB]
    mul: int = DEFAULT_LATENCIES[Opcode.MUL]
    div: int = DEFAULT_LATENCIES[Opcode.DIV]

    def of(self, opcode: Opcode) -> int:
        """Fixed execution latency of an opcode, in cycles."""
        return getattr(self, opcode.name.lower())


@dataclass
class EngineConfig:
    """Top-level configuration object."""
    machine: MachineConfig = field(default_factory=MachineConfig)
    stations: StationConfig = field(default_factory=StationConfig)
    latency: LatencyConfig = field(default_factory=LatencyConfig)

    # Meta
    config_file: Optional[Path] = None
    local_config_file: Optional[Path] = None
    profile_name: Optional[str] = None
    config_warnings: List[str] = field(default_factory=list)

    def validate(self) -> "EngineConfig":
        """Check value ranges; raise ConfigError on the first bad value."""
        for section, fields_ in CONFIG_SCHEMA.items():
            obj = getattr(self, section)
            for key, rule in fields_.items():
                value = getattr(obj, key)
                if not isinstance(value, int) or isinstance(value, bool):
                    raise ConfigError(f"{section}.{key} must be an integer, got {value!r}")
                if value < rule["min"]:
                    raise ConfigError(f"{section}.{key} must be >= {rule['min']}, got {value}")
        return self

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            section: {key: getattr(getattr(self, section), key) for key in fields_}
            for section, fields_ in CONFIG_SCHEMA.items()
        }


# ═══════════════════════════════════════════════════════════════════════════
# Config Validation
# ═══════════════════════════════════════════════════════════════════════════
class ConfigValidator:
    """Flags keys that the schema does not know about."""

    def __init__(self, schema: dict):
        self.schema = schema
        self.warnings: List[str] = []

    def validate(self, data: dict, schema: dict = None, path: str = "") -> bool:
        if schema is None:
            schema = self.schema

        for key in data:
            if key in SKIP_KEYS:
                continue

            full_path = f"{path}.{key}" if path else key

            if key not in schema:
                self.warnings.append(f"Unknown parameter: '{full_path}'")
            elif isinstance(data[key], dict):
                if "type" in schema[key]:
                    self.warnings.append(f"'{full_path}' expects a scalar value, not a mapping")
                else:
                    self.validate(data[key], schema[key], full_path)
            elif "type" not in schema[key]:
                self.warnings.append(f"'{full_path}' expects a mapping")

        return not self.warnings


# ═══════════════════════════════════════════════════════════════════════════
# Config Loading
# ═══════════════════════════════════════════════════════════════════════════
def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def apply_profile(data: dict, profile_name: str) -> dict:
    """Merge the named profile on top of the base settings."""
    profiles = data.get("profiles", {})
    if not isinstance(profiles, dict):
        raise ConfigError(f"'profiles' must be a mapping, got {profiles!r}")

    if profile_name not in profiles:
        available = ", ".join(profiles.keys()) or "none"
        raise ConfigError(f"Profile not found: '{profile_name}'. Available: {available}")

    profile = profiles[profile_name]
    if not isinstance(profile, dict):
        raise ConfigError(f"Profile '{profile_name}' must be a mapping, got {profile!r}")

    result = copy.deepcopy(data)
    for section, values in profile.items():
        if section.startswith("_"):
            continue
        if section in result and isinstance(values, dict):
            result[section] = deep_merge(result[section], values)
        else:
            result[section] = values

    return result


def read_config_file(path: Path) -> dict:
    """Parse a JSON or YAML (.yaml/.yml) config file into a dict."""
    with open(path) as f:
        try:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"{path}: cannot parse config: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _section(data: dict, name: str) -> dict:
    value = data[name]
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {value!r}")
    return value


def dict_to_config(data: dict) -> EngineConfig:
    config = EngineConfig()

    if "machine" in data:
        m = _section(data, "machine")
        config.machine = MachineConfig(
            register_count=m.get("register_count", 8),
            queue_capacity=m.get("queue_capacity", 10),
        )

    if "stations" in data:
        st = _section(data, "stations")
        config.stations = StationConfig(
            add=st.get("add", 3),
            mul=st.get("mul", 2),
        )

    if "latency" in data:
        lat = _section(data, "latency")
        config.latency = LatencyConfig(
            add=lat.get("add", DEFAULT_LATENCIES[Opcode.ADD]),
            sub=lat.get("sub", DEFAULT_LATENCIES[Opcode.SUB]),
            mul=lat.get("mul", DEFAULT_LATENCIES[Opcode.MUL]),
            div=lat.get("div", DEFAULT_LATENCIES[Opcode.DIV]),
        )

    return config.validate()


def default_local_path(config_path: Path) -> Path:
    """tomasulo.json -> tomasulo.local.json"""
    return config_path.with_name(f"{config_path.stem}.local{config_path.suffix}")


def load_config(
    config_path: Optional[Path] = None,
    local_path: Optional[Path] = None,
    profile: Optional[str] = None,
    strict: bool = False,
) -> EngineConfig:
    """
    Load the engine configuration.

    Args:
        config_path: Main config file (JSON or YAML). None means defaults.
        local_path: Local override file, merged on top of the main file
        profile: Profile to apply
        strict: Treat warnings as errors

    Returns:
        EngineConfig

    Raises:
        ConfigError: bad values, unknown profile, or warnings in strict mode
    """
    if config_path is None:
        if profile:
            raise ConfigError(f"Profile '{profile}' requested without a config file")
        return EngineConfig()

    config_path = Path(config_path)

    if not config_path.exists():
        if strict:
            raise ConfigError(f"Config file not found: {config_path}")
        warn(f"Config file not found: {config_path}, using defaults")
        return EngineConfig()

    data = read_config_file(config_path)

    if local_path is None:
        local_path = default_local_path(config_path)
    local_path = Path(local_path)

    if local_path.exists():
        data = deep_merge(data, read_config_file(local_path))

    if profile:
        data = apply_profile(data, profile)
        info(f"Profile applied: {profile}")

    validator = ConfigValidator(CONFIG_SCHEMA)
    validator.validate(data)

    for w in validator.warnings:
        warn(w)

    if strict and validator.warnings:
        raise ConfigError("Strict mode: configuration warnings are treated as errors: "
                          + "; ".join(validator.warnings))

    config = dict_to_config(data)
    config.config_file = config_path
    config.local_config_file = local_path if local_path.exists() else None
    config.profile_name = profile
    config.config_warnings = validator.warnings

    return config
