#!/usr/bin/env python3
"""
Agent Council Configuration Loading

Loads the optional YAML config file and merges CLI overrides on top.
Priority: CLI > config file > built-in defaults.
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from agents import DEFAULT_AGENTS, DEFAULT_CHAIRMAN, select_agents
from errors import ConfigError
from history import DEFAULT_HISTORY_TURNS
from models import AgentDescriptor
from pipeline import DEFAULT_TIMEOUT_SECONDS, ChairmanFallback
from process import KILL_GRACE_SECONDS

logger = logging.getLogger("council")

CONFIG_FILENAME = "council.config.yaml"
GLOBAL_CONFIG_PATH = Path.home() / ".council" / "config.yaml"


@dataclasses.dataclass
class CouncilConfig:
    """Resolved settings for a council run or REPL session."""
    agents: List[AgentDescriptor] = dataclasses.field(
        default_factory=lambda: list(DEFAULT_AGENTS)
    )
    chairman: str = DEFAULT_CHAIRMAN
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    chairman_fallback: ChairmanFallback = ChairmanFallback.NONE
    history_turns: int = DEFAULT_HISTORY_TURNS
    grace_period: float = KILL_GRACE_SECONDS
    source: Optional[Path] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any], source: Optional[Path] = None) -> "CouncilConfig":
        cfg = cls(source=source)
        if "agents" in d:
            raw_agents = d["agents"]
            if not isinstance(raw_agents, list) or not raw_agents:
                raise ConfigError(f"{source or 'config'}: 'agents' must be a non-empty list")
            try:
                cfg.agents = [AgentDescriptor.from_dict(a) for a in raw_agents]
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError(f"{source or 'config'}: invalid agent entry: {e}") from e
        if "chairman" in d:
            cfg.chairman = str(d["chairman"])
        if "timeout" in d:
            cfg.timeout = parse_timeout(d["timeout"])
        if "chairman_fallback" in d:
            cfg.chairman_fallback = parse_fallback(d["chairman_fallback"])
        if "history_turns" in d:
            cfg.history_turns = parse_history_turns(d["history_turns"])
        if "grace_period" in d:
            cfg.grace_period = parse_grace_period(d["grace_period"])
        return cfg


def parse_timeout(value: Any) -> float:
    """Timeout in seconds; must be positive."""
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid timeout '{value}': must be a number of seconds") from e
    if seconds <= 0:
        raise ConfigError(f"Invalid timeout '{value}': must be greater than zero")
    return seconds


def parse_history_turns(value: Any) -> int:
    """Earlier exchanges included in Stage 1 prompts; 0 disables history."""
    if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"Invalid history_turns '{value}': must be a whole number")
    try:
        turns = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid history_turns '{value}': must be a whole number") from e
    if turns < 0:
        raise ConfigError(f"Invalid history_turns '{value}': must be zero or more")
    return turns


def parse_grace_period(value: Any) -> float:
    """Seconds between SIGTERM and SIGKILL; must not be negative."""
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid grace_period '{value}': must be a number of seconds") from e
    if seconds < 0:
        raise ConfigError(f"Invalid grace_period '{value}': must not be negative")
    return seconds


def parse_fallback(value: Any) -> ChairmanFallback:
    try:
        return ChairmanFallback(str(value).lower())
    except ValueError as e:
        choices = ", ".join(f.value for f in ChairmanFallback)
        raise ConfigError(f"Invalid chairman_fallback '{value}' (choose from: {choices})") from e


def find_config_file(explicit: Optional[str] = None, cwd: Optional[Path] = None) -> Optional[Path]:
    """Explicit path, else ./council.config.yaml, else ~/.council/config.yaml."""
    if explicit:
        path = Path(explicit).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return path
    local = (cwd or Path.cwd()) / CONFIG_FILENAME
    if local.exists():
        return local
    if GLOBAL_CONFIG_PATH.exists():
        return GLOBAL_CONFIG_PATH
    return None


def load_config(path: Optional[Path]) -> CouncilConfig:
    """Load YAML config. Missing path means built-in defaults."""
    if path is None:
        return CouncilConfig()
    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {path}: {e}") from e
    if not isinstance(content, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    logger.debug(f"Loaded config from {path}")
    return CouncilConfig.from_dict(content, source=path)


def apply_overrides(
    cfg: CouncilConfig,
    chairman: Optional[str] = None,
    timeout: Optional[float] = None,
    chairman_fallback: Optional[str] = None,
    agent_names: Optional[List[str]] = None,
) -> CouncilConfig:
    """Return a copy of cfg with CLI values applied."""
    merged = dataclasses.replace(cfg, agents=list(cfg.agents))
    if chairman:
        merged.chairman = chairman
    if timeout is not None:
        merged.timeout = parse_timeout(timeout)
    if chairman_fallback:
        merged.chairman_fallback = parse_fallback(chairman_fallback)
    if agent_names:
        merged.agents = select_agents(merged.agents, agent_names)
    return merged
