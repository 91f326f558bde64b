#!/usr/bin/env python3
"""
Agent Council Registry

Default agent catalog and PATH-based availability probing.
"""
from __future__ import annotations

import dataclasses
import logging
import shutil
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from errors import ConfigError
from models import AgentDescriptor

logger = logging.getLogger("council")

DEFAULT_AGENTS: List[AgentDescriptor] = [
    AgentDescriptor(
        name="codex",
        command=("codex", "exec", "--skip-git-repo-check", "-"),
        prompt_via_stdin=True,
    ),
    AgentDescriptor(
        name="claude",
        command=("claude", "--print", "--output-format", "text"),
        prompt_via_stdin=True,
    ),
    AgentDescriptor(
        name="gemini",
        command=("gemini", "--output-format", "text"),
        prompt_via_stdin=True,
    ),
]

DEFAULT_CHAIRMAN = "gemini"


@dataclasses.dataclass(frozen=True)
class UnavailableAgent:
    """An agent whose executable did not resolve on PATH."""
    name: str
    command: str


def command_exists(cmd: str) -> bool:
    """True if `cmd` resolves to an executable on the current PATH."""
    return shutil.which(cmd) is not None


def filter_available_agents(
    descriptors: Iterable[AgentDescriptor],
) -> Tuple[List[AgentDescriptor], List[UnavailableAgent]]:
    """Partition descriptors by whether their executable resolves."""
    available: List[AgentDescriptor] = []
    unavailable: List[UnavailableAgent] = []
    for agent in descriptors:
        if command_exists(agent.executable):
            available.append(agent)
        else:
            logger.debug(f"Agent {agent.name}: '{agent.executable}' not found on PATH")
            unavailable.append(UnavailableAgent(name=agent.name, command=agent.executable))
    return available, unavailable


def find_agent(agents: Sequence[AgentDescriptor], name: str) -> Optional[AgentDescriptor]:
    for agent in agents:
        if agent.name == name:
            return agent
    return None


def select_agents(agents: Sequence[AgentDescriptor], names: Sequence[str]) -> List[AgentDescriptor]:
    """Restrict the catalog to `names`, keeping catalog (registration) order."""
    by_name: Dict[str, AgentDescriptor] = {a.name: a for a in agents}
    missing = [n for n in names if n not in by_name]
    if missing:
        raise ConfigError(f"Unknown agent(s): {', '.join(missing)}")
    wanted = set(names)
    return [a for a in agents if a.name in wanted]
