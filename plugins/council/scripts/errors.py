#!/usr/bin/env python3
"""
Agent Council Errors

Session-level exceptions and the per-run error kinds recorded on snapshots.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Why a run (or the session) did not produce usable output."""
    AGENT_UNAVAILABLE = "agent_unavailable"
    SPAWN_FAILURE = "spawn_failure"
    TIMEOUT = "timeout"
    KILLED = "killed"
    NON_ZERO_EXIT = "non_zero_exit"
    NO_USABLE_OUTPUT = "no_usable_output"
    ABORTED_BY_SESSION = "aborted_by_session"


class CouncilError(Exception):
    """Base class for session-level failures reported once to the user."""


class ConfigError(CouncilError):
    """Invalid configuration file or option."""


class NoAgentsAvailable(CouncilError):
    """Nothing left to run once unavailable agents are excluded."""

    def __init__(self, unavailable=None):
        self.unavailable = list(unavailable or [])
        detail = ""
        if self.unavailable:
            detail = " (not found: " + ", ".join(self.unavailable) + ")"
        super().__init__(f"No agents available{detail}")


class AgentUnavailable(CouncilError):
    """A required agent (usually the chairman) cannot be used."""

    def __init__(self, name: str, reason: str = "executable not found on PATH"):
        self.name = name
        self.reason = reason
        super().__init__(f"Agent '{name}' unavailable: {reason}")


class InvalidTransition(RuntimeError):
    """A run was asked to move backwards or leave a terminal state."""
