#!/usr/bin/env python3
"""
Agent Council Data Models

Data classes for council orchestration: agent descriptors, runs, immutable
run snapshots, stage results, sessions, and the events presenters consume.
"""
from __future__ import annotations

import dataclasses
import json
import logging
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from errors import ErrorKind, InvalidTransition
from utils import validate_name

logger = logging.getLogger("council")


@dataclasses.dataclass(frozen=True)
class AgentDescriptor:
    """Configuration for one agent CLI."""
    name: str
    command: Tuple[str, ...]
    prompt_via_stdin: bool = True

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError(f"Agent '{self.name}' has an empty command")
        # Accept lists from config files but store a tuple
        object.__setattr__(self, "command", tuple(self.command))

    @property
    def executable(self) -> str:
        return self.command[0]

    def argv(self, prompt: str) -> List[str]:
        """Full argument vector for one invocation."""
        if self.prompt_via_stdin:
            return list(self.command)
        return [*self.command, prompt]

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AgentDescriptor":
        name = d["name"]
        validate_name(name, "agent")
        command = d["command"]
        if isinstance(command, str):
            command = command.split()
        via_stdin = d.get("prompt_via_stdin", True)
        if not isinstance(via_stdin, bool):
            raise ValueError(f"Agent '{name}': prompt_via_stdin must be true or false, got {via_stdin!r}")
        return cls(
            name=name,
            command=tuple(command),
            prompt_via_stdin=via_stdin,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "command": list(self.command),
            "prompt_via_stdin": self.prompt_via_stdin,
        }


class AgentStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    KILLED = "killed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    AgentStatus.COMPLETED,
    AgentStatus.TIMED_OUT,
    AgentStatus.KILLED,
    AgentStatus.ERRORED,
})


class Stage(Enum):
    RESPONSES = "responses"
    RANKINGS = "rankings"
    SYNTHESIS = "synthesis"

    @property
    def title(self) -> str:
        return {
            Stage.RESPONSES: "Stage 1: Independent responses",
            Stage.RANKINGS: "Stage 2: Peer ranking",
            Stage.SYNTHESIS: "Stage 3: Chairman synthesis",
        }[self]


class SessionStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    DEGRADED = "degraded"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True)
class RunSnapshot:
    """Immutable view of an AgentRun taken at event-emission time."""
    agent: str
    stage: Stage
    status: AgentStatus
    output: str = ""
    duration_ms: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "agent": self.agent,
            "status": self.status.value,
            "output": self.output,
            "durationMs": self.duration_ms,
        }
        if self.error:
            d["error"] = self.error
        if self.error_kind is not None:
            d["errorKind"] = self.error_kind.value
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any], stage: Stage) -> "RunSnapshot":
        kind = d.get("errorKind")
        return cls(
            agent=d["agent"],
            stage=stage,
            status=AgentStatus(d["status"]),
            output=d.get("output", ""),
            duration_ms=d.get("durationMs"),
            error=d.get("error"),
            error_kind=ErrorKind(kind) if kind else None,
        )


# Allowed forward moves; everything else is a regression
_TRANSITIONS = {
    AgentStatus.PENDING: {AgentStatus.RUNNING, AgentStatus.KILLED, AgentStatus.ERRORED},
    AgentStatus.RUNNING: set(TERMINAL_STATUSES),
}


@dataclasses.dataclass
class AgentRun:
    """One invocation of one agent within one stage.

    Mutated only by the owning AgentProcess. Everyone else reads snapshots.
    """
    agent: str
    stage: Stage
    status: AgentStatus = AgentStatus.PENDING
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    _chunks: List[str] = dataclasses.field(default_factory=list, repr=False)
    _length: int = dataclasses.field(default=0, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def output(self) -> str:
        return "".join(self._chunks)

    @property
    def output_length(self) -> int:
        return self._length

    def append(self, text: str) -> None:
        if self.is_terminal:
            raise InvalidTransition(f"{self.agent}/{self.stage.value}: append after {self.status.value}")
        if text:
            self._chunks.append(text)
            self._length += len(text)

    def transition(
        self,
        status: AgentStatus,
        error: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None,
    ) -> None:
        allowed = _TRANSITIONS.get(self.status, set())
        if status not in allowed:
            raise InvalidTransition(
                f"{self.agent}/{self.stage.value}: {self.status.value} -> {status.value}"
            )
        now = time.monotonic()
        if status is AgentStatus.RUNNING:
            self.started_at = now
        else:
            self.ended_at = now
            self.error = error
            self.error_kind = error_kind
        self.status = status

    def elapsed_ms(self) -> Optional[int]:
        if self.started_at is None:
            return None
        end = self.ended_at if self.ended_at is not None else time.monotonic()
        return int((end - self.started_at) * 1000)

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            agent=self.agent,
            stage=self.stage,
            status=self.status,
            output=self.output,
            duration_ms=self.elapsed_ms(),
            error=self.error,
            error_kind=self.error_kind,
        )


@dataclasses.dataclass(frozen=True)
class StageResult:
    """Terminal snapshots of every run dispatched in one stage, in registration order."""
    stage: Stage
    runs: Tuple[RunSnapshot, ...] = ()
    skipped: bool = False

    def completed(self) -> List[RunSnapshot]:
        return [r for r in self.runs if r.status is AgentStatus.COMPLETED]

    def run_for(self, agent: str) -> Optional[RunSnapshot]:
        for run in self.runs:
            if run.agent == agent:
                return run
        return None

    @property
    def all_completed(self) -> bool:
        return all(r.status is AgentStatus.COMPLETED for r in self.runs)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.stage.value,
            "runs": [r.to_dict() for r in self.runs],
        }
        if self.skipped:
            d["skipped"] = True
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StageResult":
        stage = Stage(d["name"])
        return cls(
            stage=stage,
            runs=tuple(RunSnapshot.from_dict(r, stage) for r in d.get("runs", [])),
            skipped=d.get("skipped", False),
        )

    @classmethod
    def ordered(cls, stage: Stage, snapshots: Sequence[RunSnapshot], order: Sequence[str]) -> "StageResult":
        """Build a result whose runs follow `order` regardless of completion order."""
        rank = {name: i for i, name in enumerate(order)}
        runs = sorted(snapshots, key=lambda r: rank.get(r.agent, len(rank)))
        return cls(stage=stage, runs=tuple(runs))


@dataclasses.dataclass
class CouncilSession:
    """Full record of one question's run through all stages."""
    question: str
    stages: List[StageResult] = dataclasses.field(default_factory=list)
    answer: Optional[str] = None
    status: SessionStatus = SessionStatus.RUNNING
    error: Optional[str] = None
    chairman: Optional[str] = None
    labels: Dict[str, str] = dataclasses.field(default_factory=dict)

    def stage(self, stage: Stage) -> Optional[StageResult]:
        for result in self.stages:
            if result.stage is stage:
                return result
        return None

    def triples(self) -> set:
        """(agent, stage, status) for every recorded run."""
        return {
            (run.agent, result.stage.value, run.status.value)
            for result in self.stages
            for run in result.runs
        }

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "question": self.question,
            "stages": [s.to_dict() for s in self.stages],
            "answer": self.answer,
            "status": self.status.value,
            "chairman": self.chairman,
            "labels": dict(self.labels),
        }
        if self.error:
            d["error"] = self.error
        return d

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CouncilSession":
        return cls(
            question=d.get("question", ""),
            stages=[StageResult.from_dict(s) for s in d.get("stages", [])],
            answer=d.get("answer"),
            status=SessionStatus(d.get("status", SessionStatus.RUNNING.value)),
            error=d.get("error"),
            chairman=d.get("chairman"),
            labels=dict(d.get("labels", {})),
        )

    @classmethod
    def from_json(cls, raw: str) -> "CouncilSession":
        return cls.from_dict(json.loads(raw))


class EventKind(Enum):
    STAGE_STARTED = "stage_started"
    RUNNING = "running"
    PROGRESS = "progress"
    TERMINAL = "terminal"
    STAGE_COMPLETED = "stage_completed"
    SESSION_FINISHED = "session_finished"


@dataclasses.dataclass(frozen=True)
class CouncilEvent:
    """Message from the core to presenters. Carries snapshots only."""
    kind: EventKind
    stage: Optional[Stage] = None
    run: Optional[RunSnapshot] = None
    agents: Tuple[str, ...] = ()
    session_status: Optional[SessionStatus] = None
    result: Optional[StageResult] = None
