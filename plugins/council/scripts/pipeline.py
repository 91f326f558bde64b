#!/usr/bin/env python3
"""
Agent Council Pipeline

Drives one question through the three-stage council protocol:

1. Independent responses: every available agent answers the question.
2. Peer ranking: every agent that answered reviews all anonymised answers.
3. Chairman synthesis: the chairman merges answers and reviews.

Stages run strictly in sequence; the runs inside a stage run concurrently.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from agents import find_agent
from errors import AgentUnavailable, ConfigError, ErrorKind, NoAgentsAvailable
from history import DEFAULT_HISTORY_TURNS, ConversationHistory
from models import (
    AgentDescriptor, AgentStatus, CouncilEvent, CouncilSession, EventKind,
    SessionStatus, Stage, StageResult,
)
from process import KILL_GRACE_SECONDS, AgentProcess
from prompts import (
    assign_labels, build_ranking_prompt, build_response_prompt,
    build_synthesis_prompt, parse_ranking,
)
from utils import write_live

logger = logging.getLogger("council")

DEFAULT_TIMEOUT_SECONDS = 300.0

EventCallback = Callable[[CouncilEvent], None]


class ChairmanFallback(Enum):
    """What to do when the configured chairman cannot run Stage 3."""
    NONE = "none"  # fail the session
    AUTO = "auto"  # substitute the best-ranked surviving agent


@dataclasses.dataclass
class CouncilState:
    """Live state shared by the coordinator and the interaction controller.

    The coordinator replaces `processes` when a stage starts. The controller
    only reads it and calls `cancel()` on its members.
    """
    stage: Optional[Stage] = None
    processes: List[AgentProcess] = dataclasses.field(default_factory=list)
    aborted: bool = False


class PipelineCoordinator:
    """Runs one council session. Create a new coordinator per question."""

    def __init__(
        self,
        agents: Sequence[AgentDescriptor],
        chairman: str,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
        history: Optional[ConversationHistory] = None,
        on_event: Optional[EventCallback] = None,
        chairman_fallback: ChairmanFallback = ChairmanFallback.NONE,
        history_turns: int = DEFAULT_HISTORY_TURNS,
        grace_period: float = KILL_GRACE_SECONDS,
    ):
        self.agents = list(agents)
        if not self.agents:
            raise NoAgentsAvailable()
        names = [a.name for a in self.agents]
        if len(set(names)) != len(names):
            raise ConfigError(f"Duplicate agent names: {names}")
        if find_agent(self.agents, chairman) is None:
            if chairman_fallback is ChairmanFallback.NONE:
                raise AgentUnavailable(chairman)
            logger.warning(f"Chairman '{chairman}' is not available; a substitute will be chosen")
        self.chairman = chairman
        self.timeout = timeout
        self.history = history
        self.chairman_fallback = chairman_fallback
        self.history_turns = history_turns
        self.grace_period = grace_period
        self.state = CouncilState()
        self._on_event = on_event
        self._session: Optional[CouncilSession] = None

    @property
    def order(self) -> List[str]:
        return [a.name for a in self.agents]

    def abort(self) -> None:
        """Cancel every live run and stop before the next stage."""
        if self.state.aborted:
            return
        self.state.aborted = True
        logger.info("Session abort requested")
        write_live("ABORT requested")
        for proc in self.state.processes:
            proc.cancel(ErrorKind.ABORTED_BY_SESSION)

    async def run(self, question: str) -> CouncilSession:
        if self._session is not None:
            raise RuntimeError("PipelineCoordinator runs a single session")
        session = CouncilSession(question=question, chairman=self.chairman)
        self._session = session

        # Stage 1: independent responses
        history_context = ""
        if self.history is not None:
            history_context = self.history.context_window(self.history_turns)
        prompt = build_response_prompt(question, history_context)
        responses = await self._run_stage(Stage.RESPONSES, [(a, prompt) for a in self.agents])
        session.stages.append(responses)
        if self.state.aborted:
            return self._finalize_aborted(session)

        # Stage 2: peer ranking among agents that answered
        answered = responses.completed()
        labels = assign_labels(answered)
        session.labels = labels
        outputs = {r.agent: r.output for r in answered}
        jobs = []
        for agent in self.agents:
            if agent.name in outputs:
                jobs.append((agent, build_ranking_prompt(question, labels, outputs)))
        excluded = [a.name for a in self.agents if a.name not in outputs]
        if excluded:
            logger.info(f"Excluded from later stages: {', '.join(excluded)}")
        rankings = await self._run_stage(Stage.RANKINGS, jobs)
        session.stages.append(rankings)
        if self.state.aborted:
            return self._finalize_aborted(session)

        # Stage 3: chairman synthesis
        chairman, reason = self._resolve_chairman(responses, rankings, labels)
        if chairman is None:
            session.stages.append(StageResult(stage=Stage.SYNTHESIS, skipped=True))
            return self._finalize(session, SessionStatus.FAILED, error=reason)
        session.chairman = chairman.name
        label_of = {agent: label for label, agent in labels.items()}
        reviews = {label_of[r.agent]: r.output for r in rankings.completed()}
        synthesis_prompt = build_synthesis_prompt(question, labels, outputs, reviews)
        synthesis = await self._run_stage(Stage.SYNTHESIS, [(chairman, synthesis_prompt)])
        session.stages.append(synthesis)
        if self.state.aborted:
            return self._finalize_aborted(session)

        final = synthesis.runs[0]
        if final.status is not AgentStatus.COMPLETED:
            return self._finalize(
                session, SessionStatus.FAILED,
                error=f"Chairman '{chairman.name}' {final.status.value}: {final.error or 'no answer'}",
            )
        session.answer = final.output.strip()
        degraded = (
            chairman.name != self.chairman
            or not responses.all_completed
            or not rankings.all_completed
        )
        return self._finalize(
            session, SessionStatus.DEGRADED if degraded else SessionStatus.COMPLETED
        )

    async def _run_stage(
        self, stage: Stage, jobs: Sequence[Tuple[AgentDescriptor, str]]
    ) -> StageResult:
        """Start every job concurrently and wait until all runs are terminal."""
        processes = [
            AgentProcess(agent, stage, on_event=self._emit, grace_period=self.grace_period)
            for agent, _ in jobs
        ]
        self.state.stage = stage
        self.state.processes = processes
        names = tuple(p.name for p in processes)
        logger.info(f"{stage.title}: {len(processes)} run(s)")
        write_live("=" * 40)
        write_live(f"{stage.title.upper()} ({', '.join(names) or 'no agents'})")
        write_live("=" * 40)
        self._emit(CouncilEvent(kind=EventKind.STAGE_STARTED, stage=stage, agents=names))
        if self.state.aborted:
            # Abort arrived before this stage's processes existed
            for proc in processes:
                proc.cancel(ErrorKind.ABORTED_BY_SESSION)

        snapshots = await asyncio.gather(
            *(proc.start(prompt, self.timeout) for proc, (_, prompt) in zip(processes, jobs))
        )
        result = StageResult.ordered(stage, snapshots, self.order)
        for run in result.runs:
            logger.debug(f"{stage.value}/{run.agent}: {run.status.value} ({run.duration_ms}ms)")
        self._emit(CouncilEvent(kind=EventKind.STAGE_COMPLETED, stage=stage, result=result))
        return result

    def _resolve_chairman(
        self, responses: StageResult, rankings: StageResult, labels: Dict[str, str]
    ) -> Tuple[Optional[AgentDescriptor], Optional[str]]:
        """Pick the Stage 3 agent. Returns (agent, None) or (None, failure reason)."""
        answered = {r.agent for r in responses.completed()}
        survivors = [a for a in self.agents if a.name in answered]
        chairman = find_agent(survivors, self.chairman)
        if chairman is not None:
            return chairman, None

        own_run = responses.run_for(self.chairman)
        if own_run is None:
            reason = f"Chairman '{self.chairman}' is not available"
        else:
            reason = f"Chairman '{self.chairman}' did not complete stage 1 ({own_run.status.value})"
        if self.chairman_fallback is ChairmanFallback.NONE:
            return None, reason
        if not survivors:
            return None, f"{reason}; no surviving agent to substitute"

        substitute = best_ranked(survivors, rankings, labels)
        logger.warning(f"{reason}; substituting '{substitute.name}' as chairman")
        write_live(f"Chairman fallback: {substitute.name}")
        return substitute, None

    def _finalize_aborted(self, session: CouncilSession) -> CouncilSession:
        done = {r.stage for r in session.stages}
        for stage in Stage:
            if stage not in done:
                session.stages.append(StageResult(stage=stage, skipped=True))
        return self._finalize(session, SessionStatus.ABORTED, error="Aborted by user")

    def _finalize(
        self, session: CouncilSession, status: SessionStatus, error: Optional[str] = None
    ) -> CouncilSession:
        session.status = status
        session.error = error
        if error:
            logger.info(f"Session {status.value}: {error}")
        else:
            logger.info(f"Session {status.value}")
        write_live(f"SESSION {status.value.upper()}{f': {error}' if error else ''}")
        if self.history is not None:
            self.history.append(session.question, session)
        self._emit(CouncilEvent(kind=EventKind.SESSION_FINISHED, session_status=status))
        return session

    def _emit(self, event: CouncilEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)


def best_ranked(
    candidates: Sequence[AgentDescriptor], rankings: StageResult, labels: Dict[str, str]
) -> AgentDescriptor:
    """Candidate with the best average peer-ranking position.

    Candidates whose own Stage 2 run completed come first; ties and unranked
    agents fall back to registration order.
    """
    positions: Dict[str, List[int]] = {}
    for review in rankings.completed():
        for pos, label in enumerate(parse_ranking(review.output, list(labels)), 1):
            positions.setdefault(labels[label], []).append(pos)

    reviewed = {r.agent for r in rankings.completed()}

    def key(item: Tuple[int, AgentDescriptor]):
        index, agent = item
        ranks = positions.get(agent.name)
        average = sum(ranks) / len(ranks) if ranks else float("inf")
        return (agent.name not in reviewed, average, index)

    return min(enumerate(candidates), key=key)[1]


async def run_question(
    question: str,
    history: Optional[ConversationHistory],
    agents: Sequence[AgentDescriptor],
    chairman: str,
    timeout: Optional[float],
    **kwargs,
) -> CouncilSession:
    """Run one question through a fresh coordinator."""
    coordinator = PipelineCoordinator(
        agents, chairman, timeout, history=history, **kwargs
    )
    return await coordinator.run(question)
