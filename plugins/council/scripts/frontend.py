#!/usr/bin/env python3
"""
Agent Council Front Ends

Wires a PipelineCoordinator to either the headless (log + JSON) surface or
the interactive live display with keyboard controls.
"""
from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional, Sequence, Tuple

from rich.console import Console

from config import CouncilConfig
from display import LiveDisplay, quiet_logging, render_session
from history import ConversationHistory
from interaction import InteractionController, Key, KeyEvent
from models import AgentDescriptor, CouncilEvent, CouncilSession, EventKind, SessionStatus
from pipeline import PipelineCoordinator
from terminal import KeyReader
from utils import format_duration

logger = logging.getLogger("council")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ABORTED = 130


def session_exit_code(session: CouncilSession) -> int:
    """Non-zero only when the whole session ended in an error state."""
    if session.status is SessionStatus.FAILED:
        return EXIT_ERROR
    if session.status is SessionStatus.ABORTED:
        return EXIT_ABORTED
    return EXIT_OK


def build_coordinator(
    cfg: CouncilConfig,
    agents: Sequence[AgentDescriptor],
    history: Optional[ConversationHistory] = None,
    on_event=None,
) -> PipelineCoordinator:
    return PipelineCoordinator(
        agents,
        cfg.chairman,
        cfg.timeout,
        history=history,
        on_event=on_event,
        chairman_fallback=cfg.chairman_fallback,
        history_turns=cfg.history_turns,
        grace_period=cfg.grace_period,
    )


def log_event(event: CouncilEvent) -> None:
    """Headless presenter: one log line per lifecycle change."""
    if event.kind is EventKind.STAGE_STARTED:
        logger.info(f"Stage: {event.stage.title} ({', '.join(event.agents) or 'no agents'})")
    elif event.kind is EventKind.RUNNING:
        logger.info(f"  {event.run.agent}: running")
    elif event.kind is EventKind.TERMINAL:
        run = event.run
        detail = f" - {run.error}" if run.error else ""
        logger.info(f"  {run.agent}: {run.status.value} ({format_duration(run.duration_ms)}){detail}")
    elif event.kind is EventKind.STAGE_COMPLETED:
        logger.info(f"Stage complete: {event.stage.title}")


async def run_headless_session(
    question: str,
    cfg: CouncilConfig,
    agents: Sequence[AgentDescriptor],
    history: Optional[ConversationHistory] = None,
) -> CouncilSession:
    """Run without keyboard controls. SIGINT aborts the session."""
    coordinator = build_coordinator(cfg, agents, history, on_event=log_event)
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, coordinator.abort)
    try:
        return await coordinator.run(question)
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def run_interactive_session(
    question: str,
    cfg: CouncilConfig,
    agents: Sequence[AgentDescriptor],
    history: Optional[ConversationHistory] = None,
    console: Optional[Console] = None,
) -> Tuple[CouncilSession, bool]:
    """Run with the live display and key controls.

    Returns:
        (session, quit_requested)
    """
    console = console or Console()
    display = LiveDisplay(console)
    coordinator = build_coordinator(cfg, agents, history, on_event=display.handle_event)
    controller = InteractionController(coordinator)
    display.attach(controller)

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, controller.handle, KeyEvent(Key.QUIT))
    try:
        with quiet_logging(), display.live(), KeyReader(controller.feed, loop):
            session = await coordinator.run(question)
    finally:
        loop.remove_signal_handler(signal.SIGINT)

    render_session(console, session)
    return session, controller.quit_requested
