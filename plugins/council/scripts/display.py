#!/usr/bin/env python3
"""
Agent Council Display

rich-based rendering of council progress. Everything shown here comes from
immutable run snapshots delivered with core events.
"""
from __future__ import annotations

import contextlib
import logging
import time
from typing import Dict, Iterator, List, Optional, Tuple

from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from models import (
    AgentStatus, CouncilEvent, CouncilSession, EventKind, RunSnapshot,
    SessionStatus, Stage,
)
from utils import format_duration, tail_lines

logger = logging.getLogger("council")

FOCUS_MARKER = "➤"
PREVIEW_LINES = 12
REFRESH_PER_SECOND = 8

STATUS_STYLES = {
    AgentStatus.PENDING: "dim",
    AgentStatus.RUNNING: "yellow",
    AgentStatus.COMPLETED: "green",
    AgentStatus.TIMED_OUT: "magenta",
    AgentStatus.KILLED: "red",
    AgentStatus.ERRORED: "red",
}

STATUS_LABELS = {
    AgentStatus.TIMED_OUT: "timeout",
}

KEY_HELP = "ESC cancel all · k cancel focused agent · ↑/↓ or 1-9 focus · q quit"


def status_text(status: AgentStatus) -> Text:
    return Text(STATUS_LABELS.get(status, status.value), style=STATUS_STYLES[status])


class LiveDisplay:
    """Live status view for one council session.

    Feed it core events through `handle_event`; it keeps the latest snapshot
    per agent for the active stage.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.stage: Optional[Stage] = None
        self.order: List[str] = []
        self._runs: Dict[str, Tuple[RunSnapshot, float]] = {}
        self._controller = None
        self._live: Optional[Live] = None

    def attach(self, controller) -> None:
        """Use the interaction controller's focus for highlighting."""
        self._controller = controller

    @contextlib.contextmanager
    def live(self) -> Iterator["LiveDisplay"]:
        with Live(
            get_renderable=self.render,
            console=self.console,
            refresh_per_second=REFRESH_PER_SECOND,
            transient=False,
        ) as live:
            self._live = live
            try:
                yield self
            finally:
                live.refresh()
                self._live = None

    def _print(self, *objects) -> None:
        target = self._live.console if self._live else self.console
        target.print(*objects)

    def handle_event(self, event: CouncilEvent) -> None:
        if event.kind is EventKind.STAGE_STARTED:
            self.stage = event.stage
            self.order = list(event.agents)
            self._runs = {}
            if self._controller is not None:
                self._controller.sync()
        elif event.run is not None:
            self._runs[event.run.agent] = (event.run, time.monotonic())
        elif event.kind is EventKind.STAGE_COMPLETED and event.result is not None:
            summary = ", ".join(
                f"{r.agent} {STATUS_LABELS.get(r.status, r.status.value)}" for r in event.result.runs
            )
            self._print(
                Text.assemble(
                    ("✓ Stage complete: ", "bold green"),
                    (event.stage.title if event.stage else "", "bold"),
                    (f"  ({summary or 'no runs'})", "dim"),
                )
            )
        elif event.kind is EventKind.SESSION_FINISHED:
            if event.session_status is SessionStatus.ABORTED:
                self._print(Text("✗ Aborted by user", style="bold red"))

    def _focus_index(self) -> int:
        if self._controller is None:
            return 0
        return self._controller.focus.index

    def _duration(self, snap: RunSnapshot, received: float) -> str:
        if snap.duration_ms is None:
            return "-"
        if snap.status is AgentStatus.RUNNING:
            return format_duration(snap.duration_ms + int((time.monotonic() - received) * 1000))
        return format_duration(snap.duration_ms)

    def render(self):
        header = Text.assemble(
            ("Stage: ", "bold"),
            (self.stage.title if self.stage else "starting", "bold cyan"),
        )
        table = Table(show_header=False, box=None, padding=(0, 1))
        focus = self._focus_index()
        for i, name in enumerate(self.order):
            entry = self._runs.get(name)
            marker = FOCUS_MARKER if i == focus else " "
            if entry is None:
                table.add_row(marker, f"[{i + 1}]", name, status_text(AgentStatus.PENDING), "-", "")
                continue
            snap, received = entry
            detail = f"{len(snap.output)} chars"
            if snap.error:
                detail = snap.error
            table.add_row(
                marker, f"[{i + 1}]", name, status_text(snap.status),
                self._duration(snap, received), escape(detail),
            )

        parts = [header, table, Text(KEY_HELP, style="dim")]
        if self.order:
            name = self.order[min(focus, len(self.order) - 1)]
            entry = self._runs.get(name)
            preview = tail_lines(entry[0].output, PREVIEW_LINES) if entry else ""
            parts.append(
                Panel(
                    Text(preview or "(no output yet)"),
                    title=f"Focused agent output: {name}",
                    title_align="left",
                    border_style="blue",
                )
            )
        return Group(*parts)


@contextlib.contextmanager
def quiet_logging(level: int = logging.WARNING) -> Iterator[None]:
    """Raise the council logger level while the live view owns the terminal."""
    previous = logger.level
    if logger.getEffectiveLevel() < level:
        logger.setLevel(level)
    try:
        yield
    finally:
        logger.setLevel(previous)


def render_session(console: Console, session: CouncilSession) -> None:
    """Print the final outcome: answer, or why there is none."""
    failures = [
        (result.stage, run)
        for result in session.stages
        for run in result.runs
        if run.status is not AgentStatus.COMPLETED
    ]
    for stage, run in failures:
        console.print(
            Text.assemble(
                (f"  {run.agent}", "bold"),
                (f" [{stage.value}] ", "dim"),
                status_text(run.status),
                (f"  {run.error}" if run.error else "", "dim"),
            )
        )

    if session.answer:
        title = f"Council answer (chairman: {session.chairman})"
        if session.status is SessionStatus.DEGRADED:
            title += " (degraded)"
        console.print(Panel(Markdown(session.answer), title=title, title_align="left", border_style="green"))
    elif session.status is SessionStatus.ABORTED:
        console.print(Text("Session aborted; no answer.", style="red"))
    else:
        console.print(Text(f"Session {session.status.value}: {session.error or 'no answer'}", style="bold red"))
