#!/usr/bin/env python3
"""
Agent Council REPL

Interactive loop: free-text questions go to the council, slash commands
inspect or change settings. Earlier answers feed later Stage 1 prompts.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table
from rich.text import Text

from agents import UnavailableAgent, find_agent
from config import CouncilConfig, parse_timeout
from errors import ConfigError, CouncilError
from frontend import run_interactive_session
from history import ConversationHistory
from models import AgentDescriptor, CouncilSession
from utils import truncate

logger = logging.getLogger("council")

PROMPT = "council> "

HELP_TEXT = """\
Type a question to ask the council, or one of:
  /help               Show this help
  /agents             List available and unavailable agents
  /chairman [name]    Show or set the chairman
  /timeout [seconds]  Show or set the per-agent timeout
  /history            List questions asked in this session
  /clear              Forget earlier questions and answers
  /exit               Leave the REPL
While the council is running: 1-9 or ↑/↓ focus an agent, k cancels it,
ESC cancels everything."""

SessionRunner = Callable[
    [str, CouncilConfig, Sequence[AgentDescriptor], ConversationHistory],
    Awaitable[Tuple[CouncilSession, bool]],
]


@dataclasses.dataclass
class CommandResult:
    message: str = ""
    exit: bool = False


class CouncilRepl:
    """REPL state: settings, available agents, and conversation history."""

    def __init__(
        self,
        cfg: CouncilConfig,
        available: Sequence[AgentDescriptor],
        unavailable: Sequence[UnavailableAgent] = (),
        console: Optional[Console] = None,
        runner: Optional[SessionRunner] = None,
    ):
        self.cfg = cfg
        self.available = list(available)
        self.unavailable = list(unavailable)
        self.console = console or Console()
        self.history = ConversationHistory()
        self._runner = runner

    def handle_command(self, line: str) -> CommandResult:
        """Execute one slash command."""
        parts = line.strip().split(maxsplit=1)
        command = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if command == "/help":
            return CommandResult(HELP_TEXT)
        if command in ("/exit", "/quit"):
            return CommandResult("Goodbye.", exit=True)
        if command == "/agents":
            return CommandResult(self._describe_agents())
        if command == "/chairman":
            if not arg:
                return CommandResult(f"Chairman: {self.cfg.chairman}")
            if find_agent(self.available, arg) is None:
                names = ", ".join(a.name for a in self.available)
                return CommandResult(f"Agent '{arg}' is not available (available: {names})")
            self.cfg.chairman = arg
            return CommandResult(f"Chairman set to {arg}")
        if command == "/timeout":
            if not arg:
                return CommandResult(f"Timeout: {self.cfg.timeout:g}s")
            try:
                self.cfg.timeout = parse_timeout(arg)
            except ConfigError as e:
                return CommandResult(str(e))
            return CommandResult(f"Timeout set to {self.cfg.timeout:g}s")
        if command == "/history":
            return CommandResult(self._describe_history())
        if command == "/clear":
            self.history.clear()
            return CommandResult("History cleared.")
        return CommandResult(f"Unknown command: {command} (try /help)")

    def _describe_agents(self) -> str:
        lines: List[str] = []
        for agent in self.available:
            tag = " (chairman)" if agent.name == self.cfg.chairman else ""
            lines.append(f"  ✓ {agent.name}{tag}: {' '.join(agent.command)}")
        for agent in self.unavailable:
            lines.append(f"  ✗ {agent.name}: '{agent.command}' not found on PATH")
        return "\n".join(lines) if lines else "No agents configured."

    def _describe_history(self) -> str:
        if not self.history:
            return "No questions yet."
        lines = []
        for i, entry in enumerate(self.history.entries, 1):
            question = truncate(entry.question.replace("\n", " "), 70, marker="...")
            lines.append(f"  {i}. [{entry.session.status.value}] {question}")
        return "\n".join(lines)

    async def ask(self, question: str) -> bool:
        """Run one question. Returns True if the user asked to quit."""
        runner = self._runner or run_interactive_session
        try:
            _, quit_requested = await runner(question, self.cfg, self.available, self.history)
        except CouncilError as e:
            self.console.print(Text(str(e), style="bold red"))
            return False
        return quit_requested

    async def run(self) -> int:
        self.console.print(Text("Agent Council - type /help for commands", style="bold"))
        self.console.print(self._describe_agents(), markup=False)
        while True:
            try:
                line = await asyncio.to_thread(self.console.input, PROMPT)
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                return 0
            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                result = self.handle_command(line)
                if result.message:
                    self.console.print(result.message, markup=False)
                if result.exit:
                    return 0
                continue
            if await self.ask(line):
                return 0


def agents_table(available: Sequence[AgentDescriptor], chairman: str) -> Table:
    table = Table(title="Council members")
    table.add_column("#")
    table.add_column("Agent")
    table.add_column("Command")
    table.add_column("Prompt via")
    for i, agent in enumerate(available, 1):
        name = f"{agent.name} (chairman)" if agent.name == chairman else agent.name
        table.add_row(str(i), name, " ".join(agent.command), "stdin" if agent.prompt_via_stdin else "argument")
    return table
