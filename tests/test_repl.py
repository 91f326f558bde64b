"""REPL slash commands and question dispatch."""

import io

import pytest
from rich.console import Console

from agents import UnavailableAgent
from config import CouncilConfig
from errors import NoAgentsAvailable
from models import AgentDescriptor, CouncilSession, SessionStatus
from repl import HELP_TEXT, CouncilRepl

AVAILABLE = [
    AgentDescriptor("codex", ("codex", "exec", "-")),
    AgentDescriptor("claude", ("claude", "--print")),
]


def make_repl(runner=None):
    console = Console(file=io.StringIO(), width=100)
    return CouncilRepl(
        CouncilConfig(chairman="claude", timeout=60),
        AVAILABLE,
        [UnavailableAgent("gemini", "gemini")],
        console=console,
        runner=runner,
    )


class TestCommands:

    def test_help(self):
        assert make_repl().handle_command("/help").message == HELP_TEXT

    @pytest.mark.parametrize("command", ["/exit", "/quit", "/EXIT"])
    def test_exit(self, command):
        assert make_repl().handle_command(command).exit

    def test_agents_lists_both_groups(self):
        message = make_repl().handle_command("/agents").message
        assert "✓ claude (chairman)" in message
        assert "✓ codex" in message
        assert "✗ gemini" in message

    def test_chairman_show_and_set(self):
        repl = make_repl()
        assert repl.handle_command("/chairman").message == "Chairman: claude"
        assert repl.handle_command("/chairman codex").message == "Chairman set to codex"
        assert repl.cfg.chairman == "codex"

    def test_chairman_must_be_available(self):
        repl = make_repl()
        message = repl.handle_command("/chairman gemini").message
        assert "not available" in message
        assert repl.cfg.chairman == "claude"

    def test_timeout_show_and_set(self):
        repl = make_repl()
        assert repl.handle_command("/timeout").message == "Timeout: 60s"
        assert repl.handle_command("/timeout 12.5").message == "Timeout set to 12.5s"
        assert repl.cfg.timeout == 12.5

    def test_timeout_invalid_keeps_value(self):
        repl = make_repl()
        assert "Invalid timeout" in repl.handle_command("/timeout never").message
        assert repl.cfg.timeout == 60

    def test_history_and_clear(self):
        repl = make_repl()
        assert repl.handle_command("/history").message == "No questions yet."
        repl.history.append("What is 2+2?", CouncilSession("What is 2+2?", answer="4",
                                                           status=SessionStatus.COMPLETED))
        assert "1. [completed] What is 2+2?" in repl.handle_command("/history").message
        repl.handle_command("/clear")
        assert not repl.history

    def test_unknown(self):
        assert "Unknown command: /frobnicate" in make_repl().handle_command("/frobnicate").message


class TestAsk:

    @pytest.mark.asyncio
    async def test_runner_receives_settings_and_history(self):
        calls = []

        async def runner(question, cfg, agents, history):
            calls.append((question, cfg.chairman, [a.name for a in agents], history))
            return CouncilSession(question, answer="ok", status=SessionStatus.COMPLETED), False

        repl = make_repl(runner)
        assert await repl.ask("Say hello") is False
        assert calls == [("Say hello", "claude", ["codex", "claude"], repl.history)]

    @pytest.mark.asyncio
    async def test_quit_propagates(self):
        async def runner(question, cfg, agents, history):
            return CouncilSession(question, status=SessionStatus.ABORTED), True

        assert await make_repl(runner).ask("Say hello") is True

    @pytest.mark.asyncio
    async def test_council_error_reported(self):
        async def runner(question, cfg, agents, history):
            raise NoAgentsAvailable([])

        repl = make_repl(runner)
        assert await repl.ask("Say hello") is False
        assert repl.console.file.getvalue().strip()
