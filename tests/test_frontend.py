"""Headless surface, live display rendering, and the council command line."""

import io
import json
import logging

import pytest
import yaml
from rich.console import Console

from config import CouncilConfig
from display import FOCUS_MARKER, LiveDisplay, render_session
from frontend import (
    EXIT_ABORTED, EXIT_ERROR, EXIT_OK, run_headless_session, session_exit_code,
)
from models import (
    AgentStatus, CouncilEvent, CouncilSession, EventKind, RunSnapshot,
    SessionStatus, Stage, StageResult,
)

import council


def make_console():
    return Console(file=io.StringIO(), width=120, force_terminal=False)


@pytest.mark.parametrize("status,code", [
    (SessionStatus.COMPLETED, EXIT_OK),
    (SessionStatus.DEGRADED, EXIT_OK),
    (SessionStatus.FAILED, EXIT_ERROR),
    (SessionStatus.ABORTED, EXIT_ABORTED),
])
def test_exit_codes(status, code):
    assert session_exit_code(CouncilSession("q", status=status)) == code


@pytest.mark.asyncio
async def test_headless_session_logs_stages(three_agents, caplog):
    caplog.set_level(logging.INFO, logger="council")
    cfg = CouncilConfig(agents=three_agents, chairman="gemini", timeout=60)
    session = await run_headless_session("Say hello", cfg, three_agents)
    assert session.status is SessionStatus.COMPLETED
    assert session.answer.strip() == "SYNTHESIS by gemini"
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Stage: Stage 1") for m in messages)
    assert any(m.startswith("Stage complete: Stage 3") for m in messages)
    assert any("codex: completed" in m for m in messages)


class TestLiveDisplay:

    def _running(self, agent, output=""):
        return RunSnapshot(agent, Stage.RESPONSES, AgentStatus.RUNNING, output, 500)

    def test_render_shows_focus_and_preview(self):
        display = LiveDisplay(make_console())
        display.handle_event(CouncilEvent(EventKind.STAGE_STARTED, Stage.RESPONSES, agents=("codex", "claude")))
        display.handle_event(CouncilEvent(EventKind.PROGRESS, Stage.RESPONSES, run=self._running("codex", "line one\nline two")))

        console = make_console()
        console.print(display.render())
        text = console.file.getvalue()
        assert "Stage: Stage 1: Independent responses" in text
        assert FOCUS_MARKER in text and "[1]" in text
        assert "Focused agent output: codex" in text
        assert "line two" in text
        assert "pending" in text

    def test_stage_complete_and_abort_lines(self):
        console = make_console()
        display = LiveDisplay(console)
        result = StageResult(Stage.RESPONSES, (
            RunSnapshot("codex", Stage.RESPONSES, AgentStatus.TIMED_OUT),
        ))
        display.handle_event(CouncilEvent(EventKind.STAGE_COMPLETED, Stage.RESPONSES, result=result))
        display.handle_event(CouncilEvent(EventKind.SESSION_FINISHED, session_status=SessionStatus.ABORTED))
        text = console.file.getvalue()
        assert "Stage complete: Stage 1" in text
        assert "codex timeout" in text
        assert "Aborted by user" in text


class TestRenderSession:

    def test_degraded_answer(self):
        console = make_console()
        session = CouncilSession(
            "q",
            stages=[StageResult(Stage.RESPONSES, (
                RunSnapshot("codex", Stage.RESPONSES, AgentStatus.KILLED, error="Killed by user"),
            ))],
            answer="**Hello**",
            status=SessionStatus.DEGRADED,
            chairman="gemini",
        )
        render_session(console, session)
        text = console.file.getvalue()
        assert "chairman: gemini" in text
        assert "(degraded)" in text
        assert "Killed by user" in text
        assert "Hello" in text

    def test_failed_without_answer(self):
        console = make_console()
        render_session(console, CouncilSession("q", status=SessionStatus.FAILED, error="Chairman 'x' is not available"))
        assert "Session failed: Chairman 'x' is not available" in console.file.getvalue()


class TestCommandLine:

    def _write_config(self, tmp_path, agents, chairman):
        path = tmp_path / "council.config.yaml"
        path.write_text(yaml.safe_dump({
            "agents": [a.to_dict() for a in agents],
            "chairman": chairman,
        }))
        return path

    def test_json_output(self, tmp_path, three_agents, capsys):
        path = self._write_config(tmp_path, three_agents, "gemini")
        code = council.main(["--config", str(path), "--json", "--timeout", "60", "Say", "hello"])
        assert code == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["question"] == "Say hello"
        assert data["status"] == "completed"
        assert [s["name"] for s in data["stages"]] == ["responses", "rankings", "synthesis"]
        assert data["answer"].strip() == "SYNTHESIS by gemini"

    def test_unknown_chairman_is_startup_error(self, tmp_path, three_agents):
        path = self._write_config(tmp_path, three_agents, "nobody")
        assert council.main(["--config", str(path), "--json", "Say hello"]) == EXIT_ERROR

    def test_no_agents_available(self, tmp_path):
        path = tmp_path / "council.config.yaml"
        path.write_text("agents:\n  - name: ghost\n    command: nonexistent-cli-xyz\n")
        assert council.main(["--config", str(path), "--json", "Say hello"]) == EXIT_ERROR

    def test_invalid_timeout(self, tmp_path, three_agents):
        path = self._write_config(tmp_path, three_agents, "gemini")
        assert council.main(["--config", str(path), "--json", "--timeout", "0", "q"]) == EXIT_ERROR

    def test_invalid_history_turns_is_startup_error(self, tmp_path):
        path = tmp_path / "council.config.yaml"
        path.write_text("history_turns: lots\n")
        assert council.main(["--config", str(path), "--json", "q"]) == EXIT_ERROR
