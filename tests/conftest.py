"""Shared fixtures: fake agent CLIs built on the current Python interpreter."""

import sys

import pytest

from models import AgentDescriptor

# Reads the prompt from stdin, works out which stage it is from the prompt
# text, and answers accordingly. argv: name, mode, sleep_seconds
FAKE_AGENT = r"""
import sys, time
name, mode, sleep = sys.argv[1], sys.argv[2], float(sys.argv[3])
prompt = sys.stdin.read()
if "You are the chairman" in prompt:
    stage = "synthesis"
elif "FINAL RANKING:" in prompt:
    stage = "rankings"
else:
    stage = "responses"
if mode in ("slow", "slow-" + stage):
    time.sleep(sleep)
if mode == "fail-" + stage:
    print("something broke", file=sys.stderr)
    sys.exit(3)
if mode == "empty-" + stage:
    sys.exit(0)
if stage == "rankings":
    print(name + " review")
    print("FINAL RANKING:")
    print("1. Response B")
    print("2. Response A")
elif stage == "synthesis":
    print("SYNTHESIS by " + name)
else:
    if "PREVIOUS CONVERSATION" in prompt:
        print("saw history")
    print(name + " answers: " + prompt.strip().splitlines()[-1])
"""


def fake_agent(name, mode="ok", sleep=0.0):
    return AgentDescriptor(
        name=name,
        command=(sys.executable, "-c", FAKE_AGENT, name, mode, str(sleep)),
        prompt_via_stdin=True,
    )


def python_agent(name, code, prompt_via_stdin=True):
    return AgentDescriptor(
        name=name,
        command=(sys.executable, "-c", code),
        prompt_via_stdin=prompt_via_stdin,
    )


@pytest.fixture
def make_agent():
    return fake_agent


@pytest.fixture
def make_python_agent():
    return python_agent


@pytest.fixture
def three_agents():
    return [fake_agent("codex"), fake_agent("claude"), fake_agent("gemini")]


class EventLog:
    """Collects core events for assertions."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_kind(self, kind):
        return [e for e in self.events if e.kind is kind]


@pytest.fixture
def event_log():
    return EventLog()
