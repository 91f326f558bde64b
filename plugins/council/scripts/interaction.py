#!/usr/bin/env python3
"""
Agent Council Keyboard Interaction

Maps key presses onto the coordinator's live run set: move focus, cancel
the focused agent, or abort the session. The focus logic is a pure reducer
so it can be tested without a terminal or any processes.
"""
from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from typing import List, Optional, Tuple

from errors import ErrorKind

logger = logging.getLogger("council")


class Key(Enum):
    DIGIT = "digit"
    UP = "up"
    DOWN = "down"
    KILL = "kill"
    ABORT = "abort"
    QUIT = "quit"


@dataclasses.dataclass(frozen=True)
class KeyEvent:
    key: Key
    digit: int = 0


# Escape sequences for arrow keys (normal and application cursor mode)
_SEQUENCES = {
    "\x1b[A": KeyEvent(Key.UP),
    "\x1bOA": KeyEvent(Key.UP),
    "\x1b[B": KeyEvent(Key.DOWN),
    "\x1bOB": KeyEvent(Key.DOWN),
}

_SINGLE = {
    "k": KeyEvent(Key.KILL),
    "K": KeyEvent(Key.KILL),
    "q": KeyEvent(Key.QUIT),
    "\x03": KeyEvent(Key.QUIT),  # Ctrl-C in raw mode
}


def _csi_end(data: str, start: int) -> int:
    """Index just past the CSI final byte ('@' to '~'), or len(data) if truncated."""
    for j in range(start, len(data)):
        if "@" <= data[j] <= "~":
            return j + 1
    return len(data)


def decode_keys(data: str) -> List[KeyEvent]:
    """Turn one read from a raw-mode terminal into key events.

    A lone ESC (not followed by an arrow sequence) is the abort key.
    Unknown bytes are ignored.
    """
    events: List[KeyEvent] = []
    i = 0
    while i < len(data):
        seq = data[i:i + 3]
        if seq in _SEQUENCES:
            events.append(_SEQUENCES[seq])
            i += 3
            continue
        ch = data[i]
        if ch == "\x1b":
            introducer = data[i + 1:i + 2]
            if introducer == "[" and i + 2 < len(data):
                # Other CSI sequence (modified arrows, function keys): skip to its final byte
                i = _csi_end(data, i + 2)
                continue
            if introducer == "O" and i + 2 < len(data):
                i += 3
                continue
            events.append(KeyEvent(Key.ABORT))
        elif ch in "123456789":
            events.append(KeyEvent(Key.DIGIT, digit=int(ch)))
        elif ch in _SINGLE:
            events.append(_SINGLE[ch])
        i += 1
    return events


@dataclasses.dataclass(frozen=True)
class FocusState:
    """Focus position over the N runs of the active stage."""
    index: int = 0
    count: int = 0

    def resize(self, count: int) -> "FocusState":
        """Adopt a new live-run count, clamping the focus into range."""
        if count <= 0:
            return FocusState(0, 0)
        return FocusState(min(self.index, count - 1), count)


class ActionKind(Enum):
    NONE = "none"
    CANCEL = "cancel"
    ABORT = "abort"
    QUIT = "quit"


@dataclasses.dataclass(frozen=True)
class Action:
    kind: ActionKind = ActionKind.NONE
    index: Optional[int] = None


NO_ACTION = Action()


def reduce(state: FocusState, event: KeyEvent) -> Tuple[FocusState, Action]:
    """Pure transition: (focus, key) -> (new focus, action to perform)."""
    n = state.count
    if event.key is Key.ABORT:
        return state, Action(ActionKind.ABORT)
    if event.key is Key.QUIT:
        return state, Action(ActionKind.QUIT)
    if n <= 0:
        return state, NO_ACTION
    if event.key is Key.DIGIT:
        if 1 <= event.digit <= n:
            return FocusState(event.digit - 1, n), NO_ACTION
        return state, NO_ACTION
    if event.key is Key.DOWN:
        return FocusState((state.index + 1) % n, n), NO_ACTION
    if event.key is Key.UP:
        return FocusState((state.index - 1 + n) % n, n), NO_ACTION
    if event.key is Key.KILL:
        return state, Action(ActionKind.CANCEL, index=state.index)
    return state, NO_ACTION


class InteractionController:
    """Applies key events to a coordinator's live run set.

    Only calls `cancel()` on processes and `abort()` on the coordinator;
    never touches run buffers.
    """

    def __init__(self, coordinator):
        self.coordinator = coordinator
        self.focus = FocusState()
        self.quit_requested = False

    def _live(self):
        return self.coordinator.state.processes

    def sync(self) -> FocusState:
        """Re-read the live-run count (call when a new stage starts)."""
        self.focus = self.focus.resize(len(self._live()))
        return self.focus

    def focused(self):
        live = self._live()
        self.sync()
        if not live:
            return None
        return live[self.focus.index]

    def handle(self, event: KeyEvent) -> Action:
        self.sync()
        self.focus, action = reduce(self.focus, event)
        live = self._live()
        if action.kind is ActionKind.CANCEL and action.index is not None:
            proc = live[action.index]
            if not proc.is_terminal:
                logger.info(f"Cancelling {proc.name}")
                proc.cancel(ErrorKind.KILLED)
        elif action.kind is ActionKind.ABORT:
            self.coordinator.abort()
        elif action.kind is ActionKind.QUIT:
            self.quit_requested = True
            self.coordinator.abort()
        return action

    def feed(self, data: str) -> List[Action]:
        """Decode raw terminal input and handle each key in order."""
        return [self.handle(event) for event in decode_keys(data)]
