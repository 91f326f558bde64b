"""Focus reducer, key decoding, and controller effects."""

import io

import pytest

from errors import ErrorKind
from interaction import (
    Action, ActionKind, FocusState, InteractionController, Key, KeyEvent,
    decode_keys, reduce,
)
from pipeline import CouncilState
from terminal import KeyReader

UP = KeyEvent(Key.UP)
DOWN = KeyEvent(Key.DOWN)


class TestReducer:

    def test_down_wraps_from_last_to_first(self):
        state, action = reduce(FocusState(2, 3), DOWN)
        assert state == FocusState(0, 3)
        assert action.kind is ActionKind.NONE

    def test_up_wraps_from_first_to_last(self):
        state, _ = reduce(FocusState(0, 3), UP)
        assert state == FocusState(2, 3)

    def test_full_cycle_returns_to_start(self):
        state = FocusState(0, 3)
        for _ in range(3):
            state, _ = reduce(state, DOWN)
        assert state.index == 0

    @pytest.mark.parametrize("digit,expected", [(1, 0), (2, 1), (3, 2)])
    def test_digit_focuses_directly(self, digit, expected):
        state, _ = reduce(FocusState(0, 3), KeyEvent(Key.DIGIT, digit=digit))
        assert state.index == expected

    def test_digit_out_of_range_ignored(self):
        state, action = reduce(FocusState(1, 3), KeyEvent(Key.DIGIT, digit=7))
        assert state == FocusState(1, 3)
        assert action.kind is ActionKind.NONE

    def test_kill_targets_focus(self):
        state, action = reduce(FocusState(1, 3), KeyEvent(Key.KILL))
        assert state == FocusState(1, 3)
        assert action == Action(ActionKind.CANCEL, index=1)

    def test_escape_and_quit(self):
        assert reduce(FocusState(0, 3), KeyEvent(Key.ABORT))[1].kind is ActionKind.ABORT
        assert reduce(FocusState(0, 3), KeyEvent(Key.QUIT))[1].kind is ActionKind.QUIT

    def test_empty_run_set_is_noop(self):
        for event in (UP, DOWN, KeyEvent(Key.KILL), KeyEvent(Key.DIGIT, digit=1)):
            state, action = reduce(FocusState(0, 0), event)
            assert state == FocusState(0, 0)
            assert action.kind is ActionKind.NONE

    def test_resize_clamps(self):
        assert FocusState(2, 3).resize(1) == FocusState(0, 1)
        assert FocusState(1, 3).resize(5) == FocusState(1, 5)
        assert FocusState(2, 3).resize(0) == FocusState(0, 0)


class TestDecodeKeys:

    def test_arrows(self):
        assert decode_keys("\x1b[A") == [UP]
        assert decode_keys("\x1b[B") == [DOWN]
        assert decode_keys("\x1bOA\x1bOB") == [UP, DOWN]

    def test_lone_escape_is_abort(self):
        assert decode_keys("\x1b") == [KeyEvent(Key.ABORT)]

    def test_digits_and_letters(self):
        assert decode_keys("2k") == [KeyEvent(Key.DIGIT, digit=2), KeyEvent(Key.KILL)]
        assert decode_keys("q") == [KeyEvent(Key.QUIT)]
        assert decode_keys("\x03") == [KeyEvent(Key.QUIT)]

    def test_unknown_ignored(self):
        assert decode_keys("0xz") == []
        assert decode_keys("\x1b[Z") == []

    def test_long_escape_sequences_skipped_whole(self):
        assert decode_keys("\x1b[1;5A") == []
        assert decode_keys("\x1b[15~") == []
        assert decode_keys("\x1b[1;2B2") == [KeyEvent(Key.DIGIT, digit=2)]
        assert decode_keys("\x1bOP\x1b[A") == [UP]


class FakeProcess:
    def __init__(self, name, terminal=False):
        self.name = name
        self.is_terminal = terminal
        self.cancelled = []

    def cancel(self, kind=ErrorKind.KILLED):
        self.cancelled.append(kind)
        return True


class FakeCoordinator:
    def __init__(self, processes):
        self.state = CouncilState(processes=processes)
        self.aborts = 0

    def abort(self):
        self.aborts += 1


class TestController:

    def _controller(self, *processes):
        return InteractionController(FakeCoordinator(list(processes)))

    def test_kill_only_focused(self):
        a, b, c = FakeProcess("a"), FakeProcess("b"), FakeProcess("c")
        controller = self._controller(a, b, c)
        controller.feed("2k")
        assert b.cancelled == [ErrorKind.KILLED]
        assert a.cancelled == [] and c.cancelled == []

    def test_kill_skips_terminal_run(self):
        done = FakeProcess("a", terminal=True)
        controller = self._controller(done, FakeProcess("b"))
        controller.handle(KeyEvent(Key.KILL))
        assert done.cancelled == []

    def test_escape_aborts_coordinator(self):
        controller = self._controller(FakeProcess("a"))
        controller.feed("\x1b")
        assert controller.coordinator.aborts == 1
        assert not controller.quit_requested

    def test_quit_aborts_and_flags(self):
        controller = self._controller(FakeProcess("a"))
        controller.handle(KeyEvent(Key.QUIT))
        assert controller.quit_requested
        assert controller.coordinator.aborts == 1

    def test_focus_follows_stage_change(self):
        coordinator = FakeCoordinator([FakeProcess("a"), FakeProcess("b"), FakeProcess("c")])
        controller = InteractionController(coordinator)
        controller.feed("3")
        assert controller.focus.index == 2
        coordinator.state.processes = [FakeProcess("x")]
        assert controller.sync() == FocusState(0, 1)
        assert controller.focused().name == "x"


def test_key_reader_inactive_without_tty():
    received = []
    with KeyReader(received.append, stream=io.StringIO()) as reader:
        assert not reader.active
    assert received == []
