"""ConversationHistory windowing."""

from history import ConversationHistory
from models import CouncilSession, SessionStatus


def _session(question, answer=None, status=SessionStatus.COMPLETED):
    return CouncilSession(question=question, answer=answer, status=status)


def test_empty_history_has_no_context():
    history = ConversationHistory()
    assert len(history) == 0
    assert history.context_window() == ""


def test_window_is_bounded_and_ordered():
    history = ConversationHistory()
    for i in range(1, 6):
        history.append(f"q{i}", _session(f"q{i}", f"a{i}"))
    window = history.context_window(max_turns=2)
    assert "q3" not in window
    assert window.index("Q: q4") < window.index("Q: q5")
    assert "A: a5" in window


def test_unanswered_sessions_skipped():
    history = ConversationHistory()
    history.append("asked", _session("asked", "answered"))
    history.append("aborted", _session("aborted", None, SessionStatus.ABORTED))
    window = history.context_window()
    assert "aborted" not in window
    assert "answered" in window
    assert len(history) == 2


def test_long_answers_truncated():
    history = ConversationHistory()
    history.append("q", _session("q", "x" * 5000))
    window = history.context_window(truncate_length=100)
    assert "[...truncated]" in window
    assert len(window) < 300


def test_clear():
    history = ConversationHistory()
    history.append("q", _session("q", "a"))
    history.clear()
    assert not history
    assert history.entries == ()
