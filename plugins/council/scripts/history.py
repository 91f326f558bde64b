#!/usr/bin/env python3
"""
Agent Council Conversation History

Cross-question memory for the REPL. Stage 1 prompts include a bounded
window of earlier (question, chairman answer) pairs.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import List, Tuple

from models import CouncilSession
from utils import truncate

logger = logging.getLogger("council")

DEFAULT_HISTORY_TURNS = 5
DEFAULT_ANSWER_TRUNCATE_LENGTH = 2000


@dataclasses.dataclass(frozen=True)
class HistoryEntry:
    question: str
    session: CouncilSession


class ConversationHistory:
    """Ordered (question, session) pairs, appended after each finalized session."""

    def __init__(self) -> None:
        self._entries: List[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def append(self, question: str, session: CouncilSession) -> None:
        self._entries.append(HistoryEntry(question=question, session=session))
        logger.debug(f"History: {len(self._entries)} entries")

    def clear(self) -> None:
        self._entries.clear()

    def context_window(
        self,
        max_turns: int = DEFAULT_HISTORY_TURNS,
        truncate_length: int = DEFAULT_ANSWER_TRUNCATE_LENGTH,
    ) -> str:
        """Prompt block of the last `max_turns` answered exchanges ("" if none)."""
        if max_turns <= 0:
            return ""
        answered = [e for e in self._entries if e.session.answer]
        window = answered[-max_turns:]
        if not window:
            return ""
        blocks = []
        for i, entry in enumerate(window, 1):
            answer = truncate(entry.session.answer.strip(), truncate_length)
            blocks.append(f"[{i}] Q: {entry.question.strip()}\nA: {answer}")
        return "\n\n".join(blocks)
