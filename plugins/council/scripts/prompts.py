#!/usr/bin/env python3
"""
Agent Council Prompt Templates

Builders for the three stage prompts and the anonymous response labels
shown to agents during peer ranking.
"""
from __future__ import annotations

import re
import string
from typing import Dict, List, Sequence

from models import RunSnapshot
from utils import truncate

# Characters per response embedded in later-stage prompts
DEFAULT_RESPONSE_TRUNCATE_LENGTH = 12000

FINAL_RANKING_MARKER = "FINAL RANKING:"


def response_label(index: int) -> str:
    """'Response A', 'Response B', ... then 'Response AA' past Z."""
    letters = string.ascii_uppercase
    label = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        label = letters[rem] + label
    return f"Response {label}"


def assign_labels(responses: Sequence[RunSnapshot]) -> Dict[str, str]:
    """Map label -> agent name, in the order the responses are given."""
    return {response_label(i): r.agent for i, r in enumerate(responses)}


def _clip(text: str, limit: int) -> str:
    return truncate(text.strip(), limit)


def build_response_prompt(question: str, history_context: str = "") -> str:
    """Stage 1: the raw question, optionally preceded by earlier exchanges."""
    if not history_context:
        return question.strip()
    return f"""\
PREVIOUS CONVERSATION
The council has already answered these questions in this session:

{history_context}

CURRENT QUESTION
{question.strip()}
""".strip()


def _labelled_responses(
    labels: Dict[str, str], outputs: Dict[str, str], limit: int
) -> str:
    sections = []
    for label, agent in labels.items():
        sections.append(f"=== {label} ===\n{_clip(outputs[agent], limit)}")
    return "\n\n".join(sections)


def build_ranking_prompt(
    question: str,
    labels: Dict[str, str],
    outputs: Dict[str, str],
    truncate_length: int = DEFAULT_RESPONSE_TRUNCATE_LENGTH,
) -> str:
    """Stage 2: evaluate and rank every anonymised Stage 1 response."""
    label_list = ", ".join(labels)
    return f"""\
You are reviewing answers to a question. The responses are anonymised;
evaluate them on accuracy, completeness, and usefulness regardless of who
may have written them.

QUESTION
{question.strip()}

RESPONSES
{_labelled_responses(labels, outputs, truncate_length)}

INSTRUCTIONS
1. Briefly critique each response: what it does well and what it gets wrong.
2. End with the line "{FINAL_RANKING_MARKER}" followed by a numbered list
   from best to worst, one label per line, using exactly these labels:
   {label_list}

Example ending:
{FINAL_RANKING_MARKER}
1. Response B
2. Response A
""".strip()


def build_synthesis_prompt(
    question: str,
    labels: Dict[str, str],
    outputs: Dict[str, str],
    rankings: Dict[str, str],
    truncate_length: int = DEFAULT_RESPONSE_TRUNCATE_LENGTH,
) -> str:
    """Stage 3: chairman combines responses and peer rankings into one answer.

    Args:
        question: The user's question
        labels: Response label -> agent, from Stage 1
        outputs: Agent -> Stage 1 output
        rankings: Response label of the reviewer -> that reviewer's Stage 2 output
        truncate_length: Characters kept per embedded response
    """
    if rankings:
        ranking_text = "\n\n".join(
            f"=== Review by the author of {label} ===\n{_clip(text, truncate_length)}"
            for label, text in rankings.items()
        )
    else:
        ranking_text = "(no peer reviews were produced)"
    return f"""\
You are the chairman of a council of AI assistants. Several members
answered the question below independently, then reviewed and ranked each
other's anonymised answers.

QUESTION
{question.strip()}

STAGE 1: RESPONSES
{_labelled_responses(labels, outputs, truncate_length)}

STAGE 2: PEER REVIEWS
{ranking_text}

YOUR TASK
Write the council's final answer to the question. Use the strongest
points from the responses, resolve disagreements using the reviews, and
correct any errors the reviewers identified. Answer the question directly;
do not describe the council process.
""".strip()


def parse_ranking(text: str, labels: Sequence[str]) -> List[str]:
    """Extract the ordered labels after the FINAL RANKING marker.

    Falls back to the order of first mention in the whole text.
    """
    known = set(labels)
    section = text
    idx = text.rfind(FINAL_RANKING_MARKER)
    if idx != -1:
        section = text[idx + len(FINAL_RANKING_MARKER):]
    found: List[str] = []
    for match in re.finditer(r"Response [A-Z]+", section):
        label = match.group(0)
        if label in known and label not in found:
            found.append(label)
    return found
