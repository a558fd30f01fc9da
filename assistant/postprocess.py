"""
assistant/postprocess.py

Reply post-processing utilities applied after model generation.

Functions:
- limit_to_one_question(text): keep the reply up to and including its first question, so a clarifying
  turn never asks for more than one thing.
- strip_private_lines(text): drop any echoed 'Private context:' / 'Context:' lines.
"""

from __future__ import annotations

import re


_PRIVATE_PREFIXES = ("private context:", "context:")


def strip_private_lines(text: str) -> str:
    lines = [ln for ln in text.splitlines() if not ln.strip().lower().startswith(_PRIVATE_PREFIXES)]
    return "\n".join(lines).strip()


def limit_to_one_question(text: str) -> str:
    """Cut the reply after its first question sentence.

    Statements before the question (a greeting, an acknowledgement) are kept.
    Replies without a question mark are returned unchanged.
    """
    stripped = text.strip()
    if stripped.count("?") <= 1:
        return stripped
    sentences = re.split(r"(?<=[.!?])\s+", stripped)
    kept: list[str] = []
    for s in sentences:
        kept.append(s)
        if s.endswith("?"):
            break
    return " ".join(kept).strip()
