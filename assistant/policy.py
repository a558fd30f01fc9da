"""
assistant/policy.py

Dialogue policy: decide whether to ask for a missing slot or run the search.

- derive_state(slots): AWAITING_FROM → AWAITING_TO → AWAITING_DATE → READY, from slot fill alone.
- decide(session): an 'ask' Decision (one question per turn, or all at once with ASK_MODE=all)
  or a 'search' Decision when every slot is filled.
- apply_reset(session): clear slots after a successful search (RESET_MODE=all, or date only).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from assistant.prompts import GREETING, QUESTIONS
from assistant.session import DialogueState, Session, Slots


_STATE_FOR_MISSING = {
    "origin": DialogueState.AWAITING_FROM,
    "destination": DialogueState.AWAITING_TO,
    "date": DialogueState.AWAITING_DATE,
}


@dataclass
class Decision:
    action: str  # 'ask' | 'search'
    missing: list[str] = field(default_factory=list)
    question: str = ""
    greet: bool = False

    @property
    def text(self):
        """Plain reply text, used when no model phrasing is available."""
        return f"{GREETING} {self.question}" if self.greet else self.question


def ask_mode():
    mode = os.getenv("ASK_MODE", "one").strip().lower()
    return mode if mode in {"one", "all"} else "one"


def reset_mode():
    mode = os.getenv("RESET_MODE", "all").strip().lower()
    return mode if mode in {"all", "date"} else "all"


def derive_state(slots: Slots) -> DialogueState:
    missing = slots.missing()
    if not missing:
        return DialogueState.READY
    return _STATE_FOR_MISSING[missing[0]]


def decide(session: Session, mode=None) -> Decision:
    """Pick the next action from the session's slots and record the dialogue state."""
    session.state = derive_state(session.slots)
    if session.state is DialogueState.READY:
        return Decision("search")
    missing = session.slots.missing()
    asked = missing if (mode or ask_mode()) == "all" else missing[:1]
    question = " ".join(QUESTIONS[m] for m in asked)
    return Decision("ask", missing=asked, question=question, greet=not session.greeted)


def apply_reset(session: Session, mode=None):
    """Clear searched slots after a successful search and mark the dialogue completed."""
    if (mode or reset_mode()) == "date":
        session.slots.date = None
    else:
        session.slots = Slots()
    session.state = DialogueState.COMPLETED
