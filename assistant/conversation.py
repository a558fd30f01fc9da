"""
assistant/conversation.py

One chat turn of the flight-search dialogue, shared by the HTTP API and the CLI.

handle_turn(session, text):
- appends the user message and merges any slots it carries
- asks the language model to phrase a clarifying question while slots are missing
- runs the flight search once all three slots are filled, then resets them
- appends the assistant reply and truncates history

Upstream failures (LLMError, SearchError) propagate to the caller; no assistant
turn is recorded for a failed call and slots are left as they were.
"""

from __future__ import annotations

import logging
import os

from assistant.policy import Decision, apply_reset, ask_mode, decide
from assistant.postprocess import limit_to_one_question, strip_private_lines
from assistant.prompts import (
    SYSTEM_PROMPT,
    clarify_prompt,
    no_flights_reply,
    system_prompt_for,
    unresolved_city_reply,
)
from assistant.router import is_smalltalk, update_slots_from_text
from assistant.session import Session
from assistant.tools.flights import search_flights, summarize_offers
from llm.client import call_llm
from util.exceptions import UnresolvedCityError

logger = logging.getLogger(__name__)


def history_turns():
    try:
        return int(os.getenv("HISTORY_TURNS", "10"))
    except ValueError:
        return 10


def _ask(session: Session, decision: Decision, user_text: str, llm) -> str:
    prompt = clarify_prompt(
        decision.missing,
        decision.question,
        user_text,
        greet=decision.greet,
        smalltalk=is_smalltalk(user_text),
    )
    # the current message is already in `prompt`; send only the turns before it
    history = session.recent_history(history_turns() + 1)[:-1]
    reply = llm(system_prompt_for(session), prompt, history=history)
    reply = strip_private_lines(reply or "") or decision.text
    if ask_mode() == "one":
        reply = limit_to_one_question(reply)
    return reply


def _search(session: Session, provider) -> str:
    s = session.slots
    try:
        offers = search_flights(s.origin, s.destination, s.date, provider=provider)
    except UnresolvedCityError as exc:
        logger.info("Unresolved cities %s; keeping slots", exc.cities)
        return unresolved_city_reply(exc.cities)
    if not offers:
        logger.info("No flights for %s → %s on %s; keeping slots", s.origin, s.destination, s.date)
        return no_flights_reply(s)
    reply = summarize_offers(offers, s)
    apply_reset(session)
    return reply


def handle_turn(session: Session, text: str, provider=None, llm=None, today=None) -> str:
    """Process one user message against `session` and return the assistant reply."""
    llm = llm or call_llm
    if not session.history or session.history[0]["role"] != "system":
        session.history.insert(0, {"role": "system", "content": SYSTEM_PROMPT})

    session.add("user", text)
    update_slots_from_text(text, session, today=today)
    decision = decide(session)

    if decision.action == "search":
        reply = _search(session, provider)
    else:
        reply = _ask(session, decision, text, llm)

    session.greeted = True
    session.add("assistant", reply)
    session.truncate(history_turns())
    return reply
