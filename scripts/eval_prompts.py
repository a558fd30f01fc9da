"""
scripts/eval_prompts.py

Batch conversation evaluation harness to reduce manual testing.

Runs a few scripted conversations through the turn handler and checks:
- No leakage of private context into assistant replies
- At most one question per clarifying reply (ask-one mode)
- Known slots are not asked for again
- The search runs exactly when all three slots are filled, and slots reset afterwards

Usage:
  python3 scripts/eval_prompts.py

Configure the model via env (same as runtime): LLM_PROVIDER, OPENAI_API_KEY, or LLM_OFFLINE=1.
Flights always come from the mock provider.
"""

from __future__ import annotations

import os
import sys
from typing import Any


# Allow imports from project root
ROOT = os.path.dirname(os.path.dirname(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from assistant.conversation import handle_turn
from assistant.session import Session
from assistant.tools.flights import MockFlightProvider


class CountingProvider(MockFlightProvider):
    def __init__(self):
        self.calls: list[tuple[str, str, str]] = []

    def search(self, origin, destination, date_iso):
        self.calls.append((origin, destination, date_iso))
        return super().search(origin, destination, date_iso)


def _offline_llm(system_prompt, user_prompt, history=None):
    # first prompt line is "Ask: <question>"
    return user_prompt.splitlines()[0].replace("Ask:", "").strip()


def _llm():
    if os.getenv("LLM_OFFLINE", "").strip().lower() in {"1", "true", "yes"}:
        return _offline_llm
    return None


# ---- Metrics ----

def no_private_leak(reply: str) -> bool:
    leaks = ["Private context:", "Context:", "state="]
    return not any(tok in reply for tok in leaks)


def at_most_one_question(reply: str) -> bool:
    return reply.count("?") <= 1


def did_not_reask_known(reply: str, session: Session) -> bool:
    low = reply.lower()
    asked = {
        "origin": ["flying from", "departure city", "leaving from"],
        "destination": ["fly to", "destination", "where to"],
    }
    for slot, phrases in asked.items():
        if getattr(session.slots, slot) and any(p in low for p in phrases):
            return False
    return True


def run_scenarios() -> list[dict[str, Any]]:
    results: list[dict[str, Any]] = []

    # 1) Everything in one message
    sess = Session()
    prov = CountingProvider()
    r1 = handle_turn(sess, "from London to Dubai next Monday", provider=prov, llm=_llm())
    results.append({
        "scenario": "one_shot",
        "searched_once": len(prov.calls) == 1,
        "slots_reset": sess.slots.missing() == ["origin", "destination", "date"],
        "has_offers": r1.count("\n") >= 1,
    })

    # 2) One slot per turn
    sess2 = Session()
    prov2 = CountingProvider()
    replies = [
        handle_turn(sess2, "hey", provider=prov2, llm=_llm()),
        handle_turn(sess2, "Paris", provider=prov2, llm=_llm()),
        handle_turn(sess2, "to Rome", provider=prov2, llm=_llm()),
    ]
    known_before_date = did_not_reask_known(replies[-1], sess2)
    replies.append(handle_turn(sess2, "tomorrow", provider=prov2, llm=_llm()))
    results.append({
        "scenario": "slot_by_slot",
        "no_private_leak": no_private_leak("\n".join(replies)),
        "<=1_question_each": all(at_most_one_question(r) for r in replies[:-1]),
        "no_reask_known": known_before_date,
        "searched_once": len(prov2.calls) == 1 and prov2.calls[0][:2] == ("Paris", "Rome"),
    })

    # 3) No flights keeps slots so the user can change the date
    sess3 = Session()
    prov3 = CountingProvider()
    handle_turn(sess3, "from Oslo to Oslo on 2030-01-10", provider=prov3, llm=_llm())
    kept = sess3.slots.origin == "Oslo" and sess3.slots.date == "2030-01-10"
    results.append({
        "scenario": "no_flights",
        "slots_kept": kept,
        "asked_once": len(prov3.calls) == 1,
    })

    # 4) Plain greeting asks only for the origin
    sess4 = Session()
    r4 = handle_turn(sess4, "hey", provider=CountingProvider(), llm=_llm())
    results.append({
        "scenario": "greeting",
        "history_len_3": len(sess4.history) == 3,
        "<=1_question_each": at_most_one_question(r4),
        "asks_origin": "from" in r4.lower(),
    })

    return results


def main():
    results = run_scenarios()
    ok = True
    for row in results:
        scenario = row.pop("scenario")
        flags = [f"{k}={'OK' if v else 'FAIL'}" for k, v in row.items()]
        print(f"{scenario}: " + ", ".join(flags))
        ok = ok and all(bool(v) for v in row.values())
    if not ok:
        sys.exit(2)


if __name__ == "__main__":
    main()
