"""
assistant/router.py

Flight-slot extraction from free text.

Key functions:
- extract_slots(text, prior, awaiting): run the named recognizers in order (first confident match wins) and
  return Recognized(origin, destination, date, recognizer, confidence) or Unrecognized(text).
  Recognizers: 'from_to' ("from X to Y"), 'x_to_y' ("London to Dubai"), 'to_only', 'from_only' and
  'single_word' (one capitalized name, filling whichever slot the dialogue is waiting for).
  Date words swallowed by a city ("Dubai next Monday") are cut off and searched for a date instead.
- merge_slots(slots, outcome): fill-if-empty, overwrite only on confident matches, never clear.
- update_slots_from_text(text, session): extract + merge against a session.
- is_smalltalk(text): short greetings/acknowledgements with no trip details.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

from assistant.session import DialogueState, Slots
from assistant.tools.cities import resolve_city_code
from util.dates import WEEKDAYS, parse_travel_date

logger = logging.getLogger(__name__)


MONTHS = {
    "jan", "january", "feb", "february", "mar", "march", "apr", "april", "may", "jun", "june",
    "jul", "july", "aug", "august", "sep", "sept", "september", "oct", "october", "nov", "november",
    "dec", "december",
}
DATE_WORDS = set(WEEKDAYS) | MONTHS | {
    "next", "this", "coming", "tomorrow", "today", "tonight", "on", "in", "at", "day", "after",
    "week", "weekend", "month", "morning", "afternoon", "evening", "night", "early", "late", "asap",
}
STOP_WORDS = {
    "from", "to", "for", "and", "please", "pls", "with", "leaving", "departing", "returning", "around",
    "by", "via", "then", "but", "one", "way", "return", "flight", "flights", "ticket", "tickets",
    "i", "we", "me", "or",
}
NOT_A_CITY = {
    "go", "fly", "travel", "book", "get", "visit", "head", "be", "leave", "find", "see", "search", "check",
    "me", "you", "us", "them", "him", "her", "it", "my", "your", "know", "do", "help", "make", "have", "take",
    "there", "here", "somewhere", "anywhere", "home", "work", "depart", "arrive", "return", "stay", "come",
    "buy", "change", "move", "start", "land", "board", "reserve", "plan", "pay", "spend",
}
LEADING_FILLER = {
    "the", "a", "an", "hi", "hello", "hey", "fly", "flying", "flights", "flight", "book", "i", "going",
    "travel", "traveling", "travelling", "please", "can", "could", "cheap", "find", "show", "search", "need",
    "want", "ok", "okay", "so", "yes", "and", "trip", "journey", "ticket", "tickets", "moving", "return",
}
SMALLTALK_HINTS = {
    "hi", "hello", "hey", "yo", "thanks", "thank you", "ok", "okay", "hii", "heyy", "good morning",
    "good evening", "cool", "great", "awesome", "nice", "sure",
}
NON_CITY_WORDS = DATE_WORDS | STOP_WORDS | NOT_A_CITY | LEADING_FILLER | SMALLTALK_HINTS | {
    "thank", "no", "what", "where", "when", "how", "why", "who", "is", "are", "does", "did", "would", "should",
    "it's", "i'm", "i'd", "hmm", "bye", "good", "just", "anything", "nothing", "sorry", "actually", "well",
}

_PUNCT = ".,!?;:'\"()[]"

_FROM_TO_RE = re.compile(r"\bfrom\s+(?P<origin>[^,.!?;]+?)\s+to\s+(?P<dest>[^,.!?;]+)", re.IGNORECASE)
_CAP_RUN = r"[A-Z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]*)*"
_X_TO_Y_RE = re.compile(r"\b(?P<origin>" + _CAP_RUN + r")\s+to\s+(?P<dest>" + _CAP_RUN + r")")
# lookahead captures so "want to go to Paris" yields both "go to Paris" and "Paris"
_TO_RE = re.compile(r"\bto\s+(?=(?P<city>[^,.!?;]+))", re.IGNORECASE)
_FROM_RE = re.compile(r"\bfrom\s+(?=(?P<city>[^,.!?;]+))", re.IGNORECASE)
_CAP_RUN_RE = re.compile(_CAP_RUN)


@dataclass(frozen=True)
class Recognized:
    origin: str | None = None
    destination: str | None = None
    date: str | None = None
    recognizer: str = ""
    confidence: float = 0.0


@dataclass(frozen=True)
class Unrecognized:
    text: str = ""


@dataclass
class _Hit:
    origin: str | None
    destination: str | None
    date_text: str
    confidence: float


def _env_float(name, default):
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _word(tok):
    return tok.strip(_PUNCT).lower()


def _titled(tokens):
    name = " ".join(tokens).strip()
    if not name:
        return None
    if name.islower() or (name.isupper() and len(name) > 3):
        name = name.title()
    return name


_DATE_LINKS = {"the", "of"}
_ORDINAL_WORDS = {
    "first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth",
    "eleventh", "twelfth", "fifteenth", "twentieth", "thirtieth",
}


def _is_date_token(w):
    return w in DATE_WORDS or w in _ORDINAL_WORDS or any(ch.isdigit() for ch in w)


def _split_city(raw, leading=frozenset({"the", "a", "an"})):
    """Split captured text into (city, spill).

    The city ends at the first date-like, filler or numeric token (max three words);
    everything from there on is returned as spill for date parsing.
    """
    tokens = raw.split()
    while tokens and _word(tokens[0]) in leading:
        tokens.pop(0)
    city: list[str] = []
    spill = ""
    for i, tok in enumerate(tokens):
        w = _word(tok)
        # "Dubai the 5th of November": an article or "of" in front of a date word ends the city too
        date_next = w in _DATE_LINKS and i + 1 < len(tokens) and _is_date_token(_word(tokens[i + 1]))
        if not w or _is_date_token(w) or w in STOP_WORDS or date_next or len(city) >= 3:
            spill = " ".join(tokens[i:])
            break
        city.append(tok.strip(_PUNCT))
    if city and city[0].lower() in NOT_A_CITY:
        return None, spill
    return _titled(city), spill


def _recognize_from_to(text, awaiting):
    m = _FROM_TO_RE.search(text)
    if not m:
        return None
    origin, spill_o = _split_city(m.group("origin"))
    dest, spill_d = _split_city(m.group("dest"))
    if not (origin and dest):
        return None
    return _Hit(origin, dest, " ".join([spill_o, spill_d, text[m.end():]]), 0.95)


def _recognize_x_to_y(text, awaiting):
    m = _X_TO_Y_RE.search(text)
    if not m:
        return None
    origin, _ = _split_city(m.group("origin"), leading=LEADING_FILLER)
    dest, spill = _split_city(m.group("dest"))
    if not (origin and dest):
        return None
    return _Hit(origin, dest, " ".join([spill, text[m.end():]]), 0.85)


def _written_as_name(raw, city):
    """True when the user capitalized the capture or it is a city we know by code."""
    words = [w for w in raw.split() if _word(w) not in {"the", "a", "an"}]
    return bool(words and words[0][:1].isupper()) or resolve_city_code(city) is not None


def _last_city_after(rx, text):
    """Last match of `rx` whose capture cleans up to a plausible city: (city, date_text, named)."""
    best = None
    for m in rx.finditer(text):
        city, spill = _split_city(m.group("city"))
        if city:
            best = (city, " ".join([spill, text[m.end("city"):]]), _written_as_name(m.group("city"), city))
    return best


def _preposition_confidence(*named):
    # lowercase unknown words ("to depart") may fill an empty slot but never replace one
    return 0.9 if all(named) else 0.7


def _recognize_to_only(text, awaiting):
    found = _last_city_after(_TO_RE, text)
    if not found:
        return None
    dest, date_text, named = found
    origin_found = _last_city_after(_FROM_RE, text)
    if origin_found:
        return _Hit(origin_found[0], dest, date_text, _preposition_confidence(named, origin_found[2]))
    return _Hit(None, dest, date_text, _preposition_confidence(named))


def _recognize_from_only(text, awaiting):
    found = _last_city_after(_FROM_RE, text)
    if not found:
        return None
    city, date_text, named = found
    return _Hit(city, None, date_text, _preposition_confidence(named))


def _recognize_single_word(text, awaiting):
    candidates = []
    for m in _CAP_RUN_RE.finditer(text):
        kept = [t for t in m.group(0).split() if _word(t) not in NON_CITY_WORDS]
        if kept:
            candidates.append((m, kept))
    if len(candidates) != 1:
        return None
    m, kept = candidates[0]
    name = _titled([t.strip(_PUNCT) for t in kept])
    if not name:
        return None
    words = len(re.findall(r"[A-Za-z0-9']+", text))
    confidence = 0.6 if words <= 3 else 0.3
    date_text = (text[:m.start()] + " " + text[m.end():]).strip()
    if awaiting == DialogueState.AWAITING_FROM:
        return _Hit(name, None, date_text, confidence)
    return _Hit(None, name, date_text, confidence)


def _strip_cities(text, hit):
    for city in (hit.origin, hit.destination):
        if city:
            text = re.sub(re.escape(city), " ", text, flags=re.IGNORECASE)
    return text


RECOGNIZERS = (
    ("from_to", _recognize_from_to),
    ("x_to_y", _recognize_x_to_y),
    ("to_only", _recognize_to_only),
    ("from_only", _recognize_from_only),
    ("single_word", _recognize_single_word),
)


def extract_slots(text, prior=None, awaiting=None, today=None):
    """Extract origin/destination/date from one utterance.

    Unmatched fields fall back to `prior`. Returns Unrecognized when the text
    carries neither a city nor a date. Never raises.
    """
    prior = prior or Slots()
    text = (text or "").strip()
    if not text:
        return Unrecognized(text)
    try:
        min_conf = _env_float("SLOT_MIN_CONFIDENCE", 0.5)
        hit, name = None, None
        for rname, fn in RECOGNIZERS:
            cand = fn(text, awaiting)
            if cand is None:
                continue
            if cand.confidence < min_conf:
                logger.debug("Recognizer %s below threshold (%.2f)", rname, cand.confidence)
                continue
            hit, name = cand, rname
            break

        new_date = parse_travel_date(hit.date_text if hit else text, today=today)
        if hit is not None and new_date is None:
            # date mentioned before the cities ("next week I want to fly to Paris")
            new_date = parse_travel_date(_strip_cities(text, hit), today=today)
        if hit is None and new_date is None:
            return Unrecognized(text)
        if hit is None:
            return Recognized(prior.origin, prior.destination, new_date, "date_only", 0.0)
        return Recognized(
            origin=hit.origin or prior.origin,
            destination=hit.destination or prior.destination,
            date=new_date or prior.date,
            recognizer=name,
            confidence=hit.confidence,
        )
    except Exception:
        logger.exception("Slot extraction failed for %r", text)
        return Unrecognized(text)


def merge_slots(slots, outcome):
    """Merge an extraction outcome into `slots` in place. Returns True if anything changed."""
    if not isinstance(outcome, Recognized):
        return False
    before = (slots.origin, slots.destination, slots.date)
    overwrite = outcome.confidence >= _env_float("SLOT_OVERWRITE_CONFIDENCE", 0.9)
    for name in ("origin", "destination"):
        value = getattr(outcome, name)
        if value and (not getattr(slots, name) or overwrite):
            setattr(slots, name, value)
    if outcome.date:
        slots.date = outcome.date
    return before != (slots.origin, slots.destination, slots.date)


def update_slots_from_text(text, session, today=None):
    """Extract slots from `text` and merge them into the session; returns the outcome."""
    outcome = extract_slots(text, session.slots, session.state, today=today)
    changed = merge_slots(session.slots, outcome)
    if isinstance(outcome, Recognized):
        logger.info("Slots via %s (%.2f)%s: %s", outcome.recognizer, outcome.confidence,
                    "" if changed else " unchanged", session.slots)
    return outcome


def _contains_hint(low: str, hints: set[str]) -> bool:
    """Return True if any hint in `hints` appears in `low`.

    - Single-token hints are matched with word boundaries.
    - Multi-word phrases are matched as substrings (already lowercased).
    """
    for h in hints:
        if " " in h:
            if h in low:
                return True
            continue
        if re.search(r"\b" + re.escape(h) + r"\b", low):
            return True
    return False


def is_smalltalk(text: str) -> bool:
    """Return True for brief greetings/acknowledgements that are not travel requests."""
    low = (text or "").lower().strip()
    if re.search(r"\b(from|to|fly|flight|flights)\b", low):
        return False
    return _contains_hint(low, SMALLTALK_HINTS) and len(low.split()) <= 6
