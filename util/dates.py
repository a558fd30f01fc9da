"""
util/dates.py

Date parsing helpers for free-text inputs.
- parse_travel_date: detect the first travel date in a phrase and return it as an ISO string
- next_weekday: first date strictly after a base date that falls on a given weekday
"""

import re
from datetime import date, datetime, time, timedelta

from dateparser.search import search_dates
from dateutil.relativedelta import relativedelta, MO, TU, WE, TH, FR, SA, SU


ISO_DATE_FMT = "%Y-%m-%d"

WEEKDAYS = {
    "monday": MO, "mon": MO,
    "tuesday": TU, "tue": TU, "tues": TU,
    "wednesday": WE, "wed": WE,
    "thursday": TH, "thu": TH, "thur": TH, "thurs": TH,
    "friday": FR, "fri": FR,
    "saturday": SA, "sat": SA,
    "sunday": SU, "sun": SU,
}

_ISO_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_SLASH_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?\b")
_WEEKDAY_RE = re.compile(
    r"\b(?:(next|this|on|coming)\s+)?(" + "|".join(sorted(WEEKDAYS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)

# dateparser reads these as dates even when they are plain words
_WEAK_HITS = {"may", "now", "second", "sat", "sun", "mar", "a", "an"}
# only hand text to dateparser when it mentions something date-shaped
_DATEPARSER_HINT = re.compile(
    r"\d|\b(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|sept?(?:ember)?"
    r"|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?|days?|weeks?|weekend|fortnight|months?|years?)\b",
    re.IGNORECASE,
)


def next_weekday(base, weekday):
    """Return the first date after `base` (1-7 days ahead) falling on `weekday`."""
    return base + relativedelta(days=+1, weekday=weekday(+1))


def _iso(d):
    return d.strftime(ISO_DATE_FMT)


def _search_with_dateparser(text, base):
    settings = {
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": datetime.combine(base, time()),
        "RETURN_AS_TIMEZONE_AWARE": False,
    }
    try:
        hits = search_dates(text, languages=["en"], settings=settings)
    except Exception:
        return None
    for phrase, dt in hits or []:
        p = phrase.strip().lower()
        if p in _WEAK_HITS or re.fullmatch(r"\d{1,2}", p):
            continue
        return dt.date()
    return None


def parse_travel_date(text, today=None):
    """Parse the first travel date mentioned in free text.

    Handles ISO literals, today/tomorrow, weekday names ("next Monday"),
    day-first numeric dates ("12/07") and, failing those, anything
    `dateparser` recognizes ("July 4th", "in 3 days").

    Returns 'YYYY-MM-DD' or None. Time of day is dropped.
    """
    if not text or not text.strip():
        return None
    base = today or date.today()
    low = text.lower()

    m = _ISO_RE.search(text)
    if m:
        try:
            return _iso(date(int(m.group(1)), int(m.group(2)), int(m.group(3))))
        except ValueError:
            pass

    if re.search(r"\bday after tomorrow\b", low):
        return _iso(base + timedelta(days=2))
    if re.search(r"\btomorrow\b", low):
        return _iso(base + timedelta(days=1))
    if re.search(r"\b(today|tonight)\b", low):
        return _iso(base)

    for m in _WEEKDAY_RE.finditer(low):
        prefix, name = m.group(1), m.group(2)
        # bare "sun", "sat", "wed" are ordinary words; abbreviations need a lead-in
        if prefix is None and len(name) < 6:
            continue
        return _iso(next_weekday(base, WEEKDAYS[name]))

    m = _SLASH_RE.search(text)
    if m:
        day, month, year = int(m.group(1)), int(m.group(2)), m.group(3)
        try:
            if year:
                y = int(year) + (2000 if len(year) == 2 else 0)
                return _iso(date(y, month, day))
            d = date(base.year, month, day)
            if d < base:
                d = d.replace(year=base.year + 1)
            return _iso(d)
        except ValueError:
            pass

    if not _DATEPARSER_HINT.search(text):
        return None
    found = _search_with_dateparser(text, base)
    if found:
        return _iso(found)
    return None
