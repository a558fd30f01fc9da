"""
assistant.tools.cities

Static city → location-code lookup for providers that only accept codes (Kiwi).
Matching is exact after lowercasing and collapsing whitespace; anything else is unresolved.
"""

import re


CITY_CODES = {
    "london": "LON",
    "dubai": "DXB",
    "new york": "NYC",
    "paris": "PAR",
    "tokyo": "TYO",
    "delhi": "DEL",
    "mumbai": "BOM",
    "singapore": "SIN",
}


def _norm(name):
    return re.sub(r"\s+", " ", (name or "").strip().lower())


def resolve_city_code(name):
    """Return the location code for `name`, or None if the city is not in the table."""
    return CITY_CODES.get(_norm(name))
