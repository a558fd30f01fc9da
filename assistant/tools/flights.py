"""
assistant.tools.flights

Flight search gateway over third-party providers.

Classes / functions:
- Offer: provider-independent flight offer (price, times, carrier).
- FlightProvider: provider interface; KiwiProvider, FlyScraperProvider and MockFlightProvider implement it.
- map_kiwi_response / map_flyscraper_response: turn one provider's JSON into Offers.
- search_flights(origin, destination, date_iso): top three offers by price, raising SearchError on
  transport or HTTP failures and UnresolvedCityError when a code-only provider can't place a city.
- summarize_offers(offers, slots): compact reply text for the user.
"""

from __future__ import annotations

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

import requests
from dateutil import parser as dtparser

from assistant.tools.cities import resolve_city_code
from util.exceptions import SearchError, UnresolvedCityError
from util.http import get_json, response_detail

logger = logging.getLogger(__name__)

TOP_K = 3

KIWI_SEARCH_URL = "https://api.tequila.kiwi.com/v2/search"
FLYSCRAPER_DEFAULT_HOST = "fly-scraper.p.rapidapi.com"


@dataclass
class Offer:
    price: float
    currency: str
    departure_time: str | None = None
    arrival_time: str | None = None
    carrier: str | None = None
    deep_link: str | None = None


def _currency():
    return os.getenv("FLIGHT_CURRENCY", "USD").strip().upper() or "USD"


class FlightProvider(ABC):
    name = "base"
    requires_codes = False

    @abstractmethod
    def search(self, origin: str, destination: str, date_iso: str) -> list[Offer]:
        ...

    def _fetch(self, url, params, headers):
        try:
            return get_json(url, params=params, headers=headers)
        except requests.RequestException as exc:
            logger.error("%s search failed: %s", self.name, response_detail(exc))
            raise SearchError(f"{self.name} search failed") from exc
        except ValueError as exc:
            logger.error("%s returned a non-JSON body", self.name)
            raise SearchError(f"{self.name} returned invalid JSON") from exc

    def _offers(self, mapper, data, currency):
        try:
            return mapper(data, currency)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.error("%s returned an unexpected body: %s", self.name, str(data)[:500])
            raise SearchError(f"{self.name} returned an unexpected response") from exc


def map_kiwi_response(data, currency):
    """Map a Tequila /v2/search body to Offers."""
    out = []
    for item in (data or {}).get("data") or []:
        price = item.get("price")
        if price is None:
            continue
        airlines = item.get("airlines") or []
        out.append(Offer(
            price=float(price),
            currency=(data.get("currency") or currency),
            departure_time=item.get("local_departure"),
            arrival_time=item.get("local_arrival"),
            carrier=airlines[0] if airlines else None,
            deep_link=item.get("deep_link"),
        ))
    return out


def map_flyscraper_response(data, currency):
    """Map a Fly Scraper one-way search body to Offers."""
    body = (data or {}).get("data") or {}
    out = []
    for it in body.get("itineraries") or []:
        price = (it.get("price") or {}).get("raw")
        if price is None:
            continue
        legs = it.get("legs") or []
        leg = legs[0] if legs else {}
        marketing = (leg.get("carriers") or {}).get("marketing") or []
        out.append(Offer(
            price=float(price),
            currency=currency,
            departure_time=leg.get("departure"),
            arrival_time=leg.get("arrival"),
            carrier=marketing[0].get("name") if marketing else None,
        ))
    return out


class KiwiProvider(FlightProvider):
    """Kiwi Tequila search. Needs location codes, so cities go through the static lookup first."""

    name = "kiwi"
    requires_codes = True

    def __init__(self, api_key=None):
        self.api_key = api_key if api_key is not None else os.getenv("KIWI_API_KEY", "")

    def search(self, origin, destination, date_iso):
        day = datetime.strptime(date_iso, "%Y-%m-%d").strftime("%d/%m/%Y")
        currency = _currency()
        data = self._fetch(
            KIWI_SEARCH_URL,
            params={
                "fly_from": origin,
                "fly_to": destination,
                "date_from": day,
                "date_to": day,
                "curr": currency,
                "adults": 1,
                "selected_cabins": "M",
                "sort": "price",
                "limit": TOP_K,
            },
            headers={"apikey": self.api_key, "Accept": "application/json"},
        )
        return self._offers(map_kiwi_response, data, currency)


class FlyScraperProvider(FlightProvider):
    """Fly Scraper (RapidAPI) one-way search; accepts free-text city names."""

    name = "flyscraper"

    def __init__(self, api_key=None, host=None):
        self.api_key = api_key if api_key is not None else os.getenv("FLYSCRAPER_API_KEY", "")
        self.host = host or os.getenv("FLYSCRAPER_HOST", FLYSCRAPER_DEFAULT_HOST)

    def search(self, origin, destination, date_iso):
        currency = _currency()
        data = self._fetch(
            f"https://{self.host}/flights/search-one-way",
            params={
                "origin": origin,
                "destination": destination,
                "departureDate": date_iso,
                "currency": currency,
                "adults": 1,
                "cabinClass": "economy",
                "limit": TOP_K,
            },
            headers={"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": self.host},
        )
        return self._offers(map_flyscraper_response, data, currency)


class MockFlightProvider(FlightProvider):
    """Deterministic offers for offline runs. Same-city routes return no flights."""

    name = "mock"

    def search(self, origin, destination, date_iso):
        if origin.strip().lower() == destination.strip().lower():
            return []
        seed = int(hashlib.sha1(f"{origin}|{destination}|{date_iso}".lower().encode()).hexdigest(), 16)
        day = datetime.strptime(date_iso, "%Y-%m-%d")
        carriers = ["SkyLine", "AeroJet", "BlueWing", "Nimbus Air"]
        out = []
        for i in range(4):
            dep = day + timedelta(hours=6 + (seed >> (i * 4)) % 14)
            out.append(Offer(
                price=float(120 + (seed >> (i * 8)) % 600),
                currency=_currency(),
                departure_time=dep.isoformat(timespec="minutes"),
                arrival_time=(dep + timedelta(hours=2 + (seed >> (i * 3)) % 9)).isoformat(timespec="minutes"),
                carrier=carriers[i],
            ))
        return out


PROVIDERS = {
    "kiwi": KiwiProvider,
    "flyscraper": FlyScraperProvider,
    "mock": MockFlightProvider,
}


def get_provider(name=None):
    """Instantiate the provider named by `name` or FLIGHT_PROVIDER (default flyscraper)."""
    key = (name or os.getenv("FLIGHT_PROVIDER", "flyscraper")).strip().lower()
    if key not in PROVIDERS:
        raise SearchError(f"Unknown flight provider: {key}")
    return PROVIDERS[key]()


def search_flights(origin, destination, date_iso, provider=None):
    """Return up to three cheapest offers. An empty list means no flights, not a failure."""
    provider = provider or get_provider()
    if provider.requires_codes:
        o, d = resolve_city_code(origin), resolve_city_code(destination)
        unresolved = [city for city, code in ((origin, o), (destination, d)) if not code]
        if unresolved:
            raise UnresolvedCityError(unresolved)
        origin, destination = o, d
    logger.info("Searching %s: %s → %s on %s", provider.name, origin, destination, date_iso)
    offers = provider.search(origin, destination, date_iso)
    return sorted(offers, key=lambda off: off.price)[:TOP_K]


def _fmt_time(value):
    if not value:
        return "?"
    try:
        return dtparser.isoparse(value).strftime("%Y-%m-%d %H:%M")
    except (ValueError, TypeError):
        return str(value)


def summarize_offers(offers, slots):
    """Return a short numbered list of offers for the route in `slots`."""
    head = f"Here are the best flights from {slots.origin} to {slots.destination} on {slots.date}:"
    lines = [head]
    for i, off in enumerate(offers, start=1):
        who = f"{off.carrier}: " if off.carrier else ""
        lines.append(
            f"{i}. {who}{off.price:.2f} {off.currency}, departs {_fmt_time(off.departure_time)}, "
            f"arrives {_fmt_time(off.arrival_time)}"
        )
    return "\n".join(lines)
