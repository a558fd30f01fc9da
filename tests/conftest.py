from __future__ import annotations

from datetime import date

import pytest

from assistant.session import InMemorySessionStore
from assistant.tools.flights import MockFlightProvider, Offer


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ASK_MODE", "RESET_MODE", "SLOT_MIN_CONFIDENCE", "SLOT_OVERWRITE_CONFIDENCE",
                 "HISTORY_TURNS", "LLM_OFFLINE", "FLIGHT_CURRENCY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FLIGHT_PROVIDER", "mock")


@pytest.fixture
def today():
    # a Monday
    return date(2026, 10, 19)


class RecordingLLM:
    def __init__(self, reply=None):
        self.reply = reply
        self.calls: list[dict] = []

    def __call__(self, system_prompt, user_prompt, history=None):
        self.calls.append({"system": system_prompt, "prompt": user_prompt, "history": list(history or [])})
        if self.reply is not None:
            return self.reply
        return user_prompt.splitlines()[0].replace("Ask:", "").strip()


class RecordingProvider(MockFlightProvider):
    def __init__(self, offers=None):
        self.offers = offers
        self.calls: list[tuple[str, str, str]] = []

    def search(self, origin, destination, date_iso):
        self.calls.append((origin, destination, date_iso))
        if self.offers is not None:
            return list(self.offers)
        return super().search(origin, destination, date_iso)


@pytest.fixture
def llm():
    return RecordingLLM()


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def make_offer():
    def _make(price, carrier="AeroJet"):
        return Offer(price=price, currency="USD", departure_time="2026-10-26T08:15",
                     arrival_time="2026-10-26T16:40", carrier=carrier)

    return _make


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def make_provider():
    return RecordingProvider


@pytest.fixture
def make_llm():
    return RecordingLLM


class FakeLock:
    def __init__(self, available):
        self.available = available
        self.released = False

    def acquire(self):
        return self.available

    def release(self):
        self.released = True


class FakeRedis:
    def __init__(self, lock_available=True):
        self.data = {}
        self.ttls = {}
        self.locks = []
        self.lock_available = lock_available

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex

    def delete(self, key):
        self.data.pop(key, None)

    def lock(self, name, timeout=None, blocking_timeout=None):
        held = FakeLock(self.lock_available)
        self.locks.append(held)
        return held


@pytest.fixture
def make_redis():
    return FakeRedis
