#util/exceptions.py


class UpstreamError(Exception):
    """A third-party call (language model or flight search) failed."""


class LLMError(UpstreamError):
    pass


class SearchError(UpstreamError):
    pass


class UnresolvedCityError(ValueError):
    """One or both endpoints of a route have no known location code."""

    def __init__(self, cities):
        self.cities = list(cities)
        super().__init__("Unresolved cities: " + ", ".join(self.cities))


class SessionLockError(UpstreamError):
    """The session store could not hand out a session's lock in time."""
