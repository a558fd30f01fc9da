"""
util/http.py

Tiny HTTP helper for JSON GET.
- Timeout can be configured via HTTP_TIMEOUT env (default 15s)
- Raises for HTTP status errors; retries are opt-in (default none)
"""

import os
import time

import requests


def _env_timeout():
    try:
        return float(os.getenv("HTTP_TIMEOUT", "15"))
    except Exception:
        return 15.0


def get_json(url, params=None, headers=None, timeout=None, retries=0):
    """HTTP GET JSON. `retries` extra attempts on failure, none by default."""
    if timeout is None:
        timeout = _env_timeout()

    for attempt in range(retries + 1):
        try:
            resp = requests.get(url, params=params, headers=headers, timeout=timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException:
            if attempt < retries:
                time.sleep(0.35 * (attempt + 1))
                continue
            raise
    raise RuntimeError("get_json: unreachable")


def response_detail(exc):
    """Best-effort body text from a requests exception, for logging only."""
    resp = getattr(exc, "response", None)
    if resp is None:
        return str(exc)
    try:
        return resp.json()
    except ValueError:
        return (resp.text or "")[:500]
