"""Shared requests session for feed, scrape and signal calls."""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


USER_AGENT = "TechPulse/1.0"
DEFAULT_TIMEOUT = 20

_local = threading.local()


def get_session() -> requests.Session:
    """Per-thread session with light retry on 5xx (requests sessions are not thread-safe)."""
    sess = getattr(_local, "session", None)
    if sess is not None:
        return sess
    sess = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=["GET", "HEAD"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    sess.mount("https://", adapter)
    sess.mount("http://", adapter)
    sess.headers.update({"User-Agent": USER_AGENT})
    _local.session = sess
    return sess


def http_get(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> requests.Response:
    return get_session().get(url, params=params, headers=headers, timeout=timeout)


def get_json(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Optional[Any]:
    """GET and decode JSON. Returns None on non-2xx or undecodable bodies."""
    resp = http_get(url, params=params, headers=headers, timeout=timeout)
    if resp.status_code < 200 or resp.status_code >= 300:
        return None
    try:
        return resp.json()
    except ValueError:
        return None
