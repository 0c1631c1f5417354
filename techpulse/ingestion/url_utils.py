"""URL canonicalization helpers for ingestion/dedup and signal lookups."""

from __future__ import annotations

from typing import List
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


def _is_tracking_param(key: str, *, extra: tuple = ()) -> bool:
    k = key.lower()
    return k.startswith("utm_") or k == "ref" or k in extra


def canonicalize_url(url: str) -> str:
    """Canonicalize a URL for dedup.

    - Remove fragments
    - Strip `utm_*` and `ref` query parameters
    - Preserve order of remaining query params
    Unparseable input is returned trimmed.
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    try:
        p = urlparse(raw)
    except ValueError:
        return raw
    if not p.scheme or not p.netloc:
        return raw
    kept = [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if not _is_tracking_param(k)]
    query = urlencode(kept, doseq=True)
    path = p.path or "/"
    return urlunparse((p.scheme.lower(), p.netloc.lower(), path, p.params, query, ""))


def canonical_variants(url: str) -> List[str]:
    """URL spellings worth querying on external search APIs.

    Returns the raw URL, the tracking-stripped form (also dropping `source`),
    and that form with and without a trailing slash, deduplicated in order.
    """
    raw = (url or "").strip()
    try:
        p = urlparse(raw)
    except ValueError:
        return [raw]
    if not p.scheme or not p.netloc:
        return [raw]
    kept = [
        (k, v)
        for k, v in parse_qsl(p.query, keep_blank_values=True)
        if not _is_tracking_param(k, extra=("source",))
    ]
    query = urlencode(kept, doseq=True)
    path = p.path or "/"
    stripped = urlunparse((p.scheme, p.netloc, path, p.params, query, ""))

    no_slash_path = path[:-1] if path != "/" and path.endswith("/") else path
    with_slash_path = path if path.endswith("/") else path + "/"
    no_slash = urlunparse((p.scheme, p.netloc, no_slash_path, p.params, query, ""))
    with_slash = urlunparse((p.scheme, p.netloc, with_slash_path, p.params, query, ""))

    out: List[str] = []
    for v in (raw, stripped, no_slash, with_slash):
        if v not in out:
            out.append(v)
    return out

