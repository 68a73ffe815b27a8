"""URL canonicalization used as the crawl's dedup identity.

Every link that reaches the frontier goes through :func:`normalize`, so two
spellings of the same resource (default port, fragment, host case, dot
segments) collapse into one :class:`CanonicalURL`.
"""
from __future__ import annotations

import re
import string
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Iterable, Optional, Sequence, Union
from urllib.parse import parse_qsl, urldefrag, urlencode, urljoin, urlsplit, urlunsplit

from ..errors import NormalizeError

_ALLOWED_SCHEMES = frozenset(("http", "https"))
_DEFAULT_PORTS = {"http": 80, "https": 443}
_PERCENT_ESCAPE = re.compile(r"%[0-9a-fA-F]{2}")
_UNRESERVED = frozenset(string.ascii_letters + string.digits + "-._~")


@dataclass(frozen=True)
class CanonicalURL:
    """Comparable, immutable identity of a URL."""

    url: str
    host: str

    def __str__(self) -> str:
        return self.url


def normalize(
    raw: str,
    base: Optional[Union[CanonicalURL, str]] = None,
    *,
    query_policy: str = "keep",
    drop_query_params: Sequence[str] = (),
) -> CanonicalURL:
    """
    Resolve ``raw`` against ``base`` and canonicalize it.

    Lowercases scheme and host, drops default ports and fragments, removes dot
    segments, decodes escaped unreserved characters and upper-cases
    the remaining percent escapes. Trailing slashes and index files
    are kept as-is since the server may treat them differently.

    Raises NormalizeError for empty, unparsable, host-less or non-http(s) input.
    """
    if raw is None or not raw.strip():
        raise NormalizeError(raw or "", "empty link")
    text = raw.strip()

    try:
        absolute = urljoin(str(base), text) if base is not None else text
        parts = urlsplit(absolute)
        port = parts.port
    except ValueError as exc:
        raise NormalizeError(raw, str(exc)) from exc

    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES:
        raise NormalizeError(raw, f"unsupported scheme {scheme or '(none)'!r}")

    host = (parts.hostname or "").rstrip(".")
    if not host:
        raise NormalizeError(raw, "missing host")

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = remove_dot_segments(_normalize_escapes(parts.path) or "/")
    query = _normalize_query(parts.query, query_policy, drop_query_params)

    return CanonicalURL(url=urlunsplit((scheme, netloc, path, query, "")), host=host)


def resolve(raw: str, base: Optional[Union[CanonicalURL, str]] = None) -> str:
    """Absolute, fragment-free form of ``raw`` as it should be requested."""
    absolute = urljoin(str(base), raw.strip()) if base is not None else raw.strip()
    return urldefrag(absolute).url


def remove_dot_segments(path: str) -> str:
    """RFC 3986 section 5.2.4."""
    output: list[str] = []
    remaining = path
    while remaining:
        if remaining.startswith("../"):
            remaining = remaining[3:]
        elif remaining.startswith("./"):
            remaining = remaining[2:]
        elif remaining.startswith("/./"):
            remaining = remaining[2:]
        elif remaining == "/.":
            remaining = "/"
        elif remaining.startswith("/../"):
            remaining = remaining[3:]
            if output:
                output.pop()
        elif remaining == "/..":
            remaining = "/"
            if output:
                output.pop()
        elif remaining in (".", ".."):
            remaining = ""
        else:
            start = 1 if remaining.startswith("/") else 0
            cut = remaining.find("/", start)
            if cut == -1:
                cut = len(remaining)
            output.append(remaining[:cut])
            remaining = remaining[cut:]
    return "".join(output) or "/"


def _normalize_escapes(value: str) -> str:
    """Decode escaped unreserved characters and upper-case the remaining escapes."""

    def _fix(match: re.Match) -> str:
        char = chr(int(match.group(0)[1:], 16))
        return char if char in _UNRESERVED else match.group(0).upper()

    return _PERCENT_ESCAPE.sub(_fix, value)


def _normalize_query(query: str, policy: str, drop: Iterable[str]) -> str:
    drop = tuple(drop)
    if not query or (policy == "keep" and not drop):
        return _normalize_escapes(query)

    pairs = parse_qsl(query, keep_blank_values=True)
    if drop:
        pairs = [(k, v) for k, v in pairs if not any(fnmatchcase(k, pattern) for pattern in drop)]
    if policy == "sort":
        # Stable: repeated keys keep their relative order.
        pairs = sorted(pairs, key=lambda kv: kv[0])
    return urlencode(pairs)
