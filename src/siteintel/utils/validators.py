"""URL validation and normalisation helpers."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

_REGEX_SPECIALS = re.compile(r"[.*+?^${}()|\[\]\\]")


def is_valid_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except ValueError:
        return False


def strip_www(host: str) -> str:
    host = (host or "").lower()
    return host[4:] if host.startswith("www.") else host


def domain_of(url: str) -> str:
    """Lookup key for a site: hostname without a leading ``www.``."""
    return strip_www(urlparse(url).hostname or "")


def origin_of(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}"


def normalize_url(url: str, base: str | None = None) -> str | None:
    """scheme + host + path, with query and fragment stripped."""
    try:
        absolute = urljoin(base, url) if base else url
        p = urlparse(absolute)
    except ValueError:
        return None
    if p.scheme not in ("http", "https") or not p.netloc:
        return None
    return f"{p.scheme}://{p.netloc.lower()}{p.path or '/'}"


def path_of(url: str) -> str:
    try:
        return urlparse(url).path or "/"
    except ValueError:
        return "/"


def path_segments(path_or_url: str) -> list[str]:
    path = path_of(path_or_url) if "://" in path_or_url else path_or_url
    return [s for s in path.split("/") if s]


def is_same_site(url: str, domain: str) -> bool:
    host = domain_of(url)
    return bool(host) and (host == domain or host.endswith("." + domain))


def escape_regex(s: str) -> str:
    """Escape like JavaScript's conventional escaper so patterns stay portable to the browser."""
    return _REGEX_SPECIALS.sub(lambda m: "\\" + m.group(0), s)


def canonical_path(path_or_url: str) -> str:
    """Path rebuilt from its non-empty segments: no trailing or doubled slashes."""
    return "/" + "/".join(path_segments(path_or_url))
