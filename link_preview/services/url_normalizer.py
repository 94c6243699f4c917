"""
URL Normalizer.

Validates raw user input and canonicalizes it into an absolute http(s) URL
suitable for navigation and cache-key derivation.
"""

import ipaddress
import logging
import re
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ..errors import ValidationError

logger = logging.getLogger("link_preview.url_normalizer")

_STRIPPED_CHARS_RE = re.compile(r"[\t\r\n]")
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_FORBIDDEN_HOST_RE = re.compile(r"[\s#%/:<>?@\[\\\]^|]")
_DEFAULT_PORTS = {"http": 80, "https": 443}

# Existing percent-escapes are kept so that normalizing twice is a no-op
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"
_QUERY_SAFE = _PATH_SAFE + "?"


def _remove_dot_segments(path: str) -> str:
    """Resolve "." and ".." segments of an absolute path (RFC 3986 section 5.2.4)."""
    output = []
    for segment in path.split("/")[1:]:
        if segment == "..":
            if output:
                output.pop()
        elif segment != ".":
            output.append(segment)

    result = "/" + "/".join(output)
    if output and path.endswith(("/.", "/..")):
        result += "/"
    return result


def _slashes_before_query(url: str) -> str:
    # Backslashes act as path separators in http(s) URLs, but not in the query or fragment
    match = re.search(r"[?#]", url)
    end = match.start() if match else len(url)
    return url[:end].replace("\\", "/") + url[end:]


def _canonical_host(hostname: str) -> str:
    if ":" in hostname:
        try:
            return f"[{ipaddress.IPv6Address(hostname).compressed}]"
        except ValueError as e:
            raise ValidationError("Invalid URL provided") from e

    if _FORBIDDEN_HOST_RE.search(hostname):
        raise ValidationError("Invalid URL provided")

    try:
        return hostname.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise ValidationError("Invalid URL provided") from e


def normalize_url(raw: Optional[str]) -> str:
    """
    Normalize a raw URL string.

    Input without a scheme gets ``https://``. The result has a lowercase
    scheme and host, no default port, a non-empty path without dot segments
    and percent-encoded path/query/fragment. Tabs and newlines are dropped
    and backslashes before the query count as slashes.

    Args:
        raw: URL as supplied by the client

    Returns:
        Canonical absolute URL

    Raises:
        ValidationError: If the input is empty, uses another scheme or
            cannot be parsed
    """
    if raw is None or not raw.strip():
        raise ValidationError("URL is required")

    candidate = _STRIPPED_CHARS_RE.sub("", raw.strip())
    if not candidate.lower().startswith(("http://", "https://")):
        if _SCHEME_RE.match(candidate):
            raise ValidationError(f"Unsupported URL scheme: {candidate.split(':', 1)[0]}")
        candidate = "https://" + candidate
        logger.debug(f"Added https:// to URL: {candidate}")

    candidate = _slashes_before_query(candidate)

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as e:
        raise ValidationError("Invalid URL provided") from e

    if not parts.hostname:
        raise ValidationError("Invalid URL provided")

    netloc = _canonical_host(parts.hostname)
    if port is not None and port != _DEFAULT_PORTS[parts.scheme]:
        netloc = f"{netloc}:{port}"
    if "@" in parts.netloc:
        userinfo = parts.netloc.rpartition("@")[0]
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((
        parts.scheme,
        netloc,
        quote(_remove_dot_segments(parts.path or "/"), safe=_PATH_SAFE),
        quote(parts.query, safe=_QUERY_SAFE),
        quote(parts.fragment, safe=_QUERY_SAFE),
    ))
