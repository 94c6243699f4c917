"""
Cache key derivation.

Keys are ``prefix + base64(url)``: stable across restarts and reversible so
administrative tooling can decode them back to URLs.
"""

import base64
import binascii

DEFAULT_PREFIX = "preview:"


def cache_key_for(url: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Derive the cache key for a normalized URL."""
    encoded = base64.b64encode(url.encode("utf-8")).decode("ascii")
    return f"{prefix}{encoded}"


def url_from_cache_key(key: str, prefix: str = DEFAULT_PREFIX) -> str:
    """
    Recover the URL a cache key was derived from.

    Raises:
        ValueError: If the key has a different prefix or is not valid base64
    """
    if not key.startswith(prefix):
        raise ValueError(f"Cache key does not start with {prefix!r}: {key}")
    try:
        return base64.b64decode(key[len(prefix):], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Cache key is not decodable: {key}") from e
