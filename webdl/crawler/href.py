# webdl/crawler/href.py
"""
Resolution of (possibly relative) hrefs found on a page into absolute URLs.
"""
from __future__ import annotations

import posixpath
import re
from urllib.parse import urlsplit, urlunsplit

from webdl.errors import InvalidHref

__all__ = ("resolve",)

_ABSOLUTE_RE = re.compile(r"^https?:", re.IGNORECASE)


def _checked(url: str) -> str:
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a bad port
    except ValueError as exc:
        raise InvalidHref(f"{url!r}: {exc}") from exc
    if not parts.scheme or not parts.netloc:
        raise InvalidHref(f"{url!r}: missing scheme or host")
    try:
        # empty labels and labels over 63 characters are rejected here
        (parts.hostname or "").encode("idna")
    except UnicodeError as exc:
        raise InvalidHref(f"{url!r}: bad host name: {exc}") from exc
    return url


def resolve(base: str, ref: str) -> str:
    """
    Turn *ref* into an absolute URL using *base* (the page it was found on).

    * ``""`` → *base* unchanged.
    * ``http(s):…`` or ``//host/…`` → parsed on its own; a missing scheme is
      taken from *base*.
    * ``/path`` → appended to the origin of *base*.
    * anything else → appended to the directory of *base*'s path.

    Raises :class:`~webdl.errors.InvalidHref` when the result is not a usable URL.
    """
    if not ref:
        return base

    try:
        page = urlsplit(base)
    except ValueError as exc:
        raise InvalidHref(f"bad base URL {base!r}: {exc}") from exc

    if _ABSOLUTE_RE.match(ref) or ref.startswith("//"):
        try:
            parts = urlsplit(ref)
        except ValueError as exc:
            raise InvalidHref(f"{ref!r}: {exc}") from exc
        if not parts.scheme:
            parts = parts._replace(scheme=page.scheme)
        return _checked(urlunsplit(parts))

    origin = urlunsplit((page.scheme, page.netloc, "", "", ""))
    if ref.startswith("/"):
        return _checked(origin + ref)

    directory = posixpath.dirname(page.path).rstrip("/")
    return _checked(f"{origin}{directory}/{ref}")
