"""Cookie string helpers.

``parse_cookie_string`` reads the request-side ``k1=v1; k2=v2`` form used for
the COOKIES setting and for ``Cookie`` headers. Such strings carry no
attributes, so names like ``path`` or ``version`` are ordinary cookies. Values
go through ``http.cookies.SimpleCookie`` so quoted values are unquoted.
"""

from __future__ import annotations

from http.cookies import CookieError, SimpleCookie


def _parse_segment(segment: str) -> tuple[str, str] | None:
    name, sep, value = segment.partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    jar = SimpleCookie()
    try:
        jar.load(segment)
    except CookieError:
        jar = SimpleCookie()
    morsel = jar.get(name)
    if morsel is None:
        # SimpleCookie refuses reserved and some legal-in-practice names; keep them verbatim
        return name, value.strip()
    return morsel.key, morsel.value


def parse_cookie_string(raw: str | None) -> list[tuple[str, str]]:
    """Return ``(name, value)`` pairs in header order, duplicates included."""
    if not raw:
        return []
    pairs = []
    for segment in raw.split(";"):
        parsed = _parse_segment(segment.strip())
        if parsed is not None:
            pairs.append(parsed)
    return pairs


def find_cookie(raw: str | None, name: str) -> str | None:
    """First value whose trimmed name matches ``name`` case-insensitively."""
    wanted = name.strip().lower()
    for key, value in parse_cookie_string(raw):
        if key.strip().lower() == wanted:
            return value
    return None
