"""chartkit.utils — Version parsing helpers."""

from __future__ import annotations

import semver


def parse_version(v: str | None) -> semver.Version | None:
    """Parse a SemVer 2.0 chart version, returning None on failure.

    A leading ``v`` is accepted. Build metadata does not affect ordering.

    >>> str(parse_version("v1.2.3"))
    '1.2.3'
    >>> parse_version("1.0.0-beta.2.3") > parse_version("0.9.0")
    True
    >>> parse_version("latest") is None
    True
    """
    if not v:
        return None
    text = v[1:] if v.startswith("v") else v
    try:
        return semver.Version.parse(text)
    except (ValueError, TypeError):
        return None
