"""Area label for the property report (地区)."""

import re

# Greedy prefix through the suffix: "高雄工業 本社工場 A棟" -> "高雄工業 本社工場"
_SITE_PATTERNS = (
    re.compile(r"(.+事業所)"),
    re.compile(r"(.+工場)"),
    re.compile(r"(.+支店)"),
)

_SPACES = re.compile(r"[ 　]")

ADDRESS_PREFIX_LENGTH = 6


def extract_area(name: str, address: str) -> str:
    """
    Derive the area of a property.

    A site name (…事業所, …工場, …支店) in the property name wins. Otherwise
    the first space-separated segment of the address when it has two or
    more segments, else the first six characters of the address.
    """
    for pattern in _SITE_PATTERNS:
        match = pattern.search(name or "")
        if match:
            return match.group(1)

    address = address or ""
    parts = _SPACES.split(address)
    if len(parts) >= 2:
        return parts[0]
    return address[:ADDRESS_PREFIX_LENGTH]
