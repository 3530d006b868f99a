"""Recipient parsing - comma-separated numbers to canonical identifiers."""

from __future__ import annotations

DEFAULT_COUNTRY_CODE = "51"
DEFAULT_DIGITS = 9

CHAT_ID_SUFFIX = "@c.us"


def _is_valid_segment(segment: str, digits: int) -> bool:
    # str.isdigit() accepts non-ASCII digits such as "٣"; only 0-9 count here
    return len(segment) == digits and segment.isascii() and segment.isdigit()


def parse_recipients(
    raw: str | None,
    *,
    country_code: str = DEFAULT_COUNTRY_CODE,
    digits: int = DEFAULT_DIGITS,
) -> list[str]:
    """Parse a comma-separated list of local numbers into recipient identifiers.

    Segments are trimmed; only those made of exactly ``digits`` decimal digits
    are kept and prefixed with ``country_code``. Order and duplicates are
    preserved. Malformed segments are dropped silently.

    Args:
        raw: Input such as "987654321, 123456789".
        country_code: Prefix prepended to every kept segment.
        digits: Exact length a segment must have.

    Returns:
        List of identifiers, e.g. ["51987654321", "51123456789"]. Empty when
        the input is empty or nothing validates.
    """
    if not raw:
        return []

    segments = (segment.strip() for segment in raw.split(","))
    return [f"{country_code}{s}" for s in segments if _is_valid_segment(s, digits)]


def to_chat_id(recipient: str) -> str:
    """Address a recipient the way the messaging client expects."""
    return f"{recipient}{CHAT_ID_SUFFIX}"


def chat_id_to_number(chat_id: str) -> str:
    """Strip the JID suffix from a chat id (e.g. "51987654321@c.us" -> "51987654321")."""
    return chat_id.split("@")[0]
