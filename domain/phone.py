"""
Domain: Phone number matching.

Customers type phone numbers in many shapes ("+7 (777) 123-12-12",
"7 777 123 12 12", "87771231212"). Two numbers belong to the same customer iff
their digit sequences are identical. No country-code canonicalization is
applied: "87771231212" and "+7 (777) 123-12-12" do NOT match.

Write paths only accept the canonical display format `+7 (XXX) XXX-XX-XX`.
"""

from __future__ import annotations

import re

CANONICAL_PHONE_PATTERN = r"^\+7 \(\d{3}\) \d{3}-\d{2}-\d{2}$"
CANONICAL_PHONE_EXAMPLE = "+7 (777) 123-12-12"
INVALID_PHONE_MESSAGE = f"Invalid phone number format. Use {CANONICAL_PHONE_EXAMPLE}"

_CANONICAL_RE = re.compile(CANONICAL_PHONE_PATTERN)
_NON_DIGIT_RE = re.compile(r"\D")


def extract_digits(raw: str | None) -> str:
    """
    Strip every non-digit character.

    Example:
        extract_digits("+7 (777) 123-45-67")
        # Returns "77771234567"
    """

    if not raw:
        return ""
    return _NON_DIGIT_RE.sub("", raw)


def phones_match(first: str | None, second: str | None) -> bool:
    """Digit-string equality. Empty digit strings never match."""

    first_digits = extract_digits(first)
    return bool(first_digits) and first_digits == extract_digits(second)


def is_canonical_phone(raw: str | None) -> bool:
    return bool(raw) and _CANONICAL_RE.match(raw) is not None


def format_phone_number(raw: str) -> str:
    """
    Best-effort conversion of free-form input to the canonical format.

    - 11 digits starting with 8: trunk prefix replaced by 7
    - 11 digits starting with 7: used as is
    - 10 digits: assumed to lack the country code

    Input that fits none of these is returned unchanged.
    """

    digits = extract_digits(raw)

    if len(digits) == 11 and digits.startswith("8"):
        digits = "7" + digits[1:]

    if len(digits) == 11 and digits.startswith("7"):
        local = digits[1:]
    elif len(digits) == 10:
        local = digits
    else:
        return raw

    return f"+7 ({local[0:3]}) {local[3:6]}-{local[6:8]}-{local[8:10]}"


__all__ = [
    "CANONICAL_PHONE_PATTERN",
    "INVALID_PHONE_MESSAGE",
    "extract_digits",
    "phones_match",
    "is_canonical_phone",
    "format_phone_number",
]
