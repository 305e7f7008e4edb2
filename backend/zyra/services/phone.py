"""
Phone number normalization - canonical +<countrycode><digits> form
"""

import re

DEFAULT_COUNTRY_CODE = "254"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """
    Canonicalize a phone number.

    Every non-digit is stripped first, then:
    - digits starting with the country code get a "+" prefix
    - a leading local trunk "0" is replaced by "+254"
    - anything else is prefixed with "+254"

    No digit-count validation is performed: any input is normalized, never
    rejected. Canonical input is returned unchanged.

    Examples:
        "0712 345 678"    -> "+254712345678"
        "+254712345678"   -> "+254712345678"
        "712345678"       -> "+254712345678"
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if digits.startswith(DEFAULT_COUNTRY_CODE):
        return f"+{digits}"
    if digits.startswith("0"):
        return f"+{DEFAULT_COUNTRY_CODE}{digits[1:]}"
    return f"+{DEFAULT_COUNTRY_CODE}{digits}"
