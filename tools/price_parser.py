"""Free-text price range parsing.

Lead intake stores the asking price as whatever the client typed, e.g.
"2.5M EGP", "1,200,000 EGP" or "negotiable". This module is the only
place that turns that text into a number; every other component works
with the parsed value.

Rules:
    - the first run starting with a digit and continuing over digits,
      commas and periods is the number
    - commas are thousands separators and are dropped; when more than one
      period appears they are thousands separators too ("1.200.000")
    - a "million" / "M" / "Mn" marker anywhere in the text multiplies by 1,000,000
    - no digit run at all yields 0
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

_NUMBER_RUN = re.compile(r"\d[\d,.]*")
_MILLION_MARKER = re.compile(r"\bmillions?\b|\d\s*mn?\b|\bmn?\b", re.IGNORECASE)
_MILLION = Decimal(1_000_000)


def has_million_marker(price_range: Optional[str]) -> bool:
    """Whether the text carries a "million" / "M" magnitude marker."""
    if not price_range:
        return False
    return _MILLION_MARKER.search(price_range) is not None


def extract_estimated_value(price_range: Optional[str]) -> float:
    """Parse a free-text price range into a numeric estimate. Never raises.

    >>> extract_estimated_value("2.5M EGP")
    2500000.0
    >>> extract_estimated_value("1,200,000 EGP")
    1200000.0
    >>> extract_estimated_value("EGP negotiable")
    0.0
    """
    if not price_range:
        return 0.0

    match = _NUMBER_RUN.search(price_range)
    if match is None:
        return 0.0

    digits = match.group(0).replace(",", "")
    if digits.count(".") > 1:
        digits = digits.replace(".", "")
    digits = digits.rstrip(".")

    try:
        value = Decimal(digits)
    except InvalidOperation:
        return 0.0

    if has_million_marker(price_range):
        value *= _MILLION

    return float(value)
