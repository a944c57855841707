import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import bleach


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Business rule: money stored rounded to 2 decimals
def round_amount(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored or searched.

    - Strips every HTML tag using bleach.clean with an empty allow-list
    - Removes obvious SQL metacharacters like '--' and ';'
    - Trims whitespace
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    # strip tags
    val = bleach.clean(val, tags=set(), attributes={}, strip=True)
    # remove common SQL comment and statement separators
    val = re.sub(r"(--|;)", "", val)
    return val.strip()


def sanitize_optional(value: Optional[str]) -> Optional[str]:
    """Like sanitize_input, but keeps "no value" as None."""
    if value is None:
        return None
    cleaned = sanitize_input(value)
    return cleaned or None
