"""
Checksum coupon codes.

Codes look like ``C2-7KX9QA-3F``: a prize prefix, six random base-36
characters and a two-character checksum derived from both.
"""

import re
import string
from typing import Optional

from .exceptions import InvalidCouponError
from .models import CouponPrize, CouponPrizeType

# Prefix -> value fed into the checksum (credits or days)
PREFIX_VALUES: dict[str, int] = {
    "B4": 14,
    "P7": 7,
    "C2": 200,
    "C1": 100,
    "C4": 40,
}

# Plan prefixes: (plan granted, plans allowed to redeem)
PLAN_PREFIXES: dict[str, tuple[str, list[str]]] = {
    "B4": ("basic", ["free"]),
    "P7": ("pro", ["free", "basic"]),
}

CHECKSUM_MULTIPLIERS = (3, 7, 11, 13, 17, 19)
CHECKSUM_SALT = 5381

_COUPON_RE = re.compile(r"^(B4|P7|C2|C1|C4)-([A-Z0-9]{6})-([A-Z0-9]{2})$")
_BASE36 = string.digits + string.ascii_uppercase


def char_value(char: str) -> int:
    """0-9 map to 0-9, A-Z to 10-35, anything else to 0."""
    index = _BASE36.find(char)
    return index if index >= 0 else 0


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def calculate_checksum(prefix: str, random_part: str) -> str:
    total = sum(
        char_value(char) * CHECKSUM_MULTIPLIERS[i % len(CHECKSUM_MULTIPLIERS)]
        for i, char in enumerate(random_part[:6])
    )
    total += PREFIX_VALUES[prefix] + CHECKSUM_SALT
    return to_base36(total % 1296).zfill(2)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def prize_for_prefix(prefix: str) -> CouponPrize:
    value = PREFIX_VALUES[prefix]
    if prefix in PLAN_PREFIXES:
        plan_id, eligible = PLAN_PREFIXES[prefix]
        return CouponPrize(
            type=CouponPrizeType.PLAN_DAYS,
            value=value,
            plan_id=plan_id,
            eligible_plans=eligible,
            description=f"Upgrade to {plan_id.capitalize()} for {value} days",
        )
    return CouponPrize(
        type=CouponPrizeType.CREDITS,
        value=value,
        description=f"{value} credits",
    )


def parse_coupon(code: str) -> tuple[str, CouponPrize]:
    """
    Validate a coupon's format and checksum.

    Returns:
        (normalized code, prize)

    Raises:
        InvalidCouponError: If the format or checksum is wrong
    """
    normalized = normalize_code(code)
    match: Optional[re.Match] = _COUPON_RE.match(normalized)
    if not match:
        raise InvalidCouponError(normalized, "Invalid coupon format. Use XX-YYYYYY-CC")

    prefix, random_part, checksum = match.groups()
    if calculate_checksum(prefix, random_part) != checksum:
        raise InvalidCouponError(normalized)

    return normalized, prize_for_prefix(prefix)
