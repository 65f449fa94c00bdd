"""
Referral partner code generation.

Codes are upper-case alphanumerics, at most 16 characters. Collisions are
resolved with a two-digit suffix 01..09, then a random three-digit suffix.
"""

import random
import re
from typing import Callable, Optional

MAX_CODE_LENGTH = 16
DEFAULT_BASE = "PARTNER"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def normalize_code_base(requested_code: Optional[str], name: Optional[str]) -> str:
    """
    Derive the base code from a requested code or the partner name.

    Examples:
        >>> normalize_code_base(None, "Smoky Mtn Realty, LLC")
        'SMOKYMTNREALTYLL'
        >>> normalize_code_base("  gat-01 ", "ignored")
        'GAT01'
        >>> normalize_code_base("", "!!!")
        'PARTNER'
    """
    source = (requested_code or "").strip() or (name or "").strip() or DEFAULT_BASE
    base = _NON_ALNUM.sub("", source.upper())[:MAX_CODE_LENGTH]
    return base or DEFAULT_BASE


def generate_referral_code(
    requested_code: Optional[str],
    name: Optional[str],
    code_exists: Callable[[str], bool],
    rng: Optional[random.Random] = None,
) -> str:
    """
    Pick an unused referral code.

    Args:
        requested_code: Code asked for by the admin, may be blank
        name: Partner name, used when no code was requested
        code_exists: Returns True when a partner already uses the code
        rng: Random source for the last-resort suffix

    Returns:
        A code no longer than 16 characters
    """
    base = normalize_code_base(requested_code, name)
    if not code_exists(base):
        return base

    for n in range(1, 10):
        suffix = f"{n:02d}"
        candidate = base[: MAX_CODE_LENGTH - len(suffix)] + suffix
        if not code_exists(candidate):
            return candidate

    number = (rng or random).randint(100, 999)
    return base[: MAX_CODE_LENGTH - 3] + str(number)
