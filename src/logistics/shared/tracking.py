"""Tracking number allocation.

Outbound parcels get ``SD`` plus four random digits. The space is small, so
callers pass a lookup and allocation retries until it finds a free number.
Return legs of an exchange reuse their outbound number behind ``RTN-``.
"""

import random
from collections.abc import Callable

from logistics.errors import ConflictError

TRACKING_PREFIX = "SD"
RETURN_PREFIX = "RTN-"
MAX_ATTEMPTS = 25


def random_tracking_number(rng: random.Random | None = None) -> str:
    rng = rng or random
    return f"{TRACKING_PREFIX}{rng.randint(1000, 9999)}"


def allocate_tracking_number(
    is_taken: Callable[[str], bool],
    rng: random.Random | None = None,
    attempts: int = MAX_ATTEMPTS,
) -> str:
    """Draw random tracking numbers until one is not taken."""
    for _ in range(attempts):
        candidate = random_tracking_number(rng)
        if not is_taken(candidate):
            return candidate
    raise ConflictError(
        "Could not allocate a free tracking number",
        attempts=attempts,
    )


def return_tracking_number(outbound_tracking_number: str) -> str:
    return f"{RETURN_PREFIX}{outbound_tracking_number}"
