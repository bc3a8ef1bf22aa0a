from __future__ import annotations

import logging
import secrets
import string
from typing import Callable

from ..errors import CollisionExhausted

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
DEFAULT_LENGTH = 10
DEFAULT_MAX_ATTEMPTS = 10


def generate_share_id(length: int = DEFAULT_LENGTH) -> str:
    """Draw ``length`` characters uniformly from the 62-character alphabet."""
    if length < 1:
        raise ValueError("share id length must be positive")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def allocate_unique(
    check_exists: Callable[[str], bool],
    *,
    length: int = DEFAULT_LENGTH,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    generate: Callable[[int], str] = generate_share_id,
) -> str:
    """Generate ids until ``check_exists`` reports a free one, at most ``max_attempts`` times."""
    for attempt in range(1, max_attempts + 1):
        candidate = generate(length)
        if not check_exists(candidate):
            if attempt > 1:
                logger.info("Share id allocated after %d attempts", attempt)
            return candidate
    logger.critical(
        "Share id allocation exhausted %d attempts; check alphabet/length configuration",
        max_attempts,
        extra={"event": "share.collision_exhausted", "length": length},
    )
    raise CollisionExhausted(max_attempts)
