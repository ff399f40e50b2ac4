"""Human-transcribable note identifiers.

Format: 8 characters drawn from uppercase letters and digits 2-9, with the
visually ambiguous 0, 1, O and I left out. The lookup table has 33 slots
(``2`` appears twice), so each random byte maps to ``ALPHABET[byte % 33]``.

Roughly 1.4 trillion combinations against a 72-hour retention window keeps
the number of concurrently live identifiers orders of magnitude below the
space size, so generation does not retry on collision.

Examples: A3X9K2M7, P5Q2R8S4 (displayed as A3X9-K2M7, P5Q2-R8S4).
"""

from __future__ import annotations

import logging
import random
import re
import secrets
from dataclasses import dataclass, field
from typing import Iterable

logger = logging.getLogger(__name__)

ALPHABET = "234567892ABCDEFGHJKLMNPQRSTUVWXYZ"
IDENTIFIER_LENGTH = 8

_ALPHABET_SET = frozenset(ALPHABET)
_SEPARATORS_RE = re.compile(r"[-\s]")


def _random_bytes(count: int) -> bytes:
    """Draw random bytes, falling back to a non-cryptographic source."""
    try:
        return secrets.token_bytes(count)
    except (NotImplementedError, OSError) as exc:
        logger.warning(
            "identifiers.weak_randomness_fallback",
            extra={"error_type": type(exc).__name__},
        )
        return bytes(random.getrandbits(8) for _ in range(count))


def generate_identifier() -> str:
    """Generate a new canonical identifier.

    Returns:
        An 8-character uppercase identifier (no hyphen).
    """
    return "".join(ALPHABET[byte % len(ALPHABET)] for byte in _random_bytes(IDENTIFIER_LENGTH))


def normalize_identifier(identifier: object) -> str:
    """Normalize user input to the canonical storage form.

    Uppercases, removes hyphens and whitespace, and trims.

    Examples:
        >>> normalize_identifier("  a3x9-k2m7 ")
        'A3X9K2M7'
        >>> normalize_identifier(None)
        ''
    """
    if not isinstance(identifier, str) or not identifier:
        return ""
    return _SEPARATORS_RE.sub("", identifier.upper()).strip()


def is_valid_identifier(identifier: object) -> bool:
    """Return True if the normalized input is a well-formed identifier."""
    normalized = normalize_identifier(identifier)
    if len(normalized) != IDENTIFIER_LENGTH:
        return False
    return all(char in _ALPHABET_SET for char in normalized)


def format_identifier(identifier: str, use_hyphens: bool = False) -> str:
    """Format an identifier for display.

    The hyphenated form is for people only and must never be used as a
    storage key.

    Examples:
        >>> format_identifier("a3x9k2m7", use_hyphens=True)
        'A3X9-K2M7'
    """
    normalized = normalize_identifier(identifier)
    if not use_hyphens or len(normalized) != IDENTIFIER_LENGTH:
        return normalized
    half = IDENTIFIER_LENGTH // 2
    return f"{normalized[:half]}-{normalized[half:]}"


@dataclass(frozen=True)
class CollisionStats:
    """Identifier space size versus the number of concurrently live notes.

    ``collision_percent`` maps a creation rate (notes per day) to the chance,
    in percent, that a freshly generated identifier lands on a live note.
    """

    total_combinations: int
    retention_hours: int
    collision_percent: dict[int, float] = field(default_factory=dict)


def collision_stats(
    notes_per_day: Iterable[int] = (1_000, 10_000, 100_000),
    *,
    retention_hours: int = 72,
) -> CollisionStats:
    """Estimate collision odds for generated identifiers.

    Examples:
        >>> stats = collision_stats([1_000])
        >>> stats.total_combinations
        1406408618241
    """
    if retention_hours < 1:
        raise ValueError("retention_hours must be >= 1")

    total = len(ALPHABET) ** IDENTIFIER_LENGTH
    percent = {}
    for rate in notes_per_day:
        if rate < 0:
            raise ValueError("notes_per_day values must be >= 0")
        live_notes = rate * retention_hours / 24
        percent[rate] = live_notes / total * 100
    return CollisionStats(
        total_combinations=total,
        retention_hours=retention_hours,
        collision_percent=percent,
    )
