"""Participant identity normalization and validation."""

from __future__ import annotations

import unicodedata

import regex

MIN_IDENTITY_GRAPHEMES = 3
MAX_IDENTITY_GRAPHEMES = 64
_GRAPHEME_PATTERN = regex.compile(r"\X")
# Wallet addresses, mock names and display handles: letters, digits and a few separators.
_IDENTITY_PATTERN = regex.compile(r"^[\p{L}\p{M}\p{N}_.:\-]+$")


class IdentityValidationError(ValueError):
    """Raised when an identity violates session validation rules."""


def normalize_identity(raw_identity: str) -> str:
    """Trim and normalize identity to NFC form."""
    return unicodedata.normalize("NFC", raw_identity.strip())


def count_graphemes(value: str) -> int:
    """Count user-visible characters using grapheme clusters."""
    return len(_GRAPHEME_PATTERN.findall(value))


def validate_identity(identity: str) -> None:
    grapheme_count = count_graphemes(identity)
    if grapheme_count < MIN_IDENTITY_GRAPHEMES or grapheme_count > MAX_IDENTITY_GRAPHEMES:
        raise IdentityValidationError(
            f"identity length must be {MIN_IDENTITY_GRAPHEMES}-{MAX_IDENTITY_GRAPHEMES} characters"
        )
    if not _IDENTITY_PATTERN.match(identity):
        raise IdentityValidationError("identity may only contain letters, digits, '_', '-', '.' or ':'")


def normalize_and_validate_identity(raw_identity: str) -> str:
    """Apply trim + NFC and validate length and alphabet."""
    normalized = normalize_identity(raw_identity)
    validate_identity(normalized)
    return normalized
