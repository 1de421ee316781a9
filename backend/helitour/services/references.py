"""
Booking reference and display token generation.
"""

import secrets

# No 0/O or 1/I so references survive being read out over the phone
REFERENCE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
REFERENCE_SUFFIX_LENGTH = 8


def generate_booking_reference(prefix: str = "HT") -> str:
    """Return a new `PREFIX-XXXXXXXX` reference. Uniqueness is enforced by the database."""
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_SUFFIX_LENGTH))
    return f"{prefix}-{suffix}"


def display_token(reference: str) -> str:
    """Token rendered as the boarding QR code."""
    return f"QR-{reference}"
