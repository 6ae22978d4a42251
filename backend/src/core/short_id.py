"""
Compact public identifiers for profiles.

A short id is the unpadded URL-safe base64 encoding of the profile's UUID bytes:
22 characters from [A-Za-z0-9_-], valid unescaped in a URL path segment. The
mapping is a bijection, so the same UUID always yields the same id and the UUID
can be recovered from it.
"""
import base64
import re
from uuid import UUID

SHORT_ID_LENGTH = 22
MIN_SOURCE_BYTES = 16

SHORT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{22}$")


def encode_short_id(value: UUID | bytes) -> str:
    """
    Encode a UUID (or any source of at least 128 bits) as a URL-safe identifier.

    Args:
        value: The UUID or raw bytes to encode.

    Returns:
        Unpadded URL-safe base64. A 16-byte source always yields 22 characters.

    Raises:
        ValueError: If the source has fewer than 16 bytes.
    """
    raw = value.bytes if isinstance(value, UUID) else bytes(value)
    if len(raw) < MIN_SOURCE_BYTES:
        raise ValueError(
            f"Short id source must be at least {MIN_SOURCE_BYTES} bytes, got {len(raw)}",
        )
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_short_id(short_id: str) -> UUID:
    """
    Recover the UUID a short id was derived from.

    Only the canonical spelling is accepted: base64 leaves spare bits in the last
    character, and ids that differ only in those bits are rejected rather than
    aliased to the same UUID.

    Raises:
        ValueError: If the id has the wrong length, alphabet or is non-canonical.
    """
    if not SHORT_ID_PATTERN.match(short_id):
        raise ValueError(f"Invalid short id: {short_id!r}")
    uuid = UUID(bytes=base64.urlsafe_b64decode(short_id + "=="))
    if encode_short_id(uuid) != short_id:
        raise ValueError(f"Non-canonical short id: {short_id!r}")
    return uuid


def is_valid_short_id(short_id: str) -> bool:
    """Check whether a string is a canonical short id."""
    try:
        decode_short_id(short_id)
    except ValueError:
        return False
    return True
