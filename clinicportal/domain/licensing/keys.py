"""License key generation"""

import hashlib
import secrets
import string

from ...config import LICENSE_KEY_PREFIX

ALPHABET = string.ascii_uppercase + string.digits


def _raw_code(length: int) -> str:
    """Raw secure random string (uppercase + digits)"""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def _checksum(raw: str) -> str:
    """Short 2-char checksum derived from sha256"""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:2].upper()


def generate_license_key(prefix: str = LICENSE_KEY_PREFIX, length: int = 16, block_size: int = 4) -> str:
    """
    Generate a license key such as ``LIC-ABCD-EFGH-IJKL-MNOP-4F``.

    Uniqueness is enforced by the unique index on ``licenses.license_key``;
    a collision fails the insert instead of producing a duplicate.
    """
    raw = _raw_code(length)
    blocks = "-".join(raw[i : i + block_size] for i in range(0, len(raw), block_size))
    return f"{prefix}-{blocks}-{_checksum(raw)}"


def is_well_formed(key: str, prefix: str = LICENSE_KEY_PREFIX) -> bool:
    """Check the block layout and checksum of a key"""
    parts = key.split("-")
    if len(parts) < 3 or parts[0] != prefix:
        return False
    raw = "".join(parts[1:-1])
    if not raw or any(ch not in ALPHABET for ch in raw):
        return False
    return _checksum(raw) == parts[-1]
