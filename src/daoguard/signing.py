# payload authentication module
"""HMAC-SHA256 tags for DAO payloads.

Frame layout: payload bytes followed by a 32-byte tag over the payload.
A valid tag proves the payload came from a key holder; it says nothing about
freshness, so a captured signed DAO still has to get past the validator.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from .common import SignatureError

TAG_LEN = 32
MIN_KEY_LEN = 16


def check_key(key: bytes) -> bytes:
    """Return *key* if it is long enough to sign with, else raise ValueError."""
    if len(key) < MIN_KEY_LEN:
        raise ValueError(f"HMAC key must be at least {MIN_KEY_LEN} bytes")
    return key


def _mac(key: bytes) -> hmac.HMAC:
    check_key(key)
    return hmac.HMAC(key, hashes.SHA256())


def sign(payload: bytes, key: bytes) -> bytes:
    """Return *payload* with its HMAC tag appended."""
    h = _mac(key)
    h.update(payload)
    return payload + h.finalize()


def verify(frame: bytes, key: bytes) -> bytes:
    """Check the trailing tag of *frame* and return the bare payload."""
    if len(frame) < TAG_LEN:
        raise SignatureError("frame shorter than authentication tag")
    payload, tag = frame[:-TAG_LEN], frame[-TAG_LEN:]
    h = _mac(key)
    h.update(payload)
    try:
        h.verify(tag)
    except InvalidSignature:
        raise SignatureError("authentication tag mismatch") from None
    return payload
