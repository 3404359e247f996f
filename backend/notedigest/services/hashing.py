"""Content fingerprinting for upload deduplication."""

import hashlib


def content_fingerprint(data: bytes) -> str:
    """Return the lowercase SHA-256 hex digest of the raw uploaded bytes."""
    return hashlib.sha256(data).hexdigest()
