"""SHA-256 content hashing for content addresses and change detection"""

import hashlib


def sha256_digest(content: bytes | str) -> bytes:
    """Return the raw 32-byte SHA-256 digest; str input is UTF-8 encoded."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).digest()


def sha256(content: bytes | str) -> str:
    """Return hex-encoded SHA-256 hash of content (64 chars)."""
    return sha256_digest(content).hex()
