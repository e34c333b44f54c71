"""Secret hashing helpers.

Admin API keys and revoked tracking tokens are only ever stored as SHA-256
hex digests.
"""

import hashlib


def hash_secret(value: str) -> str:
    """Return the SHA-256 hex digest of a secret."""
    return hashlib.sha256(value.encode()).hexdigest()
