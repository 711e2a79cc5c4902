"""
Content Hasher

Design Decision: Digest Algorithm
=================================

Options Considered:
| Algorithm | Pros                          | Cons                          |
|-----------|-------------------------------|-------------------------------|
| MD5       | Fast, short names             | Broken collision resistance   |
| SHA-1     | Fast, 40 hex chars            | Practical collisions exist    |
| SHA-256   | Collision resistant, standard | 64 hex chars per blob name    |
| BLAKE2b   | Fast, secure                  | Less common in tooling        |

Decision: SHA-256
- Blob names are derived from the digest, so a collision would merge two
  different files into one blob
- Same digest the rest of the storage layer verifies against
- Fixed 64-character lowercase hex output
"""

import hashlib

DIGEST_HEX_LENGTH = 64


class ContentHasher:
    """
    Computes deterministic content digests.

    Stateless; one instance can be shared by every request.
    """

    def hash(self, data: bytes) -> str:
        """
        Hash a complete payload.

        Returns:
            SHA-256 digest as 64 lowercase hex characters
        """
        return hashlib.sha256(data).hexdigest()


def is_content_hash(value: str) -> bool:
    """Check that a string looks like a digest produced by ContentHasher."""
    return (
        isinstance(value, str)
        and len(value) == DIGEST_HEX_LENGTH
        and all(c in '0123456789abcdef' for c in value)
    )
