"""
Counting Bloom Filter

Design Decision: Membership Index
=================================

Options Considered:
1. Set of content hashes in memory
   - Exact, but grows with every stored blob

2. Plain bloom filter
   - Compact, but cannot forget deleted blobs

3. Counting bloom filter
   - Compact, supports removal
   - Counters cost more than bits

4. Cuckoo filter
   - Supports removal, better space at low error rates
   - Insertions can fail when the table fills up

Decision: Counting bloom filter with 8-bit saturating counters
- Blobs are deleted, so removal is required
- Never fails an insert; an overfull filter only degrades its error rate
- Counters saturate at 255; a saturated counter is never decremented,
  which keeps the no-false-negative guarantee intact

Sizing (n = expected elements, p = target false-positive rate):
- m = ceil(-n * ln(p) / ln(2)^2)   counters
- k = round(m / n * ln(2))          hash functions

Hash positions use double hashing over one seeded SHA-256 digest:
- pos_i = (h1 + i * h2) mod m
"""

import base64
import hashlib
import json
import math
import random
from typing import Dict, List, Optional

FILTER_TYPE = 'CountingBloomFilter'

# Counters are single bytes
COUNTER_MAX = 255


def optimal_size(capacity: int, error_rate: float) -> int:
    """Number of counters for `capacity` elements at `error_rate`."""
    return math.ceil(-capacity * math.log(error_rate) / (math.log(2) ** 2))


def optimal_hash_count(size: int, capacity: int) -> int:
    """Number of hash functions minimizing false positives."""
    return max(1, round(size / capacity * math.log(2)))


class CountingBloomFilter:
    """
    Probabilistic set of payloads supporting add, remove and membership.

    - has() never returns False for content that was added and not removed
    - has() may return True for content never added (about error_rate)
    - remove() of content that is not present is a no-op
    """

    def __init__(self, size: int, hash_count: int, capacity: int,
                 error_rate: float, seed: Optional[int] = None,
                 counters: Optional[bytearray] = None, length: int = 0):
        if size <= 0 or hash_count <= 0:
            raise ValueError("Filter size and hash count must be positive")

        self.size = size
        self.hash_count = hash_count
        self.capacity = capacity
        self.error_rate = error_rate
        self.seed = seed if seed is not None else random.getrandbits(64)
        self._seed_bytes = self.seed.to_bytes(8, 'big')
        self._counters = counters if counters is not None else bytearray(size)
        self._length = length

        if len(self._counters) != size:
            raise ValueError(
                f"Counter array has {len(self._counters)} entries, expected {size}"
            )

    @classmethod
    def create(cls, capacity: int, error_rate: float,
               seed: Optional[int] = None) -> 'CountingBloomFilter':
        """
        Create an empty filter sized for `capacity` elements.

        Args:
            capacity: Expected number of distinct elements
            error_rate: Target false-positive probability, 0 < p < 1
        """
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        if not 0 < error_rate < 1:
            raise ValueError(f"Error rate must be between 0 and 1, got {error_rate}")

        size = optimal_size(capacity, error_rate)
        hash_count = optimal_hash_count(size, capacity)

        return cls(
            size=size,
            hash_count=hash_count,
            capacity=capacity,
            error_rate=error_rate,
            seed=seed,
        )

    def __len__(self) -> int:
        return self._length

    def _positions(self, data: bytes) -> List[int]:
        """Counter indexes for a payload."""
        hasher = hashlib.sha256()
        hasher.update(self._seed_bytes)
        hasher.update(data)
        digest = hasher.digest()

        h1 = int.from_bytes(digest[:8], 'big')
        h2 = int.from_bytes(digest[8:16], 'big') | 1  # odd, never zero

        return [(h1 + i * h2) % self.size for i in range(self.hash_count)]

    # === Membership ===

    def has(self, data: bytes) -> bool:
        """Check whether a payload is (probably) in the set."""
        return all(self._counters[pos] > 0 for pos in self._positions(data))

    def add(self, data: bytes):
        """Add a payload. Counters saturate instead of overflowing."""
        for pos in self._positions(data):
            if self._counters[pos] < COUNTER_MAX:
                self._counters[pos] += 1
        self._length += 1

    def remove(self, data: bytes) -> bool:
        """
        Remove a payload.

        Returns:
            False (and changes nothing) if the payload is not present
        """
        positions = self._positions(data)

        if not all(self._counters[pos] > 0 for pos in positions):
            return False

        for pos in positions:
            # Saturated counters have lost their true count
            if self._counters[pos] < COUNTER_MAX:
                self._counters[pos] -= 1
        self._length = max(0, self._length - 1)

        return True

    def rate(self) -> float:
        """Current estimated false-positive rate for the stored element count."""
        if self._length == 0:
            return 0.0
        return (1 - math.exp(-self.hash_count * self._length / self.size)) ** self.hash_count

    # === Serialization ===

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return {
            'type': FILTER_TYPE,
            'size': self.size,
            'hash_count': self.hash_count,
            'capacity': self.capacity,
            'error_rate': self.error_rate,
            'length': self._length,
            'seed': self.seed,
            'counters': base64.b64encode(bytes(self._counters)).decode('ascii'),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'CountingBloomFilter':
        """
        Deserialize from dictionary.

        Raises:
            ValueError: if the snapshot is not a counting bloom filter or is
                internally inconsistent
        """
        if not isinstance(data, dict):
            raise ValueError(f"Filter snapshot must be an object, got {type(data).__name__}")

        if data.get('type') != FILTER_TYPE:
            raise ValueError(f"Not a {FILTER_TYPE} snapshot: {data.get('type')!r}")

        for name in ('size', 'hash_count', 'capacity', 'seed', 'length'):
            value = data.get(name, 0 if name == 'length' else None)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Snapshot field {name} must be an integer, got {value!r}")

        if not 0 <= data['seed'] < 2 ** 64:
            raise ValueError(f"Snapshot seed out of range: {data['seed']}")

        try:
            counters = bytearray(base64.b64decode(data['counters'], validate=True))
            return cls(
                size=data['size'],
                hash_count=data['hash_count'],
                capacity=data['capacity'],
                error_rate=data['error_rate'],
                seed=data['seed'],
                counters=counters,
                length=data.get('length', 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed filter snapshot: {e}") from e

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> 'CountingBloomFilter':
        """Deserialize from JSON string."""
        return cls.from_dict(json.loads(json_str))
