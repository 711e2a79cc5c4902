"""
Index Module - Probabilistic Deduplication

Counting bloom filter and its durable snapshot.
"""

from .bloom import CountingBloomFilter
from .persistence import FilterPersistence

__all__ = ['CountingBloomFilter', 'FilterPersistence']
