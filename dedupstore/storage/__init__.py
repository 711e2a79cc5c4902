"""
Storage Module - Durable Key-Value Storage

Uses SQLite as an expiring key-value store for file records.
"""

from .database import KeyValueStore
from .records import FileRecord, FileRecordStore

__all__ = ['KeyValueStore', 'FileRecord', 'FileRecordStore']
