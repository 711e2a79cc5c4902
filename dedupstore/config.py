"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import json

from dotenv import load_dotenv

# File records expire after 30 days unless deleted sooner
RECORD_TTL_SECONDS = 3600 * 24 * 30


@dataclass
class Config:
    """
    File store configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (DEDUP_*)
    2. Config file (config.json)
    3. Default values

    blob_dir, temp_dir and db_path are derived from data_dir when unset.
    """
    # Storage
    data_dir: Path = field(default_factory=lambda: Path('./dedup_data'))
    blob_dir: Optional[Path] = None
    temp_dir: Optional[Path] = None
    db_path: Optional[Path] = None

    # Deduplication index
    bloom_capacity: int = 1000
    bloom_error_rate: float = 0.01

    # File records
    record_ttl: int = RECORD_TTL_SECONDS
    scan_batch_size: int = 100

    # Streaming
    read_chunk_size: int = 256 * 1024  # 256KB

    # Remote archive (staging area)
    archive_bucket: str = ''
    archive_region: str = 'us-east-1'

    # API
    api_host: str = '0.0.0.0'
    api_port: int = 8080

    # Logging
    log_level: str = 'INFO'

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if self.blob_dir is None:
            self.blob_dir = self.data_dir / 'uploads'
        if self.temp_dir is None:
            self.temp_dir = self.data_dir / 'temp'
        if self.db_path is None:
            self.db_path = self.data_dir / 'dedup.db'
        self.blob_dir = Path(self.blob_dir)
        self.temp_dir = Path(self.temp_dir)
        self.db_path = Path(self.db_path)
        self.validate()

    def validate(self):
        """
        Check values that would break the filter or the record scans.

        Raises:
            ValueError: If a value is out of range
        """
        if self.bloom_capacity < 1:
            raise ValueError(f"bloom_capacity must be at least 1, got {self.bloom_capacity}")
        if not 0 < self.bloom_error_rate < 1:
            raise ValueError(
                f"bloom_error_rate must be between 0 and 1, got {self.bloom_error_rate}"
            )
        if self.scan_batch_size < 1:
            raise ValueError(f"scan_batch_size must be at least 1, got {self.scan_batch_size}")
        if self.read_chunk_size < 1:
            raise ValueError(f"read_chunk_size must be at least 1, got {self.read_chunk_size}")

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        data_dir = os.getenv('DEDUP_DATA_DIR')
        config = cls(data_dir=Path(data_dir)) if data_dir else cls()

        # Storage
        blob_dir = os.getenv('DEDUP_BLOB_DIR')
        if blob_dir:
            config.blob_dir = Path(blob_dir)
        db_path = os.getenv('DEDUP_DB_PATH')
        if db_path:
            config.db_path = Path(db_path)

        # Deduplication index
        config.bloom_capacity = int(
            os.getenv('DEDUP_BLOOM_CAPACITY', config.bloom_capacity)
        )
        config.bloom_error_rate = float(
            os.getenv('DEDUP_BLOOM_ERROR_RATE', config.bloom_error_rate)
        )

        # File records
        config.record_ttl = int(os.getenv('DEDUP_RECORD_TTL', config.record_ttl))
        config.scan_batch_size = int(
            os.getenv('DEDUP_SCAN_BATCH_SIZE', config.scan_batch_size)
        )

        # Remote archive
        config.archive_bucket = os.getenv('DEDUP_ARCHIVE_BUCKET', config.archive_bucket)
        config.archive_region = os.getenv(
            'DEDUP_ARCHIVE_REGION', os.getenv('AWS_REGION', config.archive_region)
        )

        # API
        config.api_host = os.getenv('DEDUP_API_HOST', config.api_host)
        config.api_port = int(os.getenv('DEDUP_API_PORT', config.api_port))

        # Logging
        config.log_level = os.getenv('DEDUP_LOG_LEVEL', config.log_level)

        config.validate()
        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls(data_dir=Path(data.get('data_dir', './dedup_data')))

        # Storage
        if 'blob_dir' in data:
            config.blob_dir = Path(data['blob_dir'])
        if 'temp_dir' in data:
            config.temp_dir = Path(data['temp_dir'])
        if 'db_path' in data:
            config.db_path = Path(data['db_path'])

        # Deduplication index
        config.bloom_capacity = data.get('bloom_capacity', config.bloom_capacity)
        config.bloom_error_rate = data.get('bloom_error_rate', config.bloom_error_rate)

        # File records
        config.record_ttl = data.get('record_ttl', config.record_ttl)
        config.scan_batch_size = data.get('scan_batch_size', config.scan_batch_size)
        config.read_chunk_size = data.get('read_chunk_size', config.read_chunk_size)

        # Remote archive
        config.archive_bucket = data.get('archive_bucket', config.archive_bucket)
        config.archive_region = data.get('archive_region', config.archive_region)

        # API
        config.api_host = data.get('api_host', config.api_host)
        config.api_port = data.get('api_port', config.api_port)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        config.validate()
        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'data_dir': str(self.data_dir),
            'blob_dir': str(self.blob_dir),
            'temp_dir': str(self.temp_dir),
            'db_path': str(self.db_path),
            'bloom_capacity': self.bloom_capacity,
            'bloom_error_rate': self.bloom_error_rate,
            'record_ttl': self.record_ttl,
            'scan_batch_size': self.scan_batch_size,
            'read_chunk_size': self.read_chunk_size,
            'archive_bucket': self.archive_bucket,
            'archive_region': self.archive_region,
            'api_host': self.api_host,
            'api_port': self.api_port,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables
    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for key in ['data_dir', 'blob_dir', 'temp_dir', 'db_path',
                'bloom_capacity', 'bloom_error_rate', 'record_ttl',
                'scan_batch_size', 'archive_bucket', 'archive_region',
                'api_host', 'api_port', 'log_level']:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    config.validate()
    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "data_dir": "./dedup_data",
  "bloom_capacity": 1000,
  "bloom_error_rate": 0.01,
  "record_ttl": 2592000,
  "scan_batch_size": 100,
  "archive_bucket": "my-bucket",
  "archive_region": "ap-northeast-1",
  "api_port": 8080,
  "log_level": "INFO"
}
"""
