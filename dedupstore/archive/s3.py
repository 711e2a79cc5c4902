"""
S3 Remote Archive

Adapts a boto3 S3 client to the RemoteArchive contract. boto3 is blocking,
so every call runs in a worker thread via asyncio.to_thread.

No retries are done here; botocore's own retry policy applies and anything
that still fails surfaces as RemoteArchiveError.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import RemoteArchiveError
from .base import RemoteArchive, ArchiveObject

logger = logging.getLogger(__name__)


class S3Archive(RemoteArchive):
    """RemoteArchive backed by an S3 bucket."""

    def __init__(self, bucket: str, region: str, client=None):
        """
        Args:
            bucket: Target bucket name
            region: Bucket region (used for the public location URL)
            client: Pre-built boto3 S3 client (created lazily if omitted)
        """
        self.bucket = bucket
        self.region = region
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client('s3', region_name=self.region)
        return self._client

    def location(self, key: str) -> str:
        """Public URL of an object."""
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, key: str, body: bytes, metadata: Dict[str, str]) -> str:
        logger.info(f"Uploading {key} to bucket {self.bucket}")

        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=body,
                Metadata=metadata,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Upload of {key} failed: {e}")
            raise RemoteArchiveError(f"Upload of {key} failed: {e}") from e

        return self.location(key)

    async def list(self, prefix: str) -> List[ArchiveObject]:
        objects = []
        token: Optional[str] = None

        try:
            while True:
                params = {'Bucket': self.bucket, 'Prefix': prefix}
                if token:
                    params['ContinuationToken'] = token

                page = await asyncio.to_thread(self.client.list_objects_v2, **params)

                for item in page.get('Contents', []):
                    objects.append(ArchiveObject(
                        key=item['Key'],
                        size=item.get('Size', 0),
                        last_modified=item.get('LastModified'),
                    ))

                if not page.get('IsTruncated'):
                    break
                token = page.get('NextContinuationToken')
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Listing {prefix} failed: {e}")
            raise RemoteArchiveError(f"Listing {prefix} failed: {e}") from e

        return objects

    async def head(self, key: str) -> Dict[str, str]:
        try:
            response = await asyncio.to_thread(
                self.client.head_object, Bucket=self.bucket, Key=key
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Fetching metadata of {key} failed: {e}")
            raise RemoteArchiveError(f"Fetching metadata of {key} failed: {e}") from e

        return {k.lower(): v for k, v in response.get('Metadata', {}).items()}
