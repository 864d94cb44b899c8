"""
Storage abstraction for Tencent COS (S3-compatible) and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import urlsplit

import boto3
from botocore.config import Config


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def public_url(self, path: str) -> str:
        """Non-expiring URL for objects in the public-read avatar prefix."""
        ...

    def presign_put(
        self,
        path: str,
        expires_in: int = 3600,
        content_type: str = "application/octet-stream",
    ) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def presign_put(
        self,
        path: str,
        expires_in: int = 3600,
        content_type: str = "application/octet-stream",
    ) -> str:
        return f"{self.base_url}/{path}?op=put&expires={expires_in}&type={content_type}"


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        # COS requires virtual-hosted style addressing.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        # Virtual-hosted style: https://{bucket}.{endpoint host}/{key}
        endpoint = urlsplit(self.endpoint)
        return f"{endpoint.scheme or 'https'}://{self.bucket}.{endpoint.netloc}/{path}"

    def presign_put(
        self,
        path: str,
        expires_in: int = 3600,
        content_type: str = "application/octet-stream",
    ) -> str:
        # The browser must send the same Content-Type header it was signed with.
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={
                "Bucket": self.bucket,
                "Key": path,
                "ContentType": content_type,
            },
            ExpiresIn=expires_in,
        )
