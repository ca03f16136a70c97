"""
Cloudflare R2 storage provider implementation.

Cloudflare R2 is S3-compatible and offers zero egress fees, making it ideal
for music streaming use cases.
"""

import logging
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.constants import CLOUDFLARE_R2_ENDPOINT_TEMPLATE, DEFAULT_AUDIO_CONTENT_TYPE
from shared.errors import StorageError
from .storage_provider import BlobStore

logger = logging.getLogger(__name__)


class CloudflareR2Provider(BlobStore):
    """
    Cloudflare R2 storage implementation using boto3 S3 client.

    Blobs are served through the bucket's public URL (custom domain or
    r2.dev), so playback never needs presigned links.
    """

    def __init__(self):
        self.s3_client = None
        self.bucket_name: Optional[str] = None
        self.endpoint_url: Optional[str] = None
        self.account_id: Optional[str] = None
        self.public_url: Optional[str] = None

    def authenticate(self, credentials: Dict[str, Optional[str]]) -> bool:
        """
        Authenticate with Cloudflare R2.

        Args:
            credentials: Must contain:
                - access_key_id: R2 access key ID
                - secret_access_key: R2 secret access key
                - account_id or endpoint: Cloudflare account ID or full endpoint URL
                - bucket: Bucket name
                - public_url: Public base URL of the bucket
        """
        if not credentials.get('endpoint') and not credentials.get('account_id'):
            logger.error("R2 authentication failed: no account_id or endpoint")
            return False

        try:
            self.account_id = credentials.get('account_id')
            self.endpoint_url = credentials.get('endpoint') or CLOUDFLARE_R2_ENDPOINT_TEMPLATE.format(
                account_id=credentials['account_id']
            )
            self.bucket_name = credentials.get('bucket')
            self.public_url = (credentials.get('public_url') or '').rstrip('/') or None

            self.s3_client = boto3.client(
                's3',
                endpoint_url=self.endpoint_url,
                aws_access_key_id=credentials['access_key_id'],
                aws_secret_access_key=credentials['secret_access_key'],
                region_name='auto'  # R2 uses 'auto' region
            )
            return True

        except (BotoCoreError, KeyError, TypeError) as e:
            logger.error("R2 authentication failed: %s", e)
            return False

    def upload_bytes(self, data: bytes, remote_key: str,
                     content_type: Optional[str] = None) -> str:
        """Upload raw bytes to R2."""
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=remote_key,
                Body=data,
                ContentType=content_type or DEFAULT_AUDIO_CONTENT_TYPE,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Upload of %s failed: %s", remote_key, e)
            raise StorageError(f"Upload failed: {e}")
        return self.get_public_url(remote_key)

    def delete_file(self, remote_key: str) -> None:
        """Delete file from R2."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=remote_key)
        except (ClientError, BotoCoreError) as e:
            logger.error("Delete of %s failed: %s", remote_key, e)
            raise StorageError(f"Delete failed: {e}")

    def file_exists(self, remote_key: str) -> bool:
        """Check if file exists in R2."""
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=remote_key)
            return True
        except ClientError:
            return False
