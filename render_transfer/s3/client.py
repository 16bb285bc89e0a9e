"""
S3-compatible client wrapper.
Builds boto3 clients for the render output store (R2) and the asset store,
and handles existence checks and signed URLs.
"""

import logging
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from render_transfer.core.exceptions import ConfigurationError
from render_transfer.s3.config import DEFAULT_SIGNED_URL_EXPIRATION

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def create_s3_client(
    endpoint_url: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    region: Optional[str] = None,
):
    """
    Create a boto3 S3 client.

    Args:
        endpoint_url: S3-compatible endpoint (None = AWS default)
        access_key_id: Access key (None = default credential chain)
        secret_access_key: Secret key (required together with access_key_id)
        region: Signing region ("auto" for Cloudflare R2)

    Returns:
        boto3 S3 client

    Raises:
        ConfigurationError: If only one half of the key pair is given
    """
    if bool(access_key_id) != bool(secret_access_key):
        raise ConfigurationError(
            "Access key ID and secret access key must be provided together",
            {"endpoint": endpoint_url or "default"},
        )

    if endpoint_url and not endpoint_url.startswith(('http://', 'https://')):
        endpoint_url = f"https://{endpoint_url}"

    kwargs = {
        "config": Config(signature_version='s3v4'),
    }
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    if region:
        kwargs["region_name"] = region
    if access_key_id:
        kwargs["aws_access_key_id"] = access_key_id
        kwargs["aws_secret_access_key"] = secret_access_key

    client = boto3.client('s3', **kwargs)
    logger.info(f"S3 client initialized with endpoint: {endpoint_url or 'default'}")
    return client


class S3Client:
    """Wrapper for object store operations outside the upload path."""

    def __init__(self, client, bucket: str):
        """
        Args:
            client: boto3 S3 client (constructed once at startup)
            bucket: Default bucket for this store
        """
        self.client = client
        self.bucket = bucket

    def file_exists(self, key: str, bucket: Optional[str] = None) -> bool:
        """
        Check if an object exists.

        Args:
            key: Object key
            bucket: Bucket name (defaults to the store bucket)

        Returns:
            True if the object exists, False if the store reports it missing

        Raises:
            ClientError: For any error other than not-found
        """
        bucket = bucket or self.bucket
        try:
            self.client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in NOT_FOUND_CODES:
                return False
            logger.error(f"Failed to check {bucket}/{key}: {e}")
            raise

    def download_url(self, key: str, expires_in: int = DEFAULT_SIGNED_URL_EXPIRATION) -> str:
        """
        Signed GET link to a stored object in this store's bucket.

        Signing happens locally from the client's credentials; nothing is
        sent to the store, so a link can be issued for any key.
        """
        url = self.client.generate_presigned_url(
            ClientMethod='get_object',
            Params={'Bucket': self.bucket, 'Key': key},
            ExpiresIn=expires_in,
        )
        logger.debug(f"Signed download link for {self.bucket}/{key}, valid {expires_in}s")
        return url
