import hashlib
import logging
from typing import Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from banana_weather.errors import StorageError

logger = logging.getLogger(__name__)


def content_key(data: bytes, prefix: str = "image", extension: str = "png") -> str:
    digest = hashlib.sha256(data).hexdigest()[:24]
    return f"{prefix}_{digest}.{extension}"


class StorageService:
    """S3 bucket holding generated media and the preset registry."""

    def __init__(self, s3_client, bucket: str, region: str, public_base_url: Optional[str] = None):
        self.client = s3_client
        self.bucket = bucket
        self.public_base_url = public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com"

    def read_object(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Failed to read s3://%s/%s: %s", self.bucket, key, exc)
            raise StorageError(f"Unable to read {key}: {exc}") from exc

    def upload_image(self, data: bytes, key: Optional[str] = None) -> Tuple[str, str]:
        """Upload PNG bytes and return (s3 URI, public URL)."""
        key = key or content_key(data)
        self._put(data, key, "image/png")
        s3_uri = f"s3://{self.bucket}/{key}"
        logger.info("Uploaded %s to %s", key, s3_uri)
        return s3_uri, self.public_url(key)

    def upload_bytes(self, data: bytes, key: str, content_type: str) -> str:
        self._put(data, key, content_type)
        public_url = self.public_url(key)
        logger.info("Uploaded %d bytes to %s", len(data), public_url)
        return public_url

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key.lstrip('/')}"

    def public_url_for(self, s3_uri: str) -> str:
        """Translate s3://bucket/key into a publicly fetchable URL."""
        prefix = f"s3://{self.bucket}/"
        if s3_uri.startswith(prefix):
            return self.public_url(s3_uri[len(prefix):])
        if s3_uri.startswith("s3://"):
            bucket, _, key = s3_uri[len("s3://"):].partition("/")
            return f"https://{bucket}.s3.amazonaws.com/{key}"
        raise StorageError(f"Not an S3 URI: {s3_uri}")

    def _put(self, data: bytes, key: str, content_type: str) -> None:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Failed to write %s to bucket %s", key, self.bucket)
            raise StorageError(f"Failed to write to bucket: {exc}") from exc
