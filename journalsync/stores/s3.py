"""Amazon S3 remote object store."""

import logging
from typing import Any, NoReturn, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)
from botocore.exceptions import ConnectionError as BotoConnectionError

from ..exceptions import ConfigError, ConnectivityError, TransferError

logger = logging.getLogger(__name__)

# Error codes S3 uses when credentials or bucket access are rejected
AUTH_ERROR_CODES = frozenset(
    {
        "AccessDenied",
        "AllAccessDisabled",
        "ExpiredToken",
        "InvalidAccessKeyId",
        "InvalidToken",
        "NoSuchBucket",
        "SignatureDoesNotMatch",
        "403",
    }
)

NOT_FOUND_ERROR_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def create_s3_client(
    region: str,
    access_key: Optional[str] = None,
    secret_key: Optional[str] = None,
    connect_timeout: float = 5.0,
    read_timeout: float = 30.0,
) -> Any:
    """Create a boto3 S3 client with conservative timeouts.

    Args:
        region: AWS region name
        access_key: AWS access key ID (falls back to the boto3 credential chain)
        secret_key: AWS secret access key
        connect_timeout: Connection timeout in seconds
        read_timeout: Read timeout in seconds

    Returns:
        boto3 S3 client
    """
    boto_config = BotoConfig(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": 3, "mode": "standard"},
    )
    kwargs: dict[str, Any] = {"config": boto_config, "region_name": region}
    if access_key and secret_key:
        kwargs["aws_access_key_id"] = access_key
        kwargs["aws_secret_access_key"] = secret_key
    return boto3.client("s3", **kwargs)


class S3ObjectStore:
    """Remote object store backed by a single S3 bucket."""

    def __init__(self, bucket: str, client: Any):
        """Initialize the store.

        Args:
            bucket: Bucket name
            client: boto3 S3 client (see create_s3_client)
        """
        self.bucket = bucket
        self.client = client

    def _raise_translated(self, e: Exception, operation: str, key: str) -> NoReturn:
        """Translate a botocore exception into the journalsync taxonomy."""
        if isinstance(e, (NoCredentialsError, PartialCredentialsError)):
            raise ConfigError(f"AWS credentials not configured: {e}") from e
        if isinstance(e, (BotoConnectionError, HTTPClientError)):
            raise ConnectivityError(f"S3 unreachable during {operation}: {e}") from e
        if isinstance(e, ClientError):
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in AUTH_ERROR_CODES:
                raise ConnectivityError(
                    f"S3 rejected {operation} on {self.bucket}/{key} ({code})"
                ) from e
            raise TransferError(
                f"S3 {operation} failed for {self.bucket}/{key} ({code}): {e}"
            ) from e
        raise TransferError(
            f"S3 {operation} failed for {self.bucket}/{key}: {e}"
        ) from e

    def get(self, key: str) -> Optional[bytes]:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_ERROR_CODES:
                logger.debug(f"S3 object {key} does not exist")
                return None
            self._raise_translated(e, "get", key)
        except BotoCoreError as e:
            self._raise_translated(e, "get", key)

    def put(self, key: str, data: bytes) -> None:
        logger.debug(f"Putting {len(data)} bytes to s3://{self.bucket}/{key}")
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            self._raise_translated(e, "put", key)

    def delete(self, key: str) -> None:
        logger.debug(f"Deleting s3://{self.bucket}/{key}")
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            self._raise_translated(e, "delete", key)

    def list_probe(self, max_keys: int = 1) -> None:
        """Verify the bucket can be listed with the configured credentials.

        Raises:
            ConnectivityError: If the bucket cannot be listed
        """
        try:
            self.client.list_objects_v2(Bucket=self.bucket, MaxKeys=max_keys)
        except (ClientError, BotoCoreError) as e:
            try:
                self._raise_translated(e, "list", "")
            except TransferError as te:
                raise ConnectivityError(str(te)) from e
