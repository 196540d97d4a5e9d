"""S3-compatible storage provider.

Works against AWS S3 and S3-compatible services (MinIO, Ceph, R2). The
endpoint scheme decides whether TLS is used, and path-style addressing can be
forced for services that do not support virtual-hosted buckets.
"""

import logging
from typing import BinaryIO, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from build_cache.archive import new_spool
from build_cache.config import Acl, CacheConfig, Encryption
from build_cache.errors import ConfigError, NotFound, TransportError
from build_cache.providers.base import StorageProvider

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


class S3Provider(StorageProvider):
    """Storage provider backed by an S3-compatible bucket.

    Credentials: a static key/secret pair is used when both are given,
    otherwise boto3 resolves credentials from the environment, shared
    config files or the instance role.

    Attributes:
        bucket: Bucket name
        acl: Canned ACL applied on upload
        encryption: Server-side encryption mode applied on upload
        endpoint: Custom endpoint URL, empty for the AWS default
        region: Bucket region
        path_style: Whether path-style addressing is forced
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        acl: Acl = Acl.PRIVATE,
        encryption: Encryption = Encryption.NONE,
        endpoint: str = "",
        region: str = "us-east-1",
        path_style: bool = False,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
    ):
        self.bucket = bucket
        self.acl = Acl(acl)
        self.encryption = Encryption(encryption)
        self.endpoint = endpoint
        self.region = region
        self.path_style = path_style

        client_kwargs = {
            "region_name": region,
            "use_ssl": not endpoint or endpoint.startswith("https://"),
            "config": Config(
                s3={"addressing_style": "path" if path_style else "virtual"},
            ),
        }
        if endpoint:
            # Schemeless endpoints (e.g. "minio:9000") are plaintext
            if "://" not in endpoint:
                endpoint = f"http://{endpoint}"
            client_kwargs["endpoint_url"] = endpoint

        if access_key and secret_key:
            client_kwargs["aws_access_key_id"] = access_key
            client_kwargs["aws_secret_access_key"] = secret_key
        else:
            logger.debug("No static credentials, using the default credential chain")

        try:
            self._client = boto3.client("s3", **client_kwargs)
        except ValueError as e:
            raise ConfigError(f"Invalid S3 client settings: {e}") from e

    @classmethod
    def from_config(cls, config: CacheConfig) -> "S3Provider":
        return cls(
            bucket=config.bucket,
            acl=config.acl,
            encryption=config.encryption,
            endpoint=config.endpoint,
            region=config.region,
            path_style=config.path_style,
            access_key=config.access_key,
            secret_key=config.secret_key,
        )

    def _extra_args(self) -> Dict[str, str]:
        extra = {"ACL": self.acl.value}
        if self.encryption is not Encryption.NONE:
            extra["ServerSideEncryption"] = self.encryption.value
        return extra

    def upload(self, key: str, content: BinaryIO) -> None:
        try:
            self._client.upload_fileobj(
                content, self.bucket, key, ExtraArgs=self._extra_args()
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError(
                f"Upload to s3://{self.bucket}/{key} failed: {e}", key=key
            ) from e

    def download(self, key: str) -> BinaryIO:
        stream = new_spool()
        try:
            self._client.download_fileobj(self.bucket, key, stream)
        except ClientError as e:
            stream.close()
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                raise NotFound(f"No cache entry at s3://{self.bucket}/{key}", key=key) from e
            raise TransportError(
                f"Download from s3://{self.bucket}/{key} failed: {e}", key=key
            ) from e
        except BotoCoreError as e:
            stream.close()
            raise TransportError(
                f"Download from s3://{self.bucket}/{key} failed: {e}", key=key
            ) from e

        stream.seek(0)
        return stream
