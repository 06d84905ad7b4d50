"""
Blob storage for check-in photos and signatures on Cloudflare R2.

R2 speaks the S3 API, so this is a thin wrapper around a boto3 S3 client.
Routes receive the store through the ``get_storage`` dependency, which
tests override with an in-memory double.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger("runner_checkin.storage")


class StorageError(Exception):
    """Raised when the blob store cannot be reached or rejects a request."""


@dataclass
class StoredObject:
    body: bytes
    content_type: Optional[str] = None


class R2Storage:
    def __init__(self, bucket: str, endpoint_url: str, access_key_id: str, secret_access_key: str):
        self.bucket = bucket
        self._client = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(signature_version='s3v4'),
            region_name='auto'
        )

    def put_object(self, key: str, body: bytes, content_type: str, metadata: Optional[dict] = None) -> None:
        logger.info(f"Uploading {len(body)} bytes to R2: {key}")
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                Metadata={k: str(v) for k, v in (metadata or {}).items()},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error uploading {key} to R2: {str(e)}")
            raise StorageError(f"Failed to upload {key}") from e

    def get_object(self, key: str) -> Optional[StoredObject]:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                return None
            logger.error(f"Error fetching {key} from R2: {str(e)}")
            raise StorageError(f"Failed to fetch {key}") from e
        except BotoCoreError as e:
            logger.error(f"Error fetching {key} from R2: {str(e)}")
            raise StorageError(f"Failed to fetch {key}") from e
        return StoredObject(body=response['Body'].read(), content_type=response.get('ContentType'))


@lru_cache(maxsize=1)
def get_storage() -> R2Storage:
    bucket_name = os.getenv('CLOUDFLARE_R2_BUCKET')
    endpoint_url = os.getenv('CLOUDFLARE_R2_ENDPOINT')
    logger.debug(f"CF_ACCESS_KEY_ID set: {bool(os.getenv('CF_ACCESS_KEY_ID'))}")
    logger.debug(f"CF_SECRET_ACCESS_KEY set: {bool(os.getenv('CF_SECRET_ACCESS_KEY'))}")
    logger.debug(f"CLOUDFLARE_R2_BUCKET: {bucket_name}")
    logger.debug(f"CLOUDFLARE_R2_ENDPOINT: {endpoint_url}")
    return R2Storage(
        bucket=bucket_name,
        endpoint_url=endpoint_url,
        access_key_id=os.getenv('CF_ACCESS_KEY_ID'),
        secret_access_key=os.getenv('CF_SECRET_ACCESS_KEY'),
    )
