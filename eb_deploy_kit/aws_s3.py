"""
aws_s3
------

소스 번들을 S3 에 업로드하는 모듈.
"""

from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from .errors import RemoteError, boto_error_message
from .logging_utils import get_logger


logger = get_logger(__name__)


class S3Storage:
    """
    put(bucket, key, data) 만 제공하는 얇은 래퍼.
    client 는 boto3 S3 클라이언트 (session.client("s3")).
    """

    def __init__(self, client):  # noqa: ANN001
        self._client = client

    @classmethod
    def from_session(cls, session) -> "S3Storage":  # noqa: ANN001
        return cls(session.client("s3"))

    def put(self, bucket: str, key: str, data: bytes) -> None:
        logger.info("S3 업로드: s3://%s/%s (%d bytes)", bucket, key, len(data))
        try:
            response = self._client.put_object(Bucket=bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise RemoteError(f"S3 업로드 (s3://{bucket}/{key})", boto_error_message(e)) from e
        logger.debug("S3 put_object 응답 ETag: %s", response.get("ETag"))
