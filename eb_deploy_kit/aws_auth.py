"""
aws_auth
--------

S3 / Elastic Beanstalk 클라이언트가 사용할 boto3 세션을 만든다.

명시적으로 전달된 access key / secret / region 이 있으면 그것을 쓰고,
없는 항목은 boto3 기본 자격증명 탐색(환경변수, ~/.aws, 인스턴스 프로파일 등)에 맡긴다.
"""

from __future__ import annotations

import boto3

from .config import OptionSet
from .logging_utils import get_logger


logger = get_logger(__name__)


def create_session(options: OptionSet) -> boto3.Session:
    kwargs = {}
    if options.access_key_id:
        kwargs["aws_access_key_id"] = options.access_key_id
    if options.secret_access_key:
        kwargs["aws_secret_access_key"] = options.secret_access_key
    if options.region:
        kwargs["region_name"] = options.region

    logger.debug(
        "boto3 세션 생성: explicit_keys=%s region=%s",
        bool(options.access_key_id),
        options.region or "(default)",
    )
    return boto3.Session(**kwargs)
