"""
aws_beanstalk
-------------

Elastic Beanstalk 애플리케이션 버전 등록 및
환경(environment) 버전 전환을 담당하는 모듈.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from .errors import RemoteError, boto_error_message
from .logging_utils import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class VersionRequest:
    application_name: str
    version_label: str
    source_bucket: str
    source_key: str
    description: Optional[str] = None


@dataclass(frozen=True)
class VersionInfo:
    application_name: str
    version_label: str
    status: Optional[str] = None
    arn: Optional[str] = None


@dataclass(frozen=True)
class PromotionRequest:
    env_name: str
    version_label: str
    application_name: Optional[str] = None


@dataclass(frozen=True)
class PromotionInfo:
    env_name: str
    version_label: str
    environment_id: Optional[str] = None
    status: Optional[str] = None


class BeanstalkDeployer:
    def __init__(self, client):  # noqa: ANN001
        self._client = client

    @classmethod
    def from_session(cls, session) -> "BeanstalkDeployer":  # noqa: ANN001
        return cls(session.client("elasticbeanstalk"))

    def create_version(self, request: VersionRequest) -> VersionInfo:
        """
        애플리케이션 버전을 등록한다.
        AutoCreateApplication 은 끈다. 애플리케이션이 없으면 원격 오류로 실패한다.
        """
        logger.info(
            "애플리케이션 버전 등록: app=%s version=%s source=s3://%s/%s",
            request.application_name,
            request.version_label,
            request.source_bucket,
            request.source_key,
        )
        params = {
            "ApplicationName": request.application_name,
            "VersionLabel": request.version_label,
            "SourceBundle": {
                "S3Bucket": request.source_bucket,
                "S3Key": request.source_key,
            },
            "AutoCreateApplication": False,
        }
        if request.description:
            params["Description"] = request.description

        try:
            response = self._client.create_application_version(**params)
        except (ClientError, BotoCoreError) as e:
            raise RemoteError("애플리케이션 버전 등록", boto_error_message(e)) from e

        version = response.get("ApplicationVersion", {})
        logger.debug("create_application_version 응답: %s", version)
        return VersionInfo(
            application_name=version.get("ApplicationName", request.application_name),
            version_label=version.get("VersionLabel", request.version_label),
            status=version.get("Status"),
            arn=version.get("ApplicationVersionArn"),
        )

    def promote(self, request: PromotionRequest) -> PromotionInfo:
        """
        환경이 주어진 버전을 사용하도록 전환한다.
        버전 등록은 다시 하지 않는다.
        """
        logger.info("환경 전환: env=%s version=%s", request.env_name, request.version_label)
        params = {
            "EnvironmentName": request.env_name,
            "VersionLabel": request.version_label,
        }
        if request.application_name:
            params["ApplicationName"] = request.application_name

        try:
            response = self._client.update_environment(**params)
        except (ClientError, BotoCoreError) as e:
            raise RemoteError(f"환경 전환 ({request.env_name})", boto_error_message(e)) from e

        logger.debug("update_environment 응답 상태: %s", response.get("Status"))
        return PromotionInfo(
            env_name=response.get("EnvironmentName", request.env_name),
            version_label=response.get("VersionLabel", request.version_label),
            environment_id=response.get("EnvironmentId"),
            status=response.get("Status"),
        )
