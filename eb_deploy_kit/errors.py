"""
errors
------

배포 파이프라인에서 사용하는 예외 정의.
모든 예외는 현재 실행을 즉시 중단시키며, 재시도하지 않는다.
"""

from __future__ import annotations

from typing import Iterable

from botocore.exceptions import ClientError


class DeployKitError(Exception):
    """eb_deploy_kit 공통 베이스 예외"""


class MissingOptionError(DeployKitError):
    """
    단계 실행에 필요한 옵션이 하나 이상 누락된 경우.
    첫 번째 누락 키만이 아니라 누락된 키 전체를 담는다.
    """

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__("필수 옵션이 누락되었습니다: " + ", ".join(self.missing))


class ConfigFileError(DeployKitError):
    """설정 파일이 존재하지만 올바른 mapping 문서가 아닌 경우"""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"설정 파일을 읽을 수 없습니다 ({path}): {reason}")


class ArchiveError(DeployKitError, OSError):
    """아카이브 조립 중 로컬 파일시스템 오류"""


class RemoteError(DeployKitError):
    """S3 / Elastic Beanstalk 호출 실패. 원격에서 보고한 메시지를 그대로 전달한다."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} 실패: {message}")


def boto_error_message(e: Exception) -> str:
    """botocore 예외에서 원격이 보고한 메시지를 꺼낸다."""
    if isinstance(e, ClientError):
        err = e.response.get("Error", {})
        return err.get("Message") or err.get("Code") or str(e)
    return str(e)
