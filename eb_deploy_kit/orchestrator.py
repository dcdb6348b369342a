from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from . import archive, dockerrun
from .aws_beanstalk import PromotionInfo, PromotionRequest, VersionInfo, VersionRequest
from .config import OptionSet, require
from .errors import ArchiveError, DeployKitError
from .logging_utils import get_logger


logger = get_logger(__name__)


class Stage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    ASSEMBLING = "assembling"
    UPLOADING = "uploading"
    REGISTERING_VERSION = "registering-version"
    PROMOTING_ENVIRONMENT = "promoting-environment"
    DONE = "done"
    FAILED = "failed"


# 단계별 필수 옵션
ARCHIVE_KEYS: List[str] = ["image-name", "bucket-name", "bucket-key"]
UPLOAD_KEYS: List[str] = ["bucket-name", "bucket-key"]
REGISTER_KEYS: List[str] = ["application-name", "version-label", "bucket-name", "bucket-key"]
PROMOTE_KEYS: List[str] = ["application-name", "version-label", "env-name"]

BUNDLE_FILENAME = "bundle.zip"


def _unique(*groups: List[str]) -> List[str]:
    seen: List[str] = []
    for group in groups:
        for key in group:
            if key not in seen:
                seen.append(key)
    return seen


DEPLOY_KEYS: List[str] = _unique(ARCHIVE_KEYS, UPLOAD_KEYS, REGISTER_KEYS, PROMOTE_KEYS)


def object_key(options: OptionSet) -> str:
    return f"{options.bucket_key}.zip"


@dataclass
class PipelineResult:
    stage: Stage = Stage.IDLE
    completed: List[Stage] = field(default_factory=list)
    failed_stage: Optional[Stage] = None
    error: Optional[DeployKitError] = None

    archive_path: Optional[Path] = None
    uploaded_key: Optional[str] = None
    version: Optional[VersionInfo] = None
    promotion: Optional[PromotionInfo] = None

    @property
    def ok(self) -> bool:
        return self.stage == Stage.DONE

    @property
    def orphaned_version(self) -> bool:
        """버전은 등록됐지만 환경 전환에 실패한 상태"""
        return self.version is not None and self.failed_stage == Stage.PROMOTING_ENVIRONMENT

    def summary(self) -> str:
        lines: List[str] = []
        lines.append("# Deploy summary")
        lines.append(f"- result: {'OK' if self.ok else 'FAILED'}")
        if self.archive_path is not None:
            lines.append(f"- archive: {self.archive_path}")
        if self.uploaded_key is not None:
            lines.append(f"- uploaded: {self.uploaded_key}")
        if self.version is not None:
            lines.append(
                f"- version: {self.version.application_name}/{self.version.version_label}"
            )
        if self.promotion is not None:
            lines.append(f"- environment: {self.promotion.env_name} -> {self.promotion.version_label}")
        lines.append("")

        lines.append("## Completed stages")
        if self.completed:
            for s in self.completed:
                lines.append(f"- {s.value}")
        else:
            lines.append("- (none)")

        if self.failed_stage is not None:
            lines.append("")
            lines.append("## Failed stage")
            lines.append(f"- {self.failed_stage.value}: {self.error}")

        if self.orphaned_version:
            lines.append("")
            lines.append(
                "등록된 버전은 그대로 남아 있습니다. 환경 전환만 다시 시도할 수 있습니다."
            )

        return "\n".join(lines)


def _run_stage(result: PipelineResult, stage: Stage, fn: Callable[[], None]) -> bool:
    """
    한 단계를 실행하고 결과를 result 에 기록한다.
    DeployKitError 가 나면 FAILED 로 전이하고 False 를 리턴한다.
    """
    result.stage = stage
    logger.info("단계 실행: %s", stage.value)
    try:
        fn()
    except DeployKitError as e:
        logger.error("단계 실패: %s: %s", stage.value, e)
        result.failed_stage = stage
        result.error = e
        result.stage = Stage.FAILED
        return False
    result.completed.append(stage)
    return True


def _extensions_dir(options: OptionSet, base_dir: str) -> Optional[str]:
    if not options.extensions_dir:
        return None
    return os.path.join(base_dir, options.extensions_dir)


def _assemble(options: OptionSet, destination: Path, base_dir: str) -> Path:
    descriptor = dockerrun.build_descriptor(options)
    logger.debug("Dockerrun: %s", descriptor.to_dict())
    return archive.assemble(descriptor, _extensions_dir(options, base_dir), destination)


def build_archive(options: OptionSet, destination: str, base_dir: str = ".") -> PipelineResult:
    """
    아카이브만 만들어 destination 에 저장한다. (업로드/등록 없음)
    """
    result = PipelineResult()

    if not _run_stage(result, Stage.VALIDATING, lambda: require(options, *ARCHIVE_KEYS)):
        return result

    def assemble_stage() -> None:
        result.archive_path = _assemble(options, Path(destination), base_dir)

    if not _run_stage(result, Stage.ASSEMBLING, assemble_stage):
        return result

    result.stage = Stage.DONE
    return result


def deploy(options: OptionSet, storage, beanstalk, base_dir: str = ".") -> PipelineResult:  # noqa: ANN001
    """
    assemble -> upload -> register version -> promote environment 순으로 실행한다.

    storage 는 put(bucket, key, data), beanstalk 은 create_version(request) /
    promote(request) 를 제공해야 한다.

    첫 실패에서 중단하며, 재시도나 롤백은 하지 않는다.
    (예: 버전 등록 후 환경 전환 실패 시 등록된 버전은 그대로 남는다)
    """
    result = PipelineResult()

    # 원격 호출 전에 전체 필수 옵션을 한 번에 확인
    if not _run_stage(result, Stage.VALIDATING, lambda: require(options, *DEPLOY_KEYS)):
        return result

    with tempfile.TemporaryDirectory(prefix="eb-deploy-") as scratch_dir:
        bundle_path = Path(scratch_dir) / BUNDLE_FILENAME

        def assemble_stage() -> None:
            require(options, *ARCHIVE_KEYS)
            result.archive_path = _assemble(options, bundle_path, base_dir)

        def upload_stage() -> None:
            require(options, *UPLOAD_KEYS)
            try:
                data = bundle_path.read_bytes()
            except OSError as e:
                raise ArchiveError(f"아카이브를 읽을 수 없습니다 ({bundle_path}): {e}") from e
            key = object_key(options)
            storage.put(options.bucket_name, key, data)
            result.uploaded_key = key

        def register_stage() -> None:
            require(options, *REGISTER_KEYS)
            result.version = beanstalk.create_version(
                VersionRequest(
                    application_name=options.application_name,
                    version_label=options.version_label,
                    source_bucket=options.bucket_name,
                    source_key=object_key(options),
                    description=options.description,
                )
            )

        def promote_stage() -> None:
            require(options, *PROMOTE_KEYS)
            result.promotion = beanstalk.promote(
                PromotionRequest(
                    env_name=options.env_name,
                    version_label=options.version_label,
                    application_name=options.application_name,
                )
            )

        stages = [
            (Stage.ASSEMBLING, assemble_stage),
            (Stage.UPLOADING, upload_stage),
            (Stage.REGISTERING_VERSION, register_stage),
            (Stage.PROMOTING_ENVIRONMENT, promote_stage),
        ]
        for stage, fn in stages:
            if not _run_stage(result, stage, fn):
                if result.orphaned_version:
                    logger.warning(
                        "버전 %s 은(는) 등록되었지만 환경 %s 전환에 실패했습니다.",
                        options.version_label,
                        options.env_name,
                    )
                return result

    result.stage = Stage.DONE
    logger.info("배포 완료: env=%s version=%s", options.env_name, options.version_label)
    return result


def plan_deploy(options: OptionSet) -> str:
    """
    실제 AWS 호출 없이 해석된 옵션과 실행될 단계를 요약한다.
    """
    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- application: {options.application_name or '(not set)'}")
    lines.append(f"- environment: {options.env_name or '(not set)'}")
    lines.append(f"- version: {options.version_label}")
    lines.append(f"- source: s3://{options.bucket_name or '(not set)'}/{object_key(options)}")
    lines.append("")

    lines.append("## Options")
    for key, value in options.as_dict().items():
        if value is None:
            continue
        lines.append(f"- {key}: {value}")
    lines.append("")

    lines.append("## Stages")
    checks = [
        (Stage.ASSEMBLING, ARCHIVE_KEYS),
        (Stage.UPLOADING, UPLOAD_KEYS),
        (Stage.REGISTERING_VERSION, REGISTER_KEYS),
        (Stage.PROMOTING_ENVIRONMENT, PROMOTE_KEYS),
    ]
    for stage, keys in checks:
        missing = [k for k in keys if not options.get(k)]
        if missing:
            lines.append(f"- {stage.value}: MISSING {', '.join(missing)}")
        else:
            lines.append(f"- {stage.value}: READY")

    return "\n".join(lines)
