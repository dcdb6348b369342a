from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .errors import ConfigFileError, MissingOptionError
from .logging_utils import get_logger


logger = get_logger(__name__)


ENV_FILES_DEFAULT_ORDER = [".env", ".env.aws"]

DEFAULT_CONFIG_FILE = ".eb-deploy.yml"

DEFAULT_TAG = "latest"
DEFAULT_CONTAINER_PORT = "3000"

# 내장 기본값. None 은 "값 없음" 으로 취급한다.
DEFAULT_OPTIONS: Dict[str, Any] = {
    "tag": None,
    "container-port": None,
    "extensions-dir": ".ebextensions",
}

_REDACTED_KEYS = {"secret-access-key"}


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다. (AWS_* 변수는 boto3 기본 자격증명 탐색에 사용됨)
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


@dataclass(frozen=True)
class Volume:
    host: str
    container: str


@dataclass(frozen=True)
class OptionSet:
    # 이미지
    image_name: Optional[str] = None
    tag: Optional[str] = None
    container_port: Optional[str] = None

    # S3
    bucket_name: Optional[str] = None
    bucket_key: Optional[str] = None

    # Elastic Beanstalk
    application_name: Optional[str] = None
    env_name: Optional[str] = None
    version_label: Optional[str] = None
    description: Optional[str] = None

    volumes: Optional[Tuple[Volume, ...]] = None

    # private registry 인증 파일 위치
    auth_bucket_name: Optional[str] = None
    auth_bucket_key: Optional[str] = None

    extensions_dir: Optional[str] = None

    # 자격증명 (없으면 boto3 기본 탐색)
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None

    def get(self, key: str) -> Any:
        """kebab-case 키로 값을 조회한다."""
        return getattr(self, _attr_name(key))

    def as_dict(self, redact: bool = True) -> Dict[str, Any]:
        """
        kebab-case 키 기준 dict 로 변환한다.
        redact=True 이면 secret 값은 가린다.
        """
        out: Dict[str, Any] = {}
        for key in OPTION_KEYS:
            value = self.get(key)
            if key == "volumes" and value is not None:
                value = [{"host": v.host, "container": v.container} for v in value]
            elif redact and key in _REDACTED_KEYS and value:
                value = "****"
            out[key] = value
        return out


def _attr_name(key: str) -> str:
    return key.replace("-", "_")


OPTION_KEYS: List[str] = [f.name.replace("_", "-") for f in fields(OptionSet)]


def unknown_keys(options: Mapping[str, Any]) -> List[str]:
    return sorted(str(k) for k in options if k not in OPTION_KEYS)


def load_options_file(path: str) -> Dict[str, Any]:
    """
    YAML mapping 문서를 읽어 옵션 dict 로 반환한다.

    - 파일이 없으면 빈 dict (에러 아님)
    - 빈 파일도 빈 dict
    - mapping 이 아니거나 알 수 없는 키가 있으면 ConfigFileError
    """
    if not os.path.exists(path):
        logger.debug("설정 파일이 없어 빈 설정으로 간주합니다: %s", path)
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigFileError(path, f"YAML 파싱 실패: {e}") from e
    except OSError as e:
        raise ConfigFileError(path, str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(path, f"최상위가 mapping 이 아닙니다 ({type(data).__name__})")

    unknown = unknown_keys(data)
    if unknown:
        raise ConfigFileError(path, "알 수 없는 옵션: " + ", ".join(unknown))

    _check_file_values(path, data)

    logger.debug("설정 파일 로드: %s (%d keys)", path, len(data))
    return dict(data)


def _check_file_values(path: str, data: Mapping[str, Any]) -> None:
    """
    YAML 이 숫자/불리언으로 해석한 값은 문자열로 되돌리면 원래 표기와 달라질 수 있다.
    (예: tag: 1.10 -> "1.1", version-label: 010 -> "8", description: yes -> "True")
    문자열 옵션은 str 만 받고, container-port 만 정수를 허용한다.
    """
    for key, value in data.items():
        if value is None:
            continue
        if key == "volumes":
            try:
                _parse_volumes(value)
            except ValueError as e:
                raise ConfigFileError(path, str(e)) from e
            continue
        if key == "container-port" and isinstance(value, int) and not isinstance(value, bool):
            continue
        if not isinstance(value, str):
            raise ConfigFileError(
                path,
                f"{key} 값은 문자열이어야 합니다 ({value!r}, {type(value).__name__}). "
                f"YAML 이 값을 변환하지 않도록 따옴표로 감싸 주세요. (예: {key}: \"...\")",
            )


def _parse_volumes(raw: Any) -> Tuple[Volume, ...]:
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"volumes 는 {{host, container}} 목록이어야 합니다: {raw!r}")

    volumes: List[Volume] = []
    for entry in raw:
        if isinstance(entry, Volume):
            volumes.append(entry)
            continue
        if not isinstance(entry, Mapping) or not entry.get("host") or not entry.get("container"):
            raise ValueError(f"volumes 항목에는 host 와 container 가 필요합니다: {entry!r}")
        if not isinstance(entry["host"], str) or not isinstance(entry["container"], str):
            raise ValueError(f"volumes 의 host/container 는 문자열이어야 합니다: {entry!r}")
        volumes.append(Volume(host=str(entry["host"]), container=str(entry["container"])))
    return tuple(volumes)


def _merge_layers(*layers: Mapping[str, Any]) -> Dict[str, Any]:
    """
    뒤쪽 레이어가 키 단위로 덮어쓴다. None 값은 "지정하지 않음" 으로 본다.
    volumes 도 통째로 교체된다 (항목 단위 병합 없음).
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        for key, value in (layer or {}).items():
            if value is None:
                continue
            merged[key] = value
    return merged


def generate_version_label() -> str:
    return uuid.uuid4().hex


def resolve(defaults: Optional[Mapping[str, Any]],
            file_options: Optional[Mapping[str, Any]],
            overrides: Optional[Mapping[str, Any]]) -> OptionSet:
    """
    기본값 < 설정 파일 < 명시적 override 순으로 병합하여 OptionSet 을 만든다.

    병합 후 파생값:
        tag 미지정 -> "latest"
        container-port 미지정 -> "3000"
        version-label 미지정 -> 무작위 토큰 생성
        bucket-key 미지정 -> version-label
    """
    for layer in (defaults, file_options, overrides):
        unknown = unknown_keys(layer or {})
        if unknown:
            raise ValueError("알 수 없는 옵션: " + ", ".join(unknown))

    merged = _merge_layers(defaults or {}, file_options or {}, overrides or {})

    values: Dict[str, Any] = {}
    for key, value in merged.items():
        if key == "volumes":
            values[_attr_name(key)] = _parse_volumes(value)
        else:
            values[_attr_name(key)] = str(value)

    if not values.get("tag"):
        values["tag"] = DEFAULT_TAG
    if not values.get("container_port"):
        values["container_port"] = DEFAULT_CONTAINER_PORT
    if not values.get("version_label"):
        values["version_label"] = generate_version_label()
    if not values.get("bucket_key"):
        values["bucket_key"] = values["version_label"]

    options = OptionSet(**values)
    logger.debug("Resolved options: %s", options.as_dict())
    return options


def require(options: OptionSet, *keys: str) -> None:
    """
    keys 중 값이 없는 옵션을 모두 모아 MissingOptionError 로 보고한다.
    """
    missing = [key for key in keys if not options.get(key)]
    if missing:
        raise MissingOptionError(missing)
