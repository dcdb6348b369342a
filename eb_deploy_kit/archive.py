"""
archive
-------

Dockerrun.aws.json 과 (선택) .ebextensions 디렉토리를 묶어
Elastic Beanstalk 소스 번들(zip)을 만드는 모듈.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

from .dockerrun import Dockerrun
from .errors import ArchiveError
from .logging_utils import get_logger


logger = get_logger(__name__)


DESCRIPTOR_FILENAME = "Dockerrun.aws.json"

PathLike = Union[str, os.PathLike]


def _remove_existing(path: Path) -> None:
    if path.exists() or path.is_symlink():
        path.unlink()


def _stage(descriptor: Dockerrun, extensions_dir: Optional[Path], scratch: Path) -> None:
    (scratch / DESCRIPTOR_FILENAME).write_text(descriptor.to_json(), encoding="utf-8")

    if extensions_dir is not None and extensions_dir.is_dir():
        target = scratch / extensions_dir.name
        logger.info("확장 설정 디렉토리 복사: %s -> %s", extensions_dir, target.name)
        shutil.copytree(extensions_dir, target)


def _write_zip(scratch: Path, zip_path: Path) -> None:
    # 1980 년 이전 mtime (예: 재현 가능 빌드의 epoch 0) 은 1980-01-01 로 맞춘다.
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False) as zf:
        for root, dirs, files in os.walk(scratch):
            dirs.sort()
            for name in sorted(files):
                file_path = Path(root) / name
                zf.write(file_path, file_path.relative_to(scratch).as_posix())


def assemble(descriptor: Dockerrun,
             extensions_dir: Optional[PathLike],
             destination: PathLike) -> Path:
    """
    소스 번들 zip 을 destination 에 만든다.

    - destination 파일이 이미 있으면 먼저 지운다 (병합하지 않고 덮어쓰기)
    - destination 이 디렉토리면 지우지 않고 ArchiveError
    - 임시 디렉토리에서 조립 후, destination 옆의 임시 파일에 zip 을 쓰고 os.replace 로 옮긴다
    - 실패 시 destination 에 쓰다 만 파일이 남지 않는다

    Returns:
        destination 의 Path
    """
    dest = Path(destination)
    ext = Path(extensions_dir) if extensions_dir else None

    if dest.is_dir():
        raise ArchiveError(f"destination 이 디렉토리입니다. 파일 경로를 지정하세요: {dest}")

    try:
        _remove_existing(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="eb-bundle-") as scratch_dir:
            scratch = Path(scratch_dir)
            _stage(descriptor, ext, scratch)

            fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
            os.close(fd)
            tmp_path = Path(tmp_name)
            try:
                _write_zip(scratch, tmp_path)
                os.replace(tmp_path, dest)
            finally:
                if tmp_path.exists():
                    tmp_path.unlink()
    except (OSError, ValueError, zipfile.LargeZipFile) as e:
        raise ArchiveError(f"아카이브 생성 실패 ({dest}): {e}") from e

    logger.info("아카이브 생성 완료: %s", dest)
    return dest
