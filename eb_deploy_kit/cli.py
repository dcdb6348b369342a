import functools
import os
import sys
from typing import Any, Dict, Tuple

import click
from botocore.exceptions import BotoCoreError

from . import __version__
from .aws_auth import create_session
from .aws_beanstalk import BeanstalkDeployer
from .aws_s3 import S3Storage
from .config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_OPTIONS,
    OptionSet,
    load_env_files,
    load_options_file,
    require,
    resolve,
)
from .errors import DeployKitError, MissingOptionError
from .logging_utils import setup_logging, get_logger
from .orchestrator import DEPLOY_KEYS, build_archive, deploy as run_deploy, plan_deploy


logger = get_logger(__name__)


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=str,
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="YAML 설정 파일 경로 (작업 디렉토리 기준). 없으면 빈 설정으로 간주합니다.",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다. (-vv 는 boto3 로그까지 출력)",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, config_path: str, verbose: int) -> None:
    """Elastic Beanstalk Docker 배포용 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _parse_volume(_ctx: click.Context, _param: click.Parameter, value: Tuple[str, ...]):
    volumes = []
    for raw in value:
        host, sep, container = raw.partition(":")
        if not sep or not host or not container:
            raise click.BadParameter(f"HOST:CONTAINER 형식이어야 합니다: {raw!r}")
        volumes.append({"host": host, "container": container})
    return volumes


# (flag 이름, 도움말) - flag 이름이 곧 옵션 키
_OPTION_FLAGS = [
    ("image-name", "Docker 이미지 이름"),
    ("tag", "이미지 태그 (기본: latest)"),
    ("container-port", "컨테이너 포트 (기본: 3000)"),
    ("bucket-name", "소스 번들을 올릴 S3 버킷"),
    ("bucket-key", "S3 object key (기본: version-label, .zip 이 붙음)"),
    ("application-name", "Elastic Beanstalk 애플리케이션 이름"),
    ("env-name", "Elastic Beanstalk 환경 이름"),
    ("version-label", "애플리케이션 버전 라벨 (기본: 무작위 생성)"),
    ("description", "애플리케이션 버전 설명"),
    ("auth-bucket-name", "private registry 인증 파일이 있는 S3 버킷"),
    ("auth-bucket-key", "private registry 인증 파일 key"),
    ("extensions-dir", "번들에 포함할 확장 설정 디렉토리 (기본: .ebextensions)"),
    ("access-key-id", "AWS access key id"),
    ("secret-access-key", "AWS secret access key"),
    ("region", "AWS region"),
]


def option_flags(func):
    """배포 옵션 전체를 click 옵션으로 붙인다. 값은 overrides dict 로 모아서 넘긴다."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        overrides: Dict[str, Any] = {}
        for key, _help in _OPTION_FLAGS:
            value = kwargs.pop(key.replace("-", "_"))
            if value is not None:
                overrides[key] = value
        volumes = kwargs.pop("volumes")
        if volumes:
            overrides["volumes"] = volumes
        return func(*args, overrides=overrides, **kwargs)

    wrapper = click.option(
        "--volume",
        "volumes",
        multiple=True,
        callback=_parse_volume,
        help="HOST:CONTAINER 볼륨 매핑 (여러 번 지정 가능). 지정하면 설정 파일의 volumes 를 대체합니다.",
    )(wrapper)
    for key, help_text in reversed(_OPTION_FLAGS):
        wrapper = click.option(f"--{key}", key.replace("-", "_"), type=str, default=None, help=help_text)(wrapper)
    return wrapper


def _base_dir(ctx: click.Context) -> str:
    return ctx.obj["chdir"]


def _load_options_from_ctx(ctx: click.Context, overrides: Dict[str, Any]) -> OptionSet:
    base_dir = _base_dir(ctx)
    logger.debug("작업 디렉토리: %s", base_dir)
    load_env_files(base_dir)
    config_path = os.path.join(base_dir, ctx.obj["config_path"])
    file_options = load_options_file(config_path)
    return resolve(DEFAULT_OPTIONS, file_options, overrides)


def _load_or_exit(ctx: click.Context, overrides: Dict[str, Any]) -> OptionSet:
    try:
        return _load_options_from_ctx(ctx, overrides)
    except (DeployKitError, ValueError) as e:
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)


@main.command(name="deploy")
@option_flags
@click.pass_context
def deploy(ctx: click.Context, overrides: Dict[str, Any]) -> None:
    """번들 생성 -> S3 업로드 -> 버전 등록 -> 환경 전환"""
    options = _load_or_exit(ctx, overrides)

    # AWS 클라이언트 생성(region 탐색 등) 전에 누락 옵션을 모두 보고한다.
    try:
        require(options, *DEPLOY_KEYS)
    except MissingOptionError as e:
        click.echo(f"[ERROR] 배포 실패: {e}", err=True)
        sys.exit(1)

    try:
        session = create_session(options)
        storage = S3Storage.from_session(session)
        beanstalk = BeanstalkDeployer.from_session(session)
    except BotoCoreError as e:
        click.echo(f"[ERROR] AWS 클라이언트 생성 실패: {e}", err=True)
        sys.exit(1)

    result = run_deploy(options, storage, beanstalk, base_dir=_base_dir(ctx))
    click.echo(result.summary())

    if not result.ok:
        click.echo(f"[ERROR] 배포 실패: {result.error}", err=True)
        sys.exit(1)


@main.command(name="build")
@click.argument("destination", type=click.Path(dir_okay=False))
@option_flags
@click.pass_context
def build(ctx: click.Context, destination: str, overrides: Dict[str, Any]) -> None:
    """번들 zip 만 만들어 DESTINATION 에 저장 (업로드 없음)"""
    options = _load_or_exit(ctx, overrides)

    dest = os.path.join(_base_dir(ctx), destination)
    result = build_archive(options, dest, base_dir=_base_dir(ctx))

    if not result.ok:
        click.echo(f"[ERROR] 번들 생성 실패: {result.error}", err=True)
        sys.exit(1)

    click.echo(f"번들을 생성했습니다: {result.archive_path}")


@main.command()
@option_flags
@click.pass_context
def plan(ctx: click.Context, overrides: Dict[str, Any]) -> None:
    """해석된 옵션과 단계별 준비 상태를 출력 (AWS 호출 없음)"""
    options = _load_or_exit(ctx, overrides)
    click.echo(plan_deploy(options))


@main.command()
def version() -> None:
    """버전 출력"""
    click.echo(__version__)