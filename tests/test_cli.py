import zipfile

import pytest
from click.testing import CliRunner

from eb_deploy_kit import __version__, cli
from eb_deploy_kit.aws_beanstalk import PromotionInfo, VersionInfo


CONFIG = (
    "image-name: app\n"
    "bucket-name: b\n"
    "application-name: app\n"
    "env-name: prod\n"
)


class _Recorder:
    def __init__(self) -> None:
        self.puts = []
        self.versions = []
        self.promotions = []

    def put(self, bucket, key, data):  # noqa: ANN001
        self.puts.append((bucket, key))

    def create_version(self, request):  # noqa: ANN001
        self.versions.append(request)
        return VersionInfo(application_name=request.application_name, version_label=request.version_label)

    def promote(self, request):  # noqa: ANN001
        self.promotions.append(request)
        return PromotionInfo(env_name=request.env_name, version_label=request.version_label)


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> _Recorder:
    rec = _Recorder()
    monkeypatch.setattr(cli.S3Storage, "from_session", classmethod(lambda cls, session: rec))
    monkeypatch.setattr(cli.BeanstalkDeployer, "from_session", classmethod(lambda cls, session: rec))
    return rec


def test_version_command() -> None:
    result = CliRunner().invoke(cli.main, ["version"])

    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_build_writes_bundle(tmp_path) -> None:
    (tmp_path / ".eb-deploy.yml").write_text(CONFIG, encoding="utf-8")

    result = CliRunner().invoke(
        cli.main,
        ["-C", str(tmp_path), "build", "out.zip", "--tag", "1.0", "--volume", "/h:/c"],
    )

    assert result.exit_code == 0, result.output
    with zipfile.ZipFile(tmp_path / "out.zip") as zf:
        doc = zf.read("Dockerrun.aws.json").decode("utf-8")
    assert '"app:1.0"' in doc
    assert '"HostDirectory": "/h"' in doc


def test_build_missing_bucket_fails(tmp_path) -> None:
    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "build", "out.zip", "--image-name", "svc"])

    assert result.exit_code == 1
    assert "bucket-name" in result.output
    assert not (tmp_path / "out.zip").exists()


def test_invalid_volume_flag_is_usage_error(tmp_path) -> None:
    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "build", "out.zip", "--volume", "nocolon"])

    assert result.exit_code == 2


def test_invalid_config_file_exits_non_zero(tmp_path) -> None:
    (tmp_path / ".eb-deploy.yml").write_text("- not\n- a mapping\n", encoding="utf-8")

    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "plan"])

    assert result.exit_code == 1
    assert "설정 로드 실패" in result.output


def test_plan_redacts_secret(tmp_path) -> None:
    (tmp_path / ".eb-deploy.yml").write_text(CONFIG, encoding="utf-8")

    result = CliRunner().invoke(
        cli.main,
        ["-C", str(tmp_path), "plan", "--version-label", "v7", "--secret-access-key", "topsecret"],
    )

    assert result.exit_code == 0, result.output
    assert "s3://b/v7.zip" in result.output
    assert "topsecret" not in result.output
    assert "- promoting-environment: READY" in result.output


def test_deploy_runs_full_pipeline(tmp_path, recorder: _Recorder) -> None:
    (tmp_path / ".eb-deploy.yml").write_text(CONFIG, encoding="utf-8")

    result = CliRunner().invoke(
        cli.main,
        ["-C", str(tmp_path), "deploy", "--version-label", "v1", "--region", "us-east-1"],
    )

    assert result.exit_code == 0, result.output
    assert recorder.puts == [("b", "v1.zip")]
    assert recorder.versions[0].version_label == "v1"
    assert recorder.promotions[0].env_name == "prod"
    assert "result: OK" in result.output


def test_deploy_override_flag_beats_config_file(tmp_path, recorder: _Recorder) -> None:
    (tmp_path / ".eb-deploy.yml").write_text(CONFIG, encoding="utf-8")

    result = CliRunner().invoke(
        cli.main,
        ["-C", str(tmp_path), "deploy", "--env-name", "staging", "--region", "us-east-1"],
    )

    assert result.exit_code == 0, result.output
    assert recorder.promotions[0].env_name == "staging"


def test_deploy_missing_options_exits_without_remote_calls(tmp_path, recorder: _Recorder) -> None:
    result = CliRunner().invoke(
        cli.main,
        ["-C", str(tmp_path), "deploy", "--image-name", "app", "--region", "us-east-1"],
    )

    assert result.exit_code == 1
    assert "bucket-name" in result.output
    assert "application-name" in result.output
    assert "env-name" in result.output
    assert recorder.puts == []
    assert recorder.versions == []


def test_deploy_reports_missing_options_before_aws_setup(tmp_path) -> None:
    result = CliRunner().invoke(cli.main, ["-C", str(tmp_path), "deploy", "--image-name", "app"])

    assert result.exit_code == 1
    assert "bucket-name" in result.output
    assert "application-name" in result.output
    assert "env-name" in result.output
    assert "AWS 클라이언트 생성 실패" not in result.output
