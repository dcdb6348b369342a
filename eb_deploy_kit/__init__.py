"""
eb_deploy_kit
-------------

Elastic Beanstalk 단일 컨테이너(Docker) 배포용 CLI 패키지.
Dockerrun.aws.json 과 .ebextensions 를 zip 으로 묶어 S3 에 올리고,
애플리케이션 버전을 등록한 뒤 환경을 해당 버전으로 전환한다.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "orchestrator",
    "__version__",
]
