"""
dockerrun
---------

OptionSet 으로부터 Elastic Beanstalk 단일 컨테이너용
Dockerrun.aws.json (version 1) 디스크립터를 만든다.
I/O 나 난수 없이 순수하게 계산한다.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .config import OptionSet, Volume


DOCKERRUN_VERSION = "1"


@dataclass(frozen=True)
class AuthPointer:
    bucket: str
    key: Optional[str] = None


@dataclass(frozen=True)
class Dockerrun:
    image: str
    container_port: str
    # None 이면 Volumes 섹션 자체를 생략한다.
    volumes: Optional[Tuple[Volume, ...]] = None
    auth: Optional[AuthPointer] = None

    def to_dict(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "AWSEBDockerrunVersion": DOCKERRUN_VERSION,
            "Image": {
                "Name": self.image,
                "Update": "true",
            },
            "Ports": [
                {"ContainerPort": self.container_port},
            ],
        }
        if self.volumes:
            doc["Volumes"] = [
                {"HostDirectory": v.host, "ContainerDirectory": v.container}
                for v in self.volumes
            ]
        if self.auth is not None:
            doc["Authentication"] = {
                "Bucket": self.auth.bucket,
                "Key": self.auth.key,
            }
        return doc

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2) + "\n"


def build_descriptor(options: OptionSet) -> Dockerrun:
    """
    Image.Name 은 "{image-name}:{tag}" 로 만든다.
    auth-bucket-name 이 있으면 key 가 없어도 Authentication 을 포함한다 (Key=null).
    """
    if not options.image_name or not options.tag:
        raise ValueError("image-name 과 tag 는 디스크립터 생성에 필수입니다.")

    auth = None
    if options.auth_bucket_name:
        auth = AuthPointer(bucket=options.auth_bucket_name, key=options.auth_bucket_key)

    return Dockerrun(
        image=f"{options.image_name}:{options.tag}",
        container_port=options.container_port or "",
        volumes=options.volumes or None,
        auth=auth,
    )
