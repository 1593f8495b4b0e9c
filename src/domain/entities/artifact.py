"""制品坐标与制品实体。"""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_TYPE = "jar"


@dataclass(frozen=True, order=True)
class Version:
    """OSGi 风格版本号：major.minor.micro.qualifier。

    Maven 版本按 OSGi 规则转换：第一个 ``-`` 之后以及第三段之后的内容
    都归入 qualifier。空 qualifier 排在最前（即 ``1.0.0 < 1.0.0-SNAPSHOT``）。
    """

    major: int = 0
    minor: int = 0
    micro: int = 0
    qualifier: str = ""

    @classmethod
    def parse(cls, text: str) -> "Version":
        s = (text or "").strip()
        main, _, qualifier = s.partition("-")
        parts = main.split(".") if main else []

        numbers: list[int] = []
        rest: list[str] = []
        for idx, part in enumerate(parts):
            if idx < 3 and part.isdigit():
                numbers.append(int(part))
                continue
            rest = parts[idx:]
            break

        if rest:
            head = ".".join(rest)
            qualifier = f"{head}-{qualifier}" if qualifier else head

        numbers += [0] * (3 - len(numbers))
        return cls(numbers[0], numbers[1], numbers[2], qualifier)

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.micro}"
        return f"{base}.{self.qualifier}" if self.qualifier else base


@total_ordering
class ArtifactId(BaseModel):
    """Maven 制品坐标。

    支持三种文本形式：
    - ``mvn:group/artifact/version[/type[/classifier]]``
    - ``group/artifact/version[/type[/classifier]]``
    - ``group:artifact[:type[:classifier]]:version``
    """

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1)
    artifact_id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    type: str = DEFAULT_TYPE
    classifier: str | None = None

    @classmethod
    def parse(cls, text: str) -> "ArtifactId":
        s = (text or "").strip()
        if s.startswith("mvn:"):
            return cls._from_slash_form(s[len("mvn:"):], text)
        if "/" in s:
            return cls._from_slash_form(s, text)
        if ":" in s:
            return cls._from_colon_form(s, text)
        raise ValueError(f"invalid artifact id: {text!r}")

    @classmethod
    def _from_slash_form(cls, s: str, original: str) -> "ArtifactId":
        parts = s.split("/")
        if not 3 <= len(parts) <= 5 or not all(parts[:3]):
            raise ValueError(f"invalid artifact id: {original!r}")
        return cls(
            group_id=parts[0],
            artifact_id=parts[1],
            version=parts[2],
            type=parts[3] if len(parts) > 3 and parts[3] else DEFAULT_TYPE,
            classifier=parts[4] if len(parts) > 4 and parts[4] else None,
        )

    @classmethod
    def _from_colon_form(cls, s: str, original: str) -> "ArtifactId":
        parts = s.split(":")
        if not 3 <= len(parts) <= 5 or not all(parts):
            raise ValueError(f"invalid artifact id: {original!r}")
        group_id, artifact_id, *middle, version = parts
        return cls(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            type=middle[0] if middle else DEFAULT_TYPE,
            classifier=middle[1] if len(middle) > 1 else None,
        )

    @property
    def osgi_version(self) -> Version:
        return Version.parse(self.version)

    def to_mvn_id(self) -> str:
        s = f"{self.group_id}/{self.artifact_id}/{self.version}"
        if self.classifier:
            return f"{s}/{self.type}/{self.classifier}"
        if self.type != DEFAULT_TYPE:
            return f"{s}/{self.type}"
        return s

    def to_mvn_url(self) -> str:
        return f"mvn:{self.to_mvn_id()}"

    def to_mvn_path(self) -> str:
        """仓库内相对路径，例如 ``org/apache/felix/x/1.0/x-1.0.jar``。"""
        suffix = f"-{self.classifier}" if self.classifier else ""
        return (
            f"{self.group_id.replace('.', '/')}/{self.artifact_id}/{self.version}/"
            f"{self.artifact_id}-{self.version}{suffix}.{self.type}"
        )

    def is_same(self, other: "ArtifactId") -> bool:
        """坐标相同（忽略版本）。"""
        return (
            self.group_id == other.group_id
            and self.artifact_id == other.artifact_id
            and self.type == other.type
            and self.classifier == other.classifier
        )

    def _sort_key(self) -> tuple:
        return (
            self.group_id,
            self.artifact_id,
            self.osgi_version,
            self.type,
            self.classifier or "",
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ArtifactId):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __str__(self) -> str:
        return self.to_mvn_id()


class Artifact(BaseModel):
    """制品（bundle 等）及其元数据。"""

    KEY_START_ORDER: ClassVar[str] = "start-order"

    id: ArtifactId
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def start_order(self) -> str | None:
        return self.metadata.get(self.KEY_START_ORDER)
