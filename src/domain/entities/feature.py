"""Feature 实体。"""

from __future__ import annotations

from functools import total_ordering
from typing import Any

from pydantic import BaseModel, Field

from .artifact import Artifact, ArtifactId
from .configuration import Configuration
from .extension import Extension


class Include(BaseModel):
    """被包含（原型）的 Feature 以及需要从中移除的内容。"""

    id: ArtifactId
    removed_bundles: list[ArtifactId] = Field(default_factory=list)
    removed_configurations: list[str] = Field(default_factory=list)
    removed_framework_properties: list[str] = Field(default_factory=list)
    removed_extensions: list[str] = Field(default_factory=list)


@total_ordering
class Feature(BaseModel):
    """Feature 描述：bundles、配置与框架属性的声明集合。

    自然顺序按 ``id`` 比较。
    """

    id: ArtifactId
    location: str | None = None

    title: str | None = None
    description: str | None = None
    vendor: str | None = None
    license: str | None = None

    include: Include | None = None
    variables: dict[str, str] = Field(default_factory=dict)
    requirements: list[Any] = Field(default_factory=list)
    capabilities: list[Any] = Field(default_factory=list)

    framework_properties: dict[str, str] = Field(default_factory=dict)
    bundles: list[Artifact] = Field(default_factory=list)
    configurations: list[Configuration] = Field(default_factory=list)
    extensions: list[Extension] = Field(default_factory=list)

    def get_configuration(self, pid: str) -> Configuration | None:
        return next((c for c in self.configurations if c.pid == pid), None)

    def get_extension(self, name: str) -> Extension | None:
        return next((e for e in self.extensions if e.name == name), None)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Feature):
            return NotImplemented
        return self.id < other.id
