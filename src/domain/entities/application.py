"""Application 实体：多个 Feature 合并后的可部署运行时装配。"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .artifact import Artifact, ArtifactId
from .configuration import Configuration
from .extension import Extension


class Application(BaseModel):
    framework: ArtifactId | None = None
    feature_ids: list[ArtifactId] = Field(default_factory=list)

    framework_properties: dict[str, str] = Field(default_factory=dict)
    bundles: list[Artifact] = Field(default_factory=list)
    configurations: list[Configuration] = Field(default_factory=list)
    extensions: list[Extension] = Field(default_factory=list)

    def get_configuration(self, pid: str) -> Configuration | None:
        return next((c for c in self.configurations if c.pid == pid), None)

    def get_extension(self, name: str) -> Extension | None:
        return next((e for e in self.extensions if e.name == name), None)
