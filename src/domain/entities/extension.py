"""Feature 扩展实体。"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .artifact import Artifact


class ExtensionType(str, Enum):
    """扩展内容类型。"""

    ARTIFACTS = "ARTIFACTS"
    TEXT = "TEXT"
    JSON = "JSON"


class Extension(BaseModel):
    """扩展段，JSON 键形如 ``name:TYPE|required``。"""

    name: str = Field(..., min_length=1)
    type: ExtensionType
    required: bool = False

    artifacts: list[Artifact] = Field(default_factory=list)
    text: str | None = None
    json_value: Any = None

    @property
    def key(self) -> str:
        return f"{self.name}:{self.type.value}|{str(self.required).lower()}"
