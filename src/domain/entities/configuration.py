"""OSGi 配置实体。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


FACTORY_SEPARATOR = "~"


class Configuration(BaseModel):
    """单个 OSGi 配置（PID + 属性）。

    工厂配置的 PID 形如 ``factory.pid~name``。
    """

    pid: str = Field(..., min_length=1)
    properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_factory(self) -> bool:
        return FACTORY_SEPARATOR in self.pid
