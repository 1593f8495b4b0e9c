"""制品管理器 Pydantic 模型定义。"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from src.shared.config import Settings


class ArtifactManagerConfig(BaseModel):
    """制品管理器配置类。"""

    repository_urls: list[str] = Field(default_factory=list, description="按顺序查找的仓库地址")
    cache_dir: Path | None = Field(
        default=None,
        description="本地缓存目录；为空时使用临时目录并在关闭时删除",
    )
    timeout: int = Field(
        default=60,
        ge=1,
        le=600,
        description="下载超时时间（秒）",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="网络错误重试次数",
    )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        repository_urls: list[str] | tuple[str, ...] | None = None,
        cache_dir: Path | None = None,
    ) -> "ArtifactManagerConfig":
        """以 Settings 为默认值，命令行参数优先。"""
        return cls(
            repository_urls=list(repository_urls) if repository_urls else list(settings.repository_urls),
            cache_dir=cache_dir if cache_dir is not None else settings.cache_dir,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
        )
