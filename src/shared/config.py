from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.shared.constants.framework import DEFAULT_OUTPUT


def _default_repository_urls() -> list[str]:
    # 与 Maven 的默认查找顺序一致：本地仓库优先，其次中央仓库与 Apache 快照仓库
    local_repo = Path.home() / ".m2" / "repository"
    return [
        local_repo.as_uri(),
        "https://repo.maven.apache.org/maven2",
        "https://repository.apache.org/content/groups/snapshots",
    ]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FAB_", extra="ignore")

    log_level: str = "INFO"
    # text：命令行友好格式；json：结构化日志（python-json-logger）
    log_format: str = "text"

    default_output: Path = Path(DEFAULT_OUTPUT)

    # 制品仓库（逗号分隔的环境变量需写成 JSON 数组）
    repository_urls: list[str] = Field(default_factory=_default_repository_urls)
    # 为空时由制品管理器创建临时缓存目录，结束后删除
    cache_dir: Path | None = None

    http_timeout: int = 60
    http_max_retries: int = 3


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings_for_tests() -> None:
    """仅用于测试：清空配置缓存，便于使用 monkeypatch 设置环境变量。"""
    global _settings
    _settings = None
