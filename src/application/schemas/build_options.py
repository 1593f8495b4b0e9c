"""构建选项 Pydantic 模型。"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.shared.constants.framework import DEFAULT_OUTPUT
from src.shared.errors import UsageError


class BuildOptions(BaseModel):
    """一次构建的只读配置，由命令行参数与 Settings 组合而成。"""

    model_config = ConfigDict(frozen=True)

    output: Path = Field(default=Path(DEFAULT_OUTPUT), description="输出文件路径")
    files: tuple[str, ...] = Field(default=(), description="显式指定的 feature 文件")
    dirs: tuple[str, ...] = Field(default=(), description="feature 文件目录")
    repository_urls: tuple[str, ...] = Field(default=(), description="制品仓库地址")
    # sling.properties：接收但尚未支持读取
    properties_file: Path | None = Field(default=None, description="sling.properties 文件")
    framework_version: str | None = Field(default=None, description="Felix 框架版本")
    cache_dir: Path | None = Field(default=None, description="本地制品缓存目录")
    verbose: bool = False

    @model_validator(mode="after")
    def _require_input(self) -> "BuildOptions":
        if not self.files and not self.dirs:
            raise UsageError("Required argument missing: model files or directory")
        return self
