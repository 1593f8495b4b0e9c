from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class AppError(Exception):
    code: str
    message: str
    exit_code: int = 1
    details: dict[str, Any] | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


ERROR_USAGE = "usage_error"
ERROR_ARTIFACT_MANAGER = "artifact_manager_error"
ERROR_ARTIFACT_NOT_FOUND = "artifact_not_found"
ERROR_FEATURE_READ = "feature_read_error"
ERROR_ASSEMBLY = "assembly_error"
ERROR_OUTPUT_WRITE = "output_write_error"


class UsageError(AppError):
    """命令行参数错误（会同时输出帮助信息）。"""

    def __init__(self, message: str, code: str = ERROR_USAGE):
        super().__init__(code=code, message=message)


class ArtifactManagerError(AppError):
    """制品管理器无法初始化。"""

    def __init__(self, message: str, code: str = ERROR_ARTIFACT_MANAGER):
        super().__init__(code=code, message=message)


class ArtifactResolveError(AppError):
    """制品无法解析为本地文件。"""

    def __init__(
        self,
        message: str,
        code: str = ERROR_ARTIFACT_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, details=details)


class FeatureReadError(AppError):
    """Feature 描述文件读取/解析失败。"""

    def __init__(
        self,
        message: str,
        code: str = ERROR_FEATURE_READ,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, details=details)


class AssemblyError(AppError):
    """Application 组装失败。"""

    def __init__(self, message: str, code: str = ERROR_ASSEMBLY):
        super().__init__(code=code, message=message)


class OutputWriteError(AppError):
    """输出文件写入失败。"""

    def __init__(self, message: str, code: str = ERROR_OUTPUT_WRITE):
        super().__init__(code=code, message=message)
