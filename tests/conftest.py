from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.application.schemas.artifact_manager import ArtifactManagerConfig
from src.application.services.artifact_manager import ArtifactManager
from src.shared.config import reset_settings_for_tests


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """每个用例使用干净的配置：不访问默认远程仓库。"""
    monkeypatch.setenv("FAB_REPOSITORY_URLS", "[]")
    monkeypatch.delenv("FAB_CACHE_DIR", raising=False)
    monkeypatch.delenv("FAB_LOG_FORMAT", raising=False)
    reset_settings_for_tests()
    yield
    reset_settings_for_tests()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    # CLI 会重置 root handlers，用例结束后恢复，避免写入已关闭的捕获流
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture()
def write_json() -> Callable[[Path, Any], Path]:
    def _write(path: Path, data: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def local_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    return repo


@pytest.fixture()
def artifact_manager(tmp_path: Path, local_repo: Path):
    config = ArtifactManagerConfig(
        repository_urls=[str(local_repo)],
        cache_dir=tmp_path / "cache",
        max_retries=1,
    )
    with ArtifactManager(config) as am:
        yield am
