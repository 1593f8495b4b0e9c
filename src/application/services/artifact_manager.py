"""制品管理器：将制品坐标 / URL 解析为本地文件。"""

from __future__ import annotations

import hashlib
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.application.schemas.artifact_manager import ArtifactManagerConfig
from src.domain.entities.artifact import ArtifactId
from src.shared.errors import ArtifactManagerError, ArtifactResolveError
from src.shared.logging import get_logger, log_extra

log = get_logger(__name__)


@dataclass(frozen=True)
class ArtifactHandler:
    """已解析的制品：来源 URL 与本地文件。"""

    url: str
    file: Path


def _file_url_to_path(url: str) -> Path:
    return Path(url2pathname(urlsplit(url).path))


def _is_local(url: str) -> bool:
    scheme = urlsplit(url).scheme
    # Windows 盘符（C:\...）会被解析成单字母 scheme
    return scheme == "" or len(scheme) == 1


def _safe_url_for_log(url: str) -> str:
    """用于日志：去掉 query/fragment 与认证信息。"""
    parts = urlsplit(url)
    if not parts.scheme:
        return url[:512]
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}{parts.path}"[:512]


class ArtifactManager:
    """制品管理器。

    查找顺序：
    1. 本地文件路径或 ``file:`` URL，直接使用；
    2. ``mvn:`` URL / 制品坐标：先查缓存目录，再按顺序查找仓库；
       本地仓库原地使用，远程仓库下载到缓存目录；
    3. 其他 ``http(s)`` URL：下载到缓存目录。
    """

    def __init__(self, config: ArtifactManagerConfig, client: httpx.Client | None = None):
        self.config = config
        self._owns_cache = config.cache_dir is None
        try:
            if config.cache_dir is None:
                self._cache_dir = Path(tempfile.mkdtemp(prefix="feature-appbuilder-"))
            else:
                self._cache_dir = Path(config.cache_dir).expanduser()
                self._cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactManagerError(f"Unable to create artifact manager: {e}") from e

        self._client = client
        self._owns_client = client is None
        log.debug(
            "artifact_manager.init",
            extra=log_extra(
                cache_dir=str(self._cache_dir),
                temporary_cache=self._owns_cache,
                repositories=[_safe_url_for_log(u) for u in config.repository_urls],
            ),
        )

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    def close(self) -> None:
        """关闭 HTTP 客户端；临时缓存目录一并删除。"""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None
        if self._owns_cache:
            shutil.rmtree(self._cache_dir, ignore_errors=True)

    def __enter__(self) -> "ArtifactManager":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def get_artifact_handler(self, url: str) -> ArtifactHandler:
        """将 URL / 路径 / 制品坐标解析为本地文件。

        Raises:
            ArtifactResolveError: 无法找到或下载
        """
        s = (url or "").strip()
        if not s:
            raise ArtifactResolveError("Empty artifact url")

        if s.startswith("mvn:"):
            return self._resolve_artifact(self._parse_id(s))

        scheme = urlsplit(s).scheme
        if scheme in ("http", "https"):
            return self._resolve_remote_url(s)
        if scheme == "file":
            path = _file_url_to_path(s)
            if path.is_file():
                return ArtifactHandler(url=s, file=path)
            raise ArtifactResolveError(f"File not found: {path}")
        if not _is_local(s):
            raise ArtifactResolveError(f"Unsupported artifact url: {s}")

        path = Path(s).expanduser()
        if path.is_file():
            return ArtifactHandler(url=path.resolve().as_uri(), file=path)

        # 不存在的本地路径：尝试按制品坐标解析（例如 g/a/v/slingfeature）
        try:
            artifact_id = ArtifactId.parse(s)
        except ValueError:
            raise ArtifactResolveError(f"File not found: {path}") from None
        return self._resolve_artifact(artifact_id)

    @staticmethod
    def _parse_id(s: str) -> ArtifactId:
        try:
            return ArtifactId.parse(s)
        except ValueError as e:
            raise ArtifactResolveError(str(e)) from e

    def _resolve_artifact(self, artifact_id: ArtifactId) -> ArtifactHandler:
        rel = artifact_id.to_mvn_path()
        cached = self._cache_dir / rel
        if cached.is_file():
            log.debug(
                "artifact_manager.cache_hit",
                extra=log_extra(artifact=artifact_id.to_mvn_url(), file=str(cached)),
            )
            return ArtifactHandler(url=artifact_id.to_mvn_url(), file=cached)

        for repo in self.config.repository_urls:
            handler = self._try_repository(repo, rel)
            if handler is not None:
                log.debug(
                    "artifact_manager.resolved",
                    extra=log_extra(
                        artifact=artifact_id.to_mvn_url(),
                        repository=_safe_url_for_log(repo),
                    ),
                )
                return handler

        raise ArtifactResolveError(
            f"Unable to get artifact file: {artifact_id.to_mvn_url()}",
            details={"repositories": [_safe_url_for_log(u) for u in self.config.repository_urls]},
        )

    def _try_repository(self, repo: str, rel: str) -> ArtifactHandler | None:
        repo = repo.strip().rstrip("/")
        if not repo:
            return None
        scheme = urlsplit(repo).scheme
        if scheme in ("http", "https"):
            remote = f"{repo}/{rel}"
            target = self._cache_dir / rel
            if self._download(remote, target):
                return ArtifactHandler(url=remote, file=target)
            return None

        local_root = _file_url_to_path(repo) if scheme == "file" else Path(repo).expanduser()
        candidate = local_root / rel
        if candidate.is_file():
            return ArtifactHandler(url=candidate.resolve().as_uri(), file=candidate)
        return None

    def _resolve_remote_url(self, url: str) -> ArtifactHandler:
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:16]
        name = Path(urlsplit(url).path).name or "artifact"
        target = self._cache_dir / "urls" / digest / name
        if target.is_file() or self._download(url, target):
            return ArtifactHandler(url=url, file=target)
        raise ArtifactResolveError(f"Unable to download: {_safe_url_for_log(url)}")

    def _download(self, url: str, target: Path) -> bool:
        """下载到目标文件；404 或失败返回 False（继续尝试下一个仓库）。"""
        client = self._get_client()

        def _before_sleep(retry_state) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            log.warning(
                "artifact_manager.download.retry",
                extra=log_extra(
                    url=_safe_url_for_log(url),
                    attempt=retry_state.attempt_number,
                    error=repr(exc) if exc is not None else None,
                ),
            )

        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")
        try:
            # 仅对网络类异常重试（例如 ConnectError / ReadTimeout）
            for attempt in Retrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(max(1, int(self.config.max_retries))),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                reraise=True,
                before_sleep=_before_sleep,
            ):
                with attempt:
                    with client.stream("GET", url) as response:
                        if response.status_code == 404:
                            return False
                        response.raise_for_status()
                        with open(tmp, "wb") as f:
                            for chunk in response.iter_bytes():
                                f.write(chunk)
        except httpx.HTTPStatusError as e:
            log.warning(
                "artifact_manager.download.http_error",
                extra=log_extra(url=_safe_url_for_log(url), status_code=e.response.status_code),
            )
            tmp.unlink(missing_ok=True)
            return False
        except httpx.RequestError as e:
            # 网络异常、重定向过多等：继续尝试下一个仓库
            log.warning(
                "artifact_manager.download.network_error",
                extra=log_extra(url=_safe_url_for_log(url), error=repr(e)),
            )
            tmp.unlink(missing_ok=True)
            return False

        tmp.replace(target)
        log.debug(
            "artifact_manager.download.ok",
            extra=log_extra(url=_safe_url_for_log(url), file=str(target)),
        )
        return True
