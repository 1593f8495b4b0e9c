"""Application 构建流水线：发现 → 读取 → 组装 → 后处理 → 输出。"""

from __future__ import annotations

from pathlib import Path

from src.application.schemas.build_options import BuildOptions
from src.application.services.application_builder import (
    BuilderContext,
    FeatureFound,
    FeatureLookup,
    FeatureNotFound,
    FeatureProvider,
    assemble,
)
from src.application.services.application_writer import write_application
from src.application.services.artifact_manager import ArtifactManager
from src.application.services.feature_reader import (
    SubstituteVariables,
    read_feature_file,
)
from src.domain.entities import Application, Artifact, ArtifactId, Feature
from src.shared.constants.framework import (
    BOOT_DELEGATION_DEFAULT,
    BOOT_DELEGATION_PROPERTY,
    LAUNCHPAD_API_BUNDLE,
    LAUNCHPAD_API_START_ORDER,
    felix_framework_id,
)
from src.shared.errors import AppError, AssemblyError, FeatureReadError, UsageError
from src.shared.logging import get_logger, log_extra

log = get_logger(__name__)


def _list_directory(path: Path) -> list[str]:
    if not path.is_dir():
        log.warning(
            "Feature directory does not exist, skipping: %s",
            path,
            extra=log_extra(directory=str(path)),
        )
        return []
    # 非递归；按名称排序保证多次运行顺序一致
    return [
        str(p.resolve())
        for p in sorted(path.iterdir(), key=lambda p: p.name)
        if not p.name.startswith(".") and p.is_file()
    ]


def discover_feature_files(options: BuildOptions) -> list[str]:
    """显式文件在前，其后依次为各目录下的非隐藏文件。

    Raises:
        UsageError: 结果为空
    """
    files = [f for f in options.files if f]
    for directory in options.dirs:
        files.extend(_list_directory(Path(directory)))

    if not files:
        raise UsageError("No feature files found.")
    log.debug("build.discover.ok", extra=log_extra(files=files))
    return files


def read_features(files: list[str], artifact_manager: ArtifactManager) -> list[Feature]:
    """读取全部 Feature 并按自然顺序（id）稳定排序。

    任一文件失败即整体失败，不产生任何输出。
    """
    features: list[Feature] = []
    for path in files:
        try:
            feature = read_feature_file(path, artifact_manager, SubstituteVariables.RESOLVE)
        except Exception as e:
            raise FeatureReadError(
                f"Error reading feature: {path}: {e}",
                details={"file": path},
            ) from e
        if feature is not None:
            features.append(feature)

    return sorted(features)


def feature_provider(artifact_manager: ArtifactManager) -> FeatureProvider:
    """按坐标获取并解析被引用的 Feature。

    获取或解析失败一律视为“未找到”，不会中断组装。
    """

    def provide(artifact_id: ArtifactId) -> FeatureLookup:
        try:
            feature = read_feature_file(
                artifact_id.to_mvn_url(), artifact_manager, SubstituteVariables.RESOLVE
            )
            if feature is None:
                return FeatureNotFound(artifact_id, reason="empty feature file")
            return FeatureFound(feature)
        except Exception as e:
            log.debug(
                "build.provide.not_found",
                extra=log_extra(artifact=artifact_id.to_mvn_url(), error=str(e)),
            )
            return FeatureNotFound(artifact_id, reason=str(e))

    return provide


def assemble_application(features: list[Feature], artifact_manager: ArtifactManager) -> Application:
    if not features:
        raise AssemblyError("No features found.")
    try:
        app = assemble(None, BuilderContext(feature_provider(artifact_manager)), features)
    except AppError:
        raise
    except ValueError as e:
        raise AssemblyError(f"Problem generating application: {e}") from e

    if app.framework is None:
        # 默认使用 Apache Felix
        app.framework = felix_framework_id(None)
    return app


def finalize_application(app: Application, options: BuildOptions) -> Application:
    """后处理：launchpad API bundle、默认框架属性与框架坐标。"""
    launchpad = ArtifactId.parse(LAUNCHPAD_API_BUNDLE)
    app.bundles = [b for b in app.bundles if not b.id.is_same(launchpad)]
    app.bundles.append(
        Artifact(id=launchpad, metadata={Artifact.KEY_START_ORDER: LAUNCHPAD_API_START_ORDER})
    )

    # TODO: 读取 sling.properties 并写入 framework-properties
    if options.properties_file is None:
        app.framework_properties[BOOT_DELEGATION_PROPERTY] = BOOT_DELEGATION_DEFAULT
    else:
        log.warning(
            "Properties file %s is not supported yet and is ignored",
            options.properties_file,
            extra=log_extra(properties_file=str(options.properties_file)),
        )

    # 框架固定为 Felix（-fv 可指定版本），覆盖 Feature 中声明的框架
    framework = felix_framework_id(options.framework_version)
    if app.framework is not None and not app.framework.is_same(framework):
        log.warning(
            "Overriding framework %s with %s",
            app.framework,
            framework,
            extra=log_extra(previous=str(app.framework), framework=str(framework)),
        )
    app.framework = framework
    return app


class ApplicationBuildService:
    """一次完整的 Application 构建。"""

    def __init__(self, options: BuildOptions, artifact_manager: ArtifactManager):
        self.options = options
        self.artifact_manager = artifact_manager

    def build(self) -> Application:
        files = discover_feature_files(self.options)
        features = read_features(files, self.artifact_manager)
        app = assemble_application(features, self.artifact_manager)
        return finalize_application(app, self.options)

    def run(self) -> Path:
        app = self.build()
        log.info("Writing application: %s", self.options.output)
        return write_application(app, self.options.output)
