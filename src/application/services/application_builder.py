"""Application 组装：解析 include 并按顺序合并多个 Feature。"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Callable, Iterable, Union

from src.domain.entities import (
    Application,
    Artifact,
    ArtifactId,
    Extension,
    ExtensionType,
    Feature,
)
from src.shared.constants.framework import EXECUTION_ENVIRONMENT_EXTENSION
from src.shared.errors import AssemblyError
from src.shared.logging import get_logger, log_extra

log = get_logger(__name__)


@dataclass(frozen=True)
class FeatureFound:
    feature: Feature


@dataclass(frozen=True)
class FeatureNotFound:
    id: ArtifactId
    reason: str = ""


# 按坐标查找 Feature 的结果：找到 / 未找到，二者之一
FeatureLookup = Union[FeatureFound, FeatureNotFound]
FeatureProvider = Callable[[ArtifactId], FeatureLookup]


@dataclass
class BuilderContext:
    """组装上下文：提供按坐标解析被引用 Feature 的回调。"""

    provider: FeatureProvider


def _merge_artifacts(target: list[Artifact], source: Iterable[Artifact], *, latest: bool) -> None:
    """合并制品列表。

    latest=True：后来者覆盖同坐标制品（Feature 覆盖其 include）；
    latest=False：同坐标保留版本最高者（Application 合并多个 Feature）。
    """
    for artifact in source:
        idx = next((i for i, a in enumerate(target) if a.id.is_same(artifact.id)), None)
        if idx is None:
            target.append(artifact.model_copy(deep=True))
        elif latest or artifact.id.osgi_version > target[idx].id.osgi_version:
            target[idx] = artifact.model_copy(deep=True)


def _merge_extension(target: list[Extension], ext: Extension, *, latest: bool) -> None:
    existing = next((e for e in target if e.name == ext.name), None)
    if existing is None:
        target.append(ext.model_copy(deep=True))
        return
    if existing.type != ext.type:
        raise AssemblyError(
            f"Extension {ext.name} has conflicting types: {existing.type.value} and {ext.type.value}"
        )

    existing.required = existing.required or ext.required
    if ext.type is ExtensionType.ARTIFACTS:
        _merge_artifacts(existing.artifacts, ext.artifacts, latest=latest)
    elif ext.type is ExtensionType.TEXT:
        existing.text = "\n".join(t for t in (existing.text, ext.text) if t)
    else:
        existing.json_value = copy.deepcopy(ext.json_value)


def _apply_removals(result: Feature, feature: Feature) -> None:
    include = feature.include
    if include is None:
        return
    result.bundles = [
        b for b in result.bundles if not any(b.id.is_same(r) for r in include.removed_bundles)
    ]
    result.configurations = [
        c for c in result.configurations if c.pid not in include.removed_configurations
    ]
    for key in include.removed_framework_properties:
        result.framework_properties.pop(key, None)
    result.extensions = [e for e in result.extensions if e.name not in include.removed_extensions]


def _overlay(result: Feature, feature: Feature) -> None:
    """把 feature 自身内容叠加到（已应用移除项的）include 结果上。"""
    result.id = feature.id
    result.location = feature.location
    for key in ("title", "description", "vendor", "license"):
        value = getattr(feature, key)
        if value is not None:
            setattr(result, key, value)
    result.include = None
    result.variables.update(feature.variables)

    for item in feature.requirements:
        if item not in result.requirements:
            result.requirements.append(copy.deepcopy(item))
    for item in feature.capabilities:
        if item not in result.capabilities:
            result.capabilities.append(copy.deepcopy(item))

    result.framework_properties.update(feature.framework_properties)
    _merge_artifacts(result.bundles, feature.bundles, latest=True)
    for cfg in feature.configurations:
        existing = result.get_configuration(cfg.pid)
        if existing is None:
            result.configurations.append(cfg.model_copy(deep=True))
        else:
            existing.properties.update(copy.deepcopy(cfg.properties))
    for ext in feature.extensions:
        _merge_extension(result.extensions, ext, latest=True)


def assemble_feature(
    feature: Feature,
    context: BuilderContext,
    _chain: tuple[ArtifactId, ...] = (),
) -> Feature:
    """解析 include，返回不再含 include 的完整 Feature。

    被 include 的 Feature 未找到时记录警告并跳过该 include。

    Raises:
        AssemblyError: include 出现循环
    """
    if feature.include is None:
        return feature.model_copy(deep=True)

    include_id = feature.include.id
    chain = _chain + (feature.id,)
    if include_id in chain:
        cycle = " -> ".join(str(i) for i in chain + (include_id,))
        raise AssemblyError(f"Circular include detected: {cycle}")

    lookup = context.provider(include_id)
    if isinstance(lookup, FeatureNotFound):
        log.warning(
            "Included feature %s not found, ignoring include of %s",
            include_id,
            feature.id,
            extra=log_extra(include=str(include_id), feature=str(feature.id), reason=lookup.reason),
        )
        result = feature.model_copy(deep=True)
        result.include = None
        return result

    result = assemble_feature(lookup.feature, context, chain)
    _apply_removals(result, feature)
    _overlay(result, feature)
    return result


def _framework_from_extensions(app: Application) -> ArtifactId | None:
    ext = app.get_extension(EXECUTION_ENVIRONMENT_EXTENSION)
    if ext is None or ext.type is not ExtensionType.JSON:
        return None
    value = ext.json_value
    if not isinstance(value, dict) or value.get("framework") is None:
        return None

    framework = value["framework"]
    raw = framework.get("id") if isinstance(framework, dict) else framework
    try:
        return ArtifactId.parse(str(raw))
    except ValueError as e:
        raise AssemblyError(f"Invalid framework in {EXECUTION_ENVIRONMENT_EXTENSION}: {e}") from e


def merge_feature(app: Application, feature: Feature) -> None:
    """将已组装的 Feature 合并进 Application。"""
    if feature.id not in app.feature_ids:
        app.feature_ids.append(feature.id)

    _merge_artifacts(app.bundles, feature.bundles, latest=False)
    for cfg in feature.configurations:
        existing = app.get_configuration(cfg.pid)
        if existing is None:
            app.configurations.append(cfg.model_copy(deep=True))
        else:
            existing.properties.update(copy.deepcopy(cfg.properties))
    app.framework_properties.update(feature.framework_properties)
    for ext in feature.extensions:
        _merge_extension(app.extensions, ext, latest=False)


def assemble(
    app: Application | None,
    context: BuilderContext,
    features: Iterable[Feature],
) -> Application:
    """按给定顺序组装 Application。

    Args:
        app: 已有 Application；为 None 时新建
        context: 组装上下文
        features: 已排序的 Feature 列表
    """
    app = app if app is not None else Application()
    for feature in features:
        assembled = assemble_feature(feature, context)
        merge_feature(app, assembled)
        log.debug(
            "application_builder.merged",
            extra=log_extra(
                feature=str(assembled.id),
                bundles=len(assembled.bundles),
                configurations=len(assembled.configurations),
            ),
        )

    framework = _framework_from_extensions(app)
    if framework is not None:
        app.framework = framework
    return app
