"""Feature JSON 读取：注释剥离、变量替换与模型构建。"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import TYPE_CHECKING, Any

from src.domain.entities import (
    Artifact,
    ArtifactId,
    Configuration,
    Extension,
    ExtensionType,
    Feature,
    Include,
)
from src.shared.errors import FeatureReadError
from src.shared.logging import get_logger, log_extra

if TYPE_CHECKING:
    from src.application.services.artifact_manager import ArtifactManager

log = get_logger(__name__)


_VAR_RE = re.compile(r"\$\{([^}]+)\}")

KEY_ID = "id"
KEY_INCLUDE = "include"
KEY_VARIABLES = "variables"
KEY_FRAMEWORK_PROPERTIES = "framework-properties"
KEY_BUNDLES = "bundles"
KEY_CONFIGURATIONS = "configurations"
KEY_REQUIREMENTS = "requirements"
KEY_CAPABILITIES = "capabilities"
KEY_REMOVALS = "removals"

_DESCRIPTIVE_KEYS = ("title", "description", "vendor", "license")

_KNOWN_KEYS = {
    KEY_ID,
    KEY_INCLUDE,
    KEY_VARIABLES,
    KEY_FRAMEWORK_PROPERTIES,
    KEY_BUNDLES,
    KEY_CONFIGURATIONS,
    KEY_REQUIREMENTS,
    KEY_CAPABILITIES,
    *_DESCRIPTIVE_KEYS,
}


class SubstituteVariables(str, Enum):
    """变量替换模式。"""

    NONE = "none"
    RESOLVE = "resolve"


def strip_json_comments(text: str) -> str:
    """去掉字符串之外的 ``//`` 与 ``/* */`` 注释。"""
    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise ValueError("unterminated comment")
            # 保留换行，便于 JSON 报错行号与原文一致
            out.append("\n" * text.count("\n", i, end))
            i = end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def parse_extension_key(key: str) -> tuple[str, ExtensionType, bool]:
    """解析 ``name:TYPE|required`` 形式的扩展键。"""
    name, _, rest = key.partition(":")
    type_part, _, required_part = rest.partition("|")
    if not name or not type_part:
        raise ValueError(f"invalid extension key: {key!r}")
    try:
        ext_type = ExtensionType(type_part.strip().upper())
    except ValueError:
        raise ValueError(f"invalid extension type in {key!r}") from None
    required = required_part.strip().lower() == "true"
    return name.strip(), ext_type, required


class FeatureJSONReader:
    """将已解码的 JSON 对象转换为 Feature。"""

    def __init__(self, location: str, substitute: SubstituteVariables = SubstituteVariables.RESOLVE):
        self.location = location
        self.substitute = substitute
        self._variables: dict[str, str] = {}

    def read(self, data: dict[str, Any]) -> Feature:
        unknown = [k for k in data if k not in _KNOWN_KEYS and ":" not in k]
        if unknown:
            raise ValueError(f"unknown keys: {', '.join(sorted(unknown))}")

        self._variables = self._read_variables(data.get(KEY_VARIABLES))

        if KEY_ID not in data:
            raise ValueError("feature id is missing")
        feature = Feature(
            id=ArtifactId.parse(self._string(data[KEY_ID], KEY_ID)),
            location=self.location,
            variables=dict(self._variables),
        )
        for key in _DESCRIPTIVE_KEYS:
            if data.get(key) is not None:
                setattr(feature, key, self._string(data[key], key))

        if data.get(KEY_INCLUDE) is not None:
            feature.include = self._read_include(data[KEY_INCLUDE])
        feature.requirements = self._list(data.get(KEY_REQUIREMENTS), KEY_REQUIREMENTS)
        feature.capabilities = self._list(data.get(KEY_CAPABILITIES), KEY_CAPABILITIES)
        feature.framework_properties = self._read_framework_properties(
            data.get(KEY_FRAMEWORK_PROPERTIES)
        )
        feature.bundles = self._read_artifacts(data.get(KEY_BUNDLES), KEY_BUNDLES)
        feature.configurations = self._read_configurations(data.get(KEY_CONFIGURATIONS))
        feature.extensions = [
            self._read_extension(key, value) for key, value in data.items() if ":" in key
        ]
        return feature

    # ---------- 变量 ----------

    def _read_variables(self, raw: Any) -> dict[str, str]:
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError("variables must be an object")
        return {str(k): "" if v is None else str(v) for k, v in raw.items()}

    def _resolve(self, value: str) -> str:
        if self.substitute is SubstituteVariables.NONE or "${" not in value:
            return value

        def _replace(m: re.Match[str]) -> str:
            name = m.group(1)
            if name not in self._variables:
                raise ValueError(f"Undefined variable: {name}")
            return self._variables[name]

        return _VAR_RE.sub(_replace, value)

    def _substitute(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._resolve(value)
        if isinstance(value, list):
            return [self._substitute(v) for v in value]
        if isinstance(value, dict):
            return {k: self._substitute(v) for k, v in value.items()}
        return value

    # ---------- 基础类型 ----------

    def _string(self, value: Any, key: str) -> str:
        if not isinstance(value, str):
            raise ValueError(f"{key} must be a string")
        return self._resolve(value)

    def _list(self, value: Any, key: str) -> list[Any]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"{key} must be an array")
        return self._substitute(value)

    # ---------- 段落 ----------

    def _read_include(self, raw: Any) -> Include:
        if isinstance(raw, str):
            return Include(id=ArtifactId.parse(self._resolve(raw)))
        if not isinstance(raw, dict) or KEY_ID not in raw:
            raise ValueError("include must be an id or an object with an id")

        include = Include(id=ArtifactId.parse(self._string(raw[KEY_ID], "include.id")))
        removals = raw.get(KEY_REMOVALS) or {}
        if not isinstance(removals, dict):
            raise ValueError("include.removals must be an object")
        include.removed_bundles = [
            ArtifactId.parse(str(v)) for v in self._list(removals.get(KEY_BUNDLES), "removals.bundles")
        ]
        include.removed_configurations = [
            str(v) for v in self._list(removals.get(KEY_CONFIGURATIONS), "removals.configurations")
        ]
        include.removed_framework_properties = [
            str(v)
            for v in self._list(
                removals.get(KEY_FRAMEWORK_PROPERTIES), "removals.framework-properties"
            )
        ]
        include.removed_extensions = [
            str(v) for v in self._list(removals.get("extensions"), "removals.extensions")
        ]
        return include

    def _read_framework_properties(self, raw: Any) -> dict[str, str]:
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError("framework-properties must be an object")
        return {str(k): self._resolve(str(v)) for k, v in raw.items()}

    def _read_artifact(self, raw: Any, key: str) -> Artifact:
        if isinstance(raw, str):
            return Artifact(id=ArtifactId.parse(self._resolve(raw)))
        if isinstance(raw, dict) and KEY_ID in raw:
            metadata = {
                str(k): self._resolve(str(v)) for k, v in raw.items() if k != KEY_ID
            }
            return Artifact(id=ArtifactId.parse(self._string(raw[KEY_ID], f"{key}.id")), metadata=metadata)
        raise ValueError(f"invalid artifact in {key}: {raw!r}")

    def _read_artifacts(self, raw: Any, key: str) -> list[Artifact]:
        if raw is None:
            return []
        if isinstance(raw, list):
            return [self._read_artifact(item, key) for item in raw]
        if isinstance(raw, dict):
            # 旧格式：按启动级别分组 {"1": [...], "20": [...]}
            artifacts: list[Artifact] = []
            for level, items in raw.items():
                if not str(level).isdigit() or not isinstance(items, list):
                    raise ValueError(f"invalid {key} start level group: {level!r}")
                for item in items:
                    artifact = self._read_artifact(item, key)
                    artifact.metadata.setdefault(Artifact.KEY_START_ORDER, str(level))
                    artifacts.append(artifact)
            return artifacts
        raise ValueError(f"{key} must be an array")

    def _read_configurations(self, raw: Any) -> list[Configuration]:
        if raw is None:
            return []
        if not isinstance(raw, dict):
            raise ValueError("configurations must be an object")
        configurations: list[Configuration] = []
        for pid, props in raw.items():
            if props is None:
                props = {}
            if not isinstance(props, dict):
                raise ValueError(f"configuration {pid} must be an object")
            configurations.append(
                Configuration(pid=self._resolve(str(pid)), properties=self._substitute(props))
            )
        return configurations

    def _read_extension(self, key: str, raw: Any) -> Extension:
        name, ext_type, required = parse_extension_key(key)
        ext = Extension(name=name, type=ext_type, required=required)
        if ext_type is ExtensionType.ARTIFACTS:
            ext.artifacts = self._read_artifacts(raw, key)
        elif ext_type is ExtensionType.TEXT:
            if isinstance(raw, list):
                ext.text = "\n".join(self._resolve(str(line)) for line in raw)
            elif isinstance(raw, str):
                ext.text = self._resolve(raw)
            else:
                raise ValueError(f"{key} must be a string or an array of strings")
        else:
            ext.json_value = self._substitute(raw)
        return ext


def read_feature(
    text: str,
    location: str,
    substitute: SubstituteVariables = SubstituteVariables.RESOLVE,
) -> Feature:
    """从 JSON 文本读取 Feature。

    Args:
        text: Feature JSON（允许 ``//`` 与 ``/* */`` 注释）
        location: 来源标识（URL 或路径），写入 ``Feature.location``
        substitute: 变量替换模式

    Raises:
        FeatureReadError: JSON 非法、结构错误或变量未定义
    """
    try:
        data = json.loads(strip_json_comments(text))
    except ValueError as e:
        raise FeatureReadError(
            f"Unable to parse feature {location}: {e}",
            details={"location": location},
        ) from e

    if not isinstance(data, dict):
        raise FeatureReadError(
            f"Unable to parse feature {location}: top level must be an object",
            details={"location": location},
        )

    try:
        return FeatureJSONReader(location, substitute).read(data)
    except ValueError as e:
        # pydantic ValidationError 亦是 ValueError
        raise FeatureReadError(
            f"Invalid feature {location}: {e}",
            details={"location": location},
        ) from e


def read_feature_file(
    url: str,
    artifact_manager: "ArtifactManager",
    substitute: SubstituteVariables = SubstituteVariables.RESOLVE,
) -> Feature | None:
    """通过制品管理器定位文件并读取 Feature；空文件返回 None。"""
    handler = artifact_manager.get_artifact_handler(url)
    try:
        text = handler.file.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        raise FeatureReadError(
            f"Unable to decode feature {handler.url}: {e}",
            details={"location": handler.url},
        ) from e

    if not text.strip():
        log.warning(
            "Skipping empty feature file: %s",
            url,
            extra=log_extra(location=handler.url),
        )
        return None
    return read_feature(text, handler.url, substitute)
