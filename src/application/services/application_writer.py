"""Application JSON 输出。"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from src.domain.entities import Application, Artifact, Extension, ExtensionType
from src.shared.errors import OutputWriteError


def _artifact_to_json(artifact: Artifact) -> Any:
    # 无元数据时输出简写形式（纯坐标字符串）
    if not artifact.metadata:
        return artifact.id.to_mvn_id()
    return {"id": artifact.id.to_mvn_id(), **artifact.metadata}


def _extension_to_json(ext: Extension) -> Any:
    if ext.type is ExtensionType.ARTIFACTS:
        return [_artifact_to_json(a) for a in ext.artifacts]
    if ext.type is ExtensionType.TEXT:
        return ext.text or ""
    return ext.json_value


def application_to_dict(app: Application) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if app.framework is not None:
        payload["framework"] = app.framework.to_mvn_id()
    if app.feature_ids:
        payload["features"] = [f.to_mvn_id() for f in app.feature_ids]
    if app.framework_properties:
        payload["framework-properties"] = dict(app.framework_properties)
    if app.bundles:
        payload["bundles"] = [_artifact_to_json(b) for b in app.bundles]
    if app.configurations:
        payload["configurations"] = {c.pid: dict(c.properties) for c in app.configurations}
    for ext in app.extensions:
        payload[ext.key] = _extension_to_json(ext)
    return payload


def write_application(app: Application, path: Path | str) -> Path:
    """将 Application 以 JSON 写入文件。

    写入失败时抛出 OutputWriteError；已写入的部分文件不做清理。
    """
    out = Path(path)
    try:
        with open(out, "w", encoding="utf-8") as f:
            json.dump(application_to_dict(app), f, ensure_ascii=False, indent=2)
            f.write("\n")
    except OSError as e:
        raise OutputWriteError(f"Unable to write application to {out} : {e}") from e
    return out
