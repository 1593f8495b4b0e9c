"""默认 OSGi 框架与启动相关常量。"""

from __future__ import annotations

from src.domain.entities.artifact import ArtifactId


FELIX_FRAMEWORK_GROUP_ID = "org.apache.felix"
FELIX_FRAMEWORK_ARTIFACT_ID = "org.apache.felix.framework"
DEFAULT_FELIX_FRAMEWORK_VERSION = "5.6.10"

# 固定追加到 Application 的 launchpad API bundle，强制最先启动
LAUNCHPAD_API_BUNDLE = "org.apache.sling/org.apache.sling.launchpad.api/1.2.0"
LAUNCHPAD_API_START_ORDER = "1"

# 未提供 sling.properties 时写入的默认框架属性
BOOT_DELEGATION_PROPERTY = "org.osgi.framework.bootdelegation"
BOOT_DELEGATION_DEFAULT = "sun.*,com.sun.*"

DEFAULT_OUTPUT = "application.json"

# JSON 扩展中可声明框架制品：{"framework": {"id": "g/a/v"}}
EXECUTION_ENVIRONMENT_EXTENSION = "execution-environment"


def felix_framework_id(version: str | None = None) -> ArtifactId:
    """返回默认的 Apache Felix 框架坐标，可指定版本。"""
    return ArtifactId(
        group_id=FELIX_FRAMEWORK_GROUP_ID,
        artifact_id=FELIX_FRAMEWORK_ARTIFACT_ID,
        version=version or DEFAULT_FELIX_FRAMEWORK_VERSION,
    )
