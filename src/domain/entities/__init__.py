"""领域实体模块。"""

from .artifact import Artifact, ArtifactId, Version
from .configuration import Configuration
from .extension import Extension, ExtensionType
from .feature import Feature, Include
from .application import Application

__all__ = [
    "Artifact",
    "ArtifactId",
    "Version",
    "Configuration",
    "Extension",
    "ExtensionType",
    "Feature",
    "Include",
    "Application",
]
