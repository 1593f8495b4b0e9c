"""领域层（Domain）。"""

from .entities import Application, Artifact, ArtifactId, Feature

__all__ = [
    "Application",
    "Artifact",
    "ArtifactId",
    "Feature",
]
