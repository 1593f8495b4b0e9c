from __future__ import annotations

import json

import pytest

from src.application.services.application_builder import (
    BuilderContext,
    FeatureFound,
    FeatureNotFound,
    assemble,
    assemble_feature,
)
from src.application.services.feature_reader import read_feature
from src.domain.entities import Application, ArtifactId, Feature
from src.shared.errors import AppError


def _feature(data: dict) -> Feature:
    return read_feature(json.dumps(data), f"mem:{data['id']}")


def _context(*features: Feature) -> BuilderContext:
    by_id = {f.id: f for f in features}

    def provide(artifact_id: ArtifactId):
        found = by_id.get(artifact_id)
        if found is None:
            return FeatureNotFound(artifact_id, reason="missing")
        return FeatureFound(found)

    return BuilderContext(provide)


def test_assemble_keeps_highest_bundle_version():
    a = _feature({"id": "g/a/1.0", "bundles": ["g/x/2.0", "g/y/1.0"]})
    b = _feature({"id": "g/b/1.0", "bundles": ["g/x/1.5", {"id": "g/z/1.0", "start-order": "3"}]})

    app = assemble(None, _context(), [a, b])

    versions = {bnd.id.artifact_id: bnd.id.version for bnd in app.bundles}
    assert versions == {"x": "2.0", "y": "1.0", "z": "1.0"}
    assert app.feature_ids == [a.id, b.id]
    assert app.bundles[2].start_order == "3"


def test_assemble_merges_configurations_and_properties():
    a = _feature(
        {
            "id": "g/a/1.0",
            "framework-properties": {"p1": "a", "p2": "a"},
            "configurations": {"pid": {"k1": "a", "k2": "a"}},
        }
    )
    b = _feature(
        {
            "id": "g/b/1.0",
            "framework-properties": {"p2": "b"},
            "configurations": {"pid": {"k2": "b"}, "other": {"x": 1}},
        }
    )

    app = assemble(None, _context(), [a, b])

    assert app.framework_properties == {"p1": "a", "p2": "b"}
    assert app.get_configuration("pid").properties == {"k1": "a", "k2": "b"}
    assert app.get_configuration("other").properties == {"x": 1}


def test_assemble_merges_extensions():
    a = _feature({"id": "g/a/1.0", "repoinit:TEXT|false": "line a", "c:ARTIFACTS|false": ["g/c/1.0"]})
    b = _feature({"id": "g/b/1.0", "repoinit:TEXT|true": "line b", "c:ARTIFACTS|false": ["g/c/2.0"]})

    app = assemble(None, _context(), [a, b])

    repoinit = app.get_extension("repoinit")
    assert repoinit.text == "line a\nline b"
    assert repoinit.required is True
    assert [x.id.version for x in app.get_extension("c").artifacts] == ["2.0"]


def test_extension_type_conflict_raises():
    a = _feature({"id": "g/a/1.0", "e:TEXT|false": "x"})
    b = _feature({"id": "g/b/1.0", "e:JSON|false": {}})
    with pytest.raises(AppError) as excinfo:
        assemble(None, _context(), [a, b])
    assert excinfo.value.code == "assembly_error"


def test_assemble_adds_feature_id_once():
    a = _feature({"id": "g/a/1.0"})
    app = assemble(Application(), _context(), [a, a])
    assert app.feature_ids == [a.id]


def test_include_applies_removals_and_overrides():
    base = _feature(
        {
            "id": "g/base/1.0/slingfeature",
            "title": "Base",
            "bundles": ["g/keep/1.0", "g/drop/1.0", "g/upgrade/2.0"],
            "framework-properties": {"a": "base", "gone": "x"},
            "configurations": {"pid.keep": {"k": "base"}, "pid.drop": {}},
            "repoinit:TEXT|false": "base",
        }
    )
    child = _feature(
        {
            "id": "g/child/1.0",
            "include": {
                "id": "g/base/1.0/slingfeature",
                "removals": {
                    "bundles": ["g/drop/1.0"],
                    "configurations": ["pid.drop"],
                    "framework-properties": ["gone"],
                    "extensions": ["repoinit"],
                },
            },
            "bundles": ["g/upgrade/1.0"],
            "framework-properties": {"a": "child"},
            "configurations": {"pid.keep": {"extra": "child"}},
        }
    )

    result = assemble_feature(child, _context(base))

    assert result.id == child.id
    assert result.include is None
    assert result.title == "Base"
    assert [(b.id.artifact_id, b.id.version) for b in result.bundles] == [
        ("keep", "1.0"),
        ("upgrade", "1.0"),
    ]
    assert result.framework_properties == {"a": "child"}
    assert [c.pid for c in result.configurations] == ["pid.keep"]
    assert result.get_configuration("pid.keep").properties == {"k": "base", "extra": "child"}
    assert result.get_extension("repoinit") is None


def test_missing_include_is_skipped():
    child = _feature({"id": "g/child/1.0", "include": "g/missing/1.0", "bundles": ["g/b/1.0"]})

    app = assemble(None, _context(), [child])

    assert app.feature_ids == [child.id]
    assert [b.id.artifact_id for b in app.bundles] == ["b"]


def test_circular_include_raises():
    a = _feature({"id": "g/a/1.0", "include": "g/b/1.0"})
    b = _feature({"id": "g/b/1.0", "include": "g/a/1.0"})
    with pytest.raises(AppError) as excinfo:
        assemble_feature(a, _context(a, b))
    assert excinfo.value.code == "assembly_error"
    assert "Circular include" in excinfo.value.message


def test_framework_from_execution_environment():
    a = _feature(
        {
            "id": "g/a/1.0",
            "execution-environment:JSON|false": {"framework": {"id": "org.eclipse/equinox/3.13.0"}},
        }
    )
    app = assemble(None, _context(), [a])
    assert app.framework == ArtifactId.parse("org.eclipse/equinox/3.13.0")
