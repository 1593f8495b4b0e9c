from __future__ import annotations

import json
from pathlib import Path

import pytest

import src.interfaces.cli.main as cli
from src.shared.config import Settings
from src.shared.errors import AppError


@pytest.fixture()
def feature_dir(tmp_path: Path, write_json) -> Path:
    d = tmp_path / "features"
    write_json(
        d / "base.json",
        {
            "id": "org.example/base/1.0.0",
            "bundles": ["org.example/bundle-a/1.0.0"],
            "execution-environment:JSON|false": {"framework": {"id": "org.eclipse/equinox/3.13.0"}},
        },
    )
    write_json(d / ".ignored.json", {"id": "org.example/ignored/1.0.0"})
    return d


def _run(tmp_path: Path, *args: str) -> int:
    return cli.run(["-u", str(tmp_path / "repo"), "-c", str(tmp_path / "cache"), *args])


def test_no_inputs_is_a_usage_error_without_io(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys):
    class _Forbidden:
        def __init__(self, *args, **kwargs):
            raise AssertionError("artifact manager must not be created")

    monkeypatch.setattr(cli, "ArtifactManager", _Forbidden)
    monkeypatch.chdir(tmp_path)

    assert cli.run([]) == 1

    err = capsys.readouterr().err
    assert "usage: applicationbuilder" in err
    assert "Required argument missing: model files or directory" in err
    assert list(tmp_path.iterdir()) == []


def test_unknown_option_is_a_usage_error(capsys):
    assert cli.run(["-x"]) == 1
    assert "Unable to parse command line" in capsys.readouterr().err


def test_parse_args_splits_lists(tmp_path: Path):
    settings = Settings(repository_urls=["https://default.invalid"], cache_dir=None)
    options = cli.parse_args(["-f", "a.json, b.json,", "-d", "x,y", "-fv", "6.0.1", "-v"], settings)

    assert options.files == ("a.json", "b.json")
    assert options.dirs == ("x", "y")
    assert options.repository_urls == ("https://default.invalid",)
    assert options.output == Path("application.json")
    assert options.framework_version == "6.0.1"
    assert options.properties_file is None
    assert options.verbose is True

    options = cli.parse_args(["-d", "x", "-u", "file:/r1,https://r2", "-o", "out.json", "-p", "s.props"], settings)
    assert options.repository_urls == ("file:/r1", "https://r2")
    assert options.output == Path("out.json")
    assert options.properties_file == Path("s.props")


def test_parse_args_rejects_missing_inputs():
    with pytest.raises(AppError) as excinfo:
        cli.parse_args(["-o", "out.json"], Settings())
    assert excinfo.value.code == "usage_error"


def test_run_builds_application(tmp_path: Path, feature_dir: Path, capsys):
    out = tmp_path / "application.json"

    assert _run(tmp_path, "-d", str(feature_dir), "-o", str(out)) == 0

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["framework"] == "org.apache.felix/org.apache.felix.framework/5.6.10"
    assert data["features"] == ["org.example/base/1.0.0"]
    assert data["framework-properties"] == {"org.osgi.framework.bootdelegation": "sun.*,com.sun.*"}
    assert data["bundles"] == [
        "org.example/bundle-a/1.0.0",
        {"id": "org.apache.sling/org.apache.sling.launchpad.api/1.2.0", "start-order": "1"},
    ]
    err = capsys.readouterr().err
    assert "Apache Sling Feature Application Builder" in err
    assert f"Writing application: {out}" in err


def test_run_with_framework_version_and_properties(tmp_path: Path, feature_dir: Path):
    out = tmp_path / "application.json"

    code = _run(tmp_path, "-d", str(feature_dir), "-o", str(out), "-fv", "6.0.1", "-p", "sling.properties")

    assert code == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["framework"] == "org.apache.felix/org.apache.felix.framework/6.0.1"
    assert "framework-properties" not in data


def test_default_output_in_working_directory(tmp_path: Path, feature_dir: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    assert _run(tmp_path, "-d", str(feature_dir)) == 0
    assert (tmp_path / "application.json").is_file()


def test_broken_feature_aborts_without_output(tmp_path: Path, feature_dir: Path):
    (feature_dir / "broken.json").write_text("{ nope", encoding="utf-8")
    out = tmp_path / "application.json"

    assert _run(tmp_path, "-d", str(feature_dir), "-o", str(out)) == 1
    assert not out.exists()


def test_empty_directory_fails(tmp_path: Path):
    empty = tmp_path / "empty"
    empty.mkdir()
    assert _run(tmp_path, "-d", str(empty)) == 1


def test_output_write_failure(tmp_path: Path, feature_dir: Path):
    # 输出路径是目录，无法写入
    assert _run(tmp_path, "-d", str(feature_dir), "-o", str(tmp_path)) == 1


def test_artifact_manager_failure(tmp_path: Path, feature_dir: Path):
    cache_file = tmp_path / "cache-file"
    cache_file.write_text("x", encoding="utf-8")
    code = cli.run(["-d", str(feature_dir), "-c", str(cache_file), "-o", str(tmp_path / "a.json")])
    assert code == 1
    assert not (tmp_path / "a.json").exists()


def test_json_log_format(tmp_path: Path, feature_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.setenv("FAB_LOG_FORMAT", "json")
    from src.shared.config import reset_settings_for_tests

    reset_settings_for_tests()
    assert _run(tmp_path, "-d", str(feature_dir), "-o", str(tmp_path / "a.json")) == 0

    lines = [ln for ln in capsys.readouterr().err.splitlines() if ln.strip()]
    first = json.loads(lines[0])
    assert first["message"] == "Apache Sling Feature Application Builder"
    assert first["levelname"] == "INFO"
    assert first["run_id"]


def test_default_output_comes_from_constant():
    from src.shared.constants.framework import DEFAULT_OUTPUT

    assert Settings().default_output == Path(DEFAULT_OUTPUT)
