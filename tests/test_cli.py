"""Tests for the command line interface."""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest
import yaml

from routes_to_openapi_generator.cli import main
from routes_to_openapi_generator.module_loading import AppLoadError, load_object

from .fixture_helpers import fixture_dir

_SAMPLE_PATH = Path(__file__).resolve().parent / "sample_api.py"


def test_cli_help_screen() -> None:
    """Running the CLI help should succeed and print usage information."""
    result = subprocess.run(
        [sys.executable, "-m", "routes_to_openapi_generator", "--help"],
        check=False,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0
    assert "usage:" in result.stdout.lower()


def test_writes_json_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    """A generator attribute is assembled and printed as JSON."""
    assert main(["--app", f"{_SAMPLE_PATH}:generator"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["info"]["title"] == "Test API"
    assert "/sealed" in payload["paths"]


def test_writes_yaml_file_with_config(tmp_path: Path) -> None:
    """A factory receives the loaded configuration; YAML goes to the output file."""
    output = tmp_path / "out" / "openapi.yaml"
    exit_code = main(
        [
            "--app",
            f"{_SAMPLE_PATH}:build_generator",
            "--config",
            str(fixture_dir() / "sample_api.yaml"),
            "--format",
            "yaml",
            "--output",
            str(output),
        ]
    )
    assert exit_code == 0
    content = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert content["info"]["title"] == "Test API"
    assert set(content["components"]["securitySchemes"]) == {"oauth", "apiKey"}
    assert "/long/{a}" in content["paths"]


def test_config_with_generator_instance_is_an_error(capsys: pytest.CaptureFixture[str]) -> None:
    """A ready-made generator cannot take a configuration file."""
    with pytest.raises(SystemExit) as excinfo:
        main(["--app", f"{_SAMPLE_PATH}:generator", "--config", str(fixture_dir() / "minimal.yaml")])
    assert excinfo.value.code == 2
    assert "needs a factory" in capsys.readouterr().err


def test_bad_app_reference_is_reported(capsys: pytest.CaptureFixture[str]) -> None:
    """Unloadable references are reported through the parser."""
    with pytest.raises(SystemExit) as excinfo:
        main(["--app", "no_such_module_here:app"])
    assert excinfo.value.code == 2
    assert "no_such_module_here" in capsys.readouterr().err


def test_load_object_resolves_dotted_attributes() -> None:
    """Module references may point at nested attributes."""
    assert load_object("json:JSONDecoder.decode") is json.JSONDecoder.decode
    with pytest.raises(AppLoadError, match="module:attribute"):
        load_object("json")
    with pytest.raises(AppLoadError, match="no attribute"):
        load_object("json:missing")
