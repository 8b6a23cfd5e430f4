"""
Tests for the project metadata in pyproject.toml.
"""

from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def project():
    with open(PROJECT_ROOT / "pyproject.toml", "rb") as f:
        return tomllib.load(f)["project"]


def test_declared_readme_exists(project):
    readme = project.get("readme")
    if readme is not None:
        path = readme if isinstance(readme, str) else readme["file"]
        assert (PROJECT_ROOT / path).is_file()


def test_console_script_targets_lifecycle(project):
    scripts = project.get("scripts", {})
    assert all(target.startswith("user_telemetry.") for target in scripts.values())
