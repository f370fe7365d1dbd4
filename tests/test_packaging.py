"""Tests for package metadata."""

import sys
import tomllib
from pathlib import Path


PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


class TestPackageMetadata:
    """Tests for pyproject.toml."""

    def test_python_floor_matches_lazy_annotations(self) -> None:
        project = tomllib.loads(PYPROJECT.read_text())["project"]

        assert project["requires-python"] == ">=3.14"
        assert sys.version_info >= (3, 14)
