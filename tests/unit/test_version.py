"""Tests for version module."""

from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from linkerd_adapter import __version__
from linkerd_adapter.__version__ import __version__ as version_string


@pytest.mark.unit
class TestVersion:
    """Test version information."""

    def test_version_is_semantic(self) -> None:
        major, minor, patch = __version__.split(".")[:3]
        assert major.isdigit() and minor.isdigit() and patch.isdigit()

    def test_package_reexports_version(self) -> None:
        assert __version__ == version_string

    def test_matches_project_metadata(self) -> None:
        pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with pyproject.open("rb") as fh:
            metadata = tomllib.load(fh)
        assert metadata["project"]["version"] == __version__
