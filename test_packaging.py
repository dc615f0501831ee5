"""Packaging regression tests."""

import re
from pathlib import Path
from typing import Set

import infiniteboard


def _read_pyproject() -> str:
    return Path("pyproject.toml").read_text(encoding="utf-8")


def _read_setuptools_packages() -> Set[str]:
    match = re.search(r"^packages\s*=\s*\[(.*?)\]", _read_pyproject(), flags=re.DOTALL | re.MULTILINE)
    assert match is not None, "packages is missing from pyproject.toml"
    return set(re.findall(r'"([^"]+)"', match.group(1)))


def test_runtime_package_is_packaged():
    assert "infiniteboard" in _read_setuptools_packages()


def test_qml_ships_with_package():
    pyproject = _read_pyproject()
    assert '"qml_ui/*.qml"' in pyproject
    qml_dir = Path(infiniteboard.__file__).with_name("qml_ui")
    assert (qml_dir / "TimelineCanvas.qml").is_file()


def test_runtime_dependencies_declared():
    pyproject = _read_pyproject()
    assert re.search(r'"PySide6[>=<~!]', pyproject), "PySide6 must be a runtime dependency"
