from pathlib import Path

from setuptools import find_namespace_packages

BASE = Path(__file__).parent.parent


def test_all_subpackages_are_installed():
    packages = find_namespace_packages(where=str(BASE / "bin"), include=["lrbox*"])
    assert {"lrbox", "lrbox.actions", "lrbox.patch"} <= set(packages)


def test_package_discovery_includes_namespaces():
    pyproject = (BASE / "pyproject.toml").read_text(encoding="utf-8")
    section = pyproject.split("[tool.setuptools.packages.find]", 1)[1].split("\n[", 1)[0]
    assert "namespaces = true" in section
