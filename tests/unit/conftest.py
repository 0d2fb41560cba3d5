"""Shared fixtures for build tool tests."""

import textwrap
from pathlib import Path

import pytest

PYPROJECT = """\
[project]
name = "{name}"
version = "0.1.0"
requires-python = ">=3.8"
dependencies = [
    "pydantic>=2",
    'pywin32>=300; sys_platform == "win32" and python_version < "3"',
]

[tool.publish]
entry = "{package}.main:app"
host = "{package}.host:main"
assets = ["static/**/*"]
env = {{ DEMO_GREETING = "hello" }}
"""

HOST_MODULE = """\
import sys


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    print("hosted from " + argv[-1])
    return 0
"""


@pytest.fixture
def make_project(tmp_path):
    """Factory writing a small publishable project under ``tmp_path``."""

    def _make(dirname: str = "demo", name: str = "demo", package: str = "demo_app") -> Path:
        root = tmp_path / dirname
        pkg = root / package
        (pkg / "templates").mkdir(parents=True)
        (root / "static").mkdir()

        (root / "pyproject.toml").write_text(
            PYPROJECT.format(name=name, package=package), encoding="utf-8"
        )
        (pkg / "__init__.py").write_text('"""Demo package."""\n', encoding="utf-8")
        (pkg / "main.py").write_text(
            textwrap.dedent(
                """\
                def build():
                    assert True
                    return "demo-app"


                app = build()
                """
            ),
            encoding="utf-8",
        )
        (pkg / "host.py").write_text(HOST_MODULE, encoding="utf-8")
        (pkg / "templates" / "banner.txt").write_text("catalog\n", encoding="utf-8")
        (root / "static" / "index.html").write_text("<h1>catalog</h1>\n", encoding="utf-8")
        return root

    return _make
