"""
Unit tests for the publish pipeline.

Runs end to end on a throwaway project: restore, compile, assemble the
output directory, then execute the published entry artifact.
"""

import json
import os
import subprocess
import sys
import zipfile
from pathlib import Path

import pytest

from builder.src.config import Configuration
from builder.src.errors import AmbiguousTargetError, AssetsFileNotFoundError, CompilationError
from builder.src.publisher import Publisher

ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def publisher():
    return Publisher(strict_restore=False)


class TestPublish:
    """Tests for a successful publish."""

    def test_output_layout(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"

        result = publisher.publish(root, out)

        assert result.output_dir == out.resolve()
        assert result.artifact == out.resolve() / "demo.pyz"
        assert result.configuration is Configuration.RELEASE
        assert result.compiled == 3
        assert sorted(p.name for p in out.iterdir()) == [
            "demo.deps.json",
            "demo.pyz",
            "demo.runtimeconfig.json",
            "wwwroot",
        ]
        assert (out / "wwwroot" / "static" / "index.html").is_file()

    def test_build_cache_stays_out_of_output(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"

        publisher.publish(root, out)

        assert (root / "obj" / "project.assets.json").is_file()
        assert not (out / "obj").exists()

    def test_runtime_config_record(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"

        publisher.publish(root, out, configuration=Configuration.DEBUG)

        record = json.loads((out / "demo.runtimeconfig.json").read_text(encoding="utf-8"))
        assert record["entry"] == "demo_app.main:app"
        assert record["artifact"] == "demo.pyz"
        assert record["configuration"] == "Debug"
        assert record["env"] == {"DEMO_GREETING": "hello"}

    def test_deps_record(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"

        publisher.publish(root, out)

        record = json.loads((out / "demo.deps.json").read_text(encoding="utf-8"))
        assert record["name"] == "demo"
        assert [d["name"] for d in record["dependencies"]] == ["pydantic"]

    def test_no_restore_reuses_record(self, publisher, make_project, tmp_path):
        root = make_project()
        publisher.restore(root)

        result = publisher.publish(root, tmp_path / "out", no_restore=True)

        assert result.artifact.is_file()

    def test_republish_reuses_modules(self, publisher, make_project, tmp_path):
        root = make_project()
        publisher.publish(root, tmp_path / "out")

        second = publisher.publish(root, tmp_path / "out")

        assert second.compiled == 0
        assert second.reused == 3

    def test_published_artifact_runs(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"
        publisher.publish(root, out)

        completed = subprocess.run(
            [sys.executable, str(out.resolve() / "demo.pyz")],
            capture_output=True,
            text=True,
            timeout=60,
            cwd=tmp_path,
        )

        assert completed.returncode == 0, completed.stderr
        assert completed.stdout.strip() == f"hosted from {out.resolve()}"

    def test_namespace_package_listed_as_directory(self, publisher, make_project, tmp_path):
        root = make_project()
        plugins = root / "demo_app" / "plugins"
        plugins.mkdir()
        (plugins / "greeting.py").write_text("TEXT = 'hi'\n", encoding="utf-8")
        (root / "demo_app" / "host.py").write_text(
            "from demo_app.plugins.greeting import TEXT\n\n\n"
            "def main(argv=None):\n"
            "    print(TEXT)\n"
            "    return 0\n",
            encoding="utf-8",
        )
        out = tmp_path / "out"
        publisher.publish(root, out)

        with zipfile.ZipFile(out / "demo.pyz") as zf:
            names = zf.namelist()
        completed = subprocess.run(
            [sys.executable, str(out.resolve() / "demo.pyz")],
            capture_output=True,
            text=True,
            timeout=60,
            cwd=tmp_path,
        )

        assert "demo_app/" in names
        assert "demo_app/plugins/" in names
        assert completed.returncode == 0, completed.stderr
        assert completed.stdout.strip() == "hi"

    def test_catalog_artifact_imports_without_sources(self, tmp_path):
        out = tmp_path / "out"
        result = Publisher(cache_dir=tmp_path / "cache", strict_restore=False).publish(
            ROOT / "pyproject.toml", out
        )
        site_dirs = [p for p in sys.path if p.endswith(("site-packages", "dist-packages"))]
        script = (
            "import sys\n"
            f"sys.path[:0] = {[str(result.artifact)] + site_dirs!r}\n"
            "from api.src.main import app\n"
            "import api.src.hosting, api.src.routers.products, shared.logging\n"
            "print(type(app).__name__)\n"
        )
        env = {k: v for k, v in os.environ.items() if not k.startswith("PYTHON")}

        completed = subprocess.run(
            [sys.executable, "-S", "-c", script],
            capture_output=True,
            text=True,
            timeout=120,
            cwd=tmp_path,
            env=env,
        )

        with zipfile.ZipFile(result.artifact) as zf:
            names = zf.namelist()
        assert "__main__.py" in names
        assert "api/src/routers/" in names
        assert completed.returncode == 0, completed.stderr
        assert completed.stdout.strip() == "FastAPI"

    def test_republish_drops_deleted_data_file(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"
        publisher.publish(root, out)
        (root / "demo_app" / "templates" / "banner.txt").unlink()

        publisher.publish(root, out)

        with zipfile.ZipFile(out / "demo.pyz") as zf:
            assert "demo_app/templates/banner.txt" not in zf.namelist()

    def test_republish_replaces_output(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"
        (root / "static" / "old.css").write_text("body {}\n", encoding="utf-8")
        publisher.publish(root, out)
        (root / "static" / "old.css").unlink()
        (out / "leftover.txt").write_text("x", encoding="utf-8")

        result = publisher.publish(root, out)

        assert not (out / "wwwroot" / "static" / "old.css").exists()
        assert not (out / "leftover.txt").exists()
        assert (out / "wwwroot" / "static" / "index.html").is_file()
        assert all(path.is_file() for path in result.files)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["demo", "out"]


class TestPublishFailures:
    """Failures must leave no output directory behind."""

    def test_ambiguous_selector(self, publisher, make_project, tmp_path):
        make_project("api")
        make_project("worker", name="worker", package="worker_app")
        out = tmp_path / "out"

        with pytest.raises(AmbiguousTargetError):
            publisher.publish(tmp_path, out)

        assert not out.exists()

    def test_no_restore_without_record(self, publisher, make_project, tmp_path):
        root = make_project()
        out = tmp_path / "out"

        with pytest.raises(AssetsFileNotFoundError):
            publisher.publish(root, out, no_restore=True)

        assert not out.exists()

    def test_compilation_error(self, publisher, make_project, tmp_path):
        root = make_project()
        (root / "demo_app" / "broken.py").write_text("def broken(:\n", encoding="utf-8")
        out = tmp_path / "out"

        with pytest.raises(CompilationError):
            publisher.publish(root, out)

        assert not out.exists()

    def test_custom_cache_dir(self, make_project, tmp_path):
        root = make_project()
        cache = tmp_path / "cache"

        Publisher(cache_dir=cache).publish(root, tmp_path / "out")

        assert (cache / "Release" / "stage").is_dir()
        assert not (root / "obj").exists()
