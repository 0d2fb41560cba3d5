"""
Publish pipeline: manifest -> restore -> compile -> output directory.

The output directory holds everything the runtime stage needs and nothing
from the build cache:

- ``<name>.pyz``: zip archive of the compiled packages (the entry artifact)
- ``<name>.deps.json``: dependency-resolution record
- ``<name>.runtimeconfig.json``: runtime-configuration record
- ``wwwroot/``: static assets matched by the manifest's asset patterns

The output is assembled in a sibling temporary directory once resolution,
restore, and compilation have succeeded, and then replaces any previous
output. A failed build leaves no output behind, and files from an earlier
publish never linger.
"""

import json
import shutil
import tempfile
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Union

from builder.src.compiler import CompileResult, compile_sources
from builder.src.config import Configuration, get_build_settings
from builder.src.manifest import Manifest, load_manifest, resolve_manifest
from builder.src.restore import AssetsRecord, load_assets, restore
from shared.logging.structured_logger import LoggerMixin
from shared.metrics.prometheus_metrics import get_publish_metrics

ASSETS_DIR = "wwwroot"

MAIN_TEMPLATE = '''\
import os
import sys

from {module} import {attr} as _host

sys.exit(_host(["--artifacts", os.path.dirname(os.path.abspath(sys.argv[0]))]))
'''


@dataclass
class PublishResult:
    """Summary of a successful publish."""

    manifest: Path
    output_dir: Path
    artifact: Path
    configuration: Configuration
    compiled: int
    reused: int
    files: List[Path] = field(default_factory=list)


class Publisher(LoggerMixin):
    """Runs the publish pipeline for one manifest."""

    def __init__(self, cache_dir: Optional[Path] = None, strict_restore: Optional[bool] = None):
        """
        Args:
            cache_dir: Build cache location; defaults to ``<project>/obj``
            strict_restore: Fail on unresolved dependencies; defaults to settings
        """
        settings = get_build_settings()
        self.cache_dir = cache_dir
        self.cache_dir_name = settings.cache_dir_name
        self.strict_restore = settings.strict_restore if strict_restore is None else strict_restore
        self.metrics = get_publish_metrics()

    def cache_for(self, manifest: Manifest) -> Path:
        return self.cache_dir or (manifest.project_dir / self.cache_dir_name)

    def restore(self, selector: Union[str, Path, None], cwd: Optional[Path] = None) -> AssetsRecord:
        """Resolve the manifest and restore its dependencies into the cache."""
        manifest = load_manifest(resolve_manifest(selector, cwd))
        return restore(manifest, self.cache_for(manifest), strict=self.strict_restore)

    def publish(
        self,
        selector: Union[str, Path, None],
        output: Path,
        configuration: Configuration = Configuration.RELEASE,
        no_restore: bool = False,
        cwd: Optional[Path] = None,
    ) -> PublishResult:
        """
        Publish the project selected by ``selector`` into ``output``.

        Raises:
            BuildError: Any resolution, restore, or compilation failure;
                nothing is written to ``output`` in that case
        """
        started = time.monotonic()
        manifest = load_manifest(resolve_manifest(selector, cwd))
        cache_dir = self.cache_for(manifest)

        self.logger.info(
            "publish_started",
            project=manifest.name,
            version=manifest.version,
            configuration=configuration.value,
            output=str(output)
        )

        if no_restore:
            assets = load_assets(manifest, cache_dir)
        else:
            assets = restore(manifest, cache_dir, strict=self.strict_restore)

        compiled = compile_sources(manifest, cache_dir, configuration)
        self.metrics.modules_compiled.labels(
            configuration=configuration.value, outcome="compiled"
        ).inc(len(compiled.compiled))
        self.metrics.modules_compiled.labels(
            configuration=configuration.value, outcome="reused"
        ).inc(len(compiled.reused))

        output = output.resolve()
        output.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{output.name}.", dir=output.parent))
        staging.chmod(0o755)

        try:
            written = [
                self._write_archive(manifest, compiled, staging),
                self._write_deps(manifest, assets, configuration, staging),
                self._write_runtime_config(manifest, configuration, staging),
            ]
            written.extend(self._copy_assets(manifest, staging))
            self._replace_output(staging, output)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        files = [output / path.relative_to(staging) for path in written]

        duration = time.monotonic() - started
        self.metrics.publish_duration.labels(configuration=configuration.value).observe(duration)
        self.logger.info(
            "publish_completed",
            project=manifest.name,
            output=str(output),
            files=len(files),
            duration=f"{duration:.3f}s"
        )

        return PublishResult(
            manifest=manifest.path,
            output_dir=output,
            artifact=files[0],
            configuration=configuration,
            compiled=len(compiled.compiled),
            reused=len(compiled.reused),
            files=files,
        )

    def _write_archive(self, manifest: Manifest, compiled: CompileResult, output: Path) -> Path:
        archive = output / manifest.artifact_name
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            staged = sorted(p for p in compiled.stage_dir.rglob("*") if p.is_file())
            # zipimport only finds namespace packages through directory entries
            directories: Set[str] = set()
            for path in staged:
                for parent in path.relative_to(compiled.stage_dir).parents:
                    if parent.parts:
                        directories.add(parent.as_posix() + "/")
            for name in sorted(directories):
                zf.writestr(name, b"")
            for path in staged:
                zf.write(path, path.relative_to(compiled.stage_dir).as_posix())
            if manifest.host:
                module, _, attr = manifest.host.partition(":")
                zf.writestr("__main__.py", MAIN_TEMPLATE.format(module=module, attr=attr))
        self.logger.debug("archive_written", archive=str(archive), runnable=bool(manifest.host))
        return archive

    def _replace_output(self, staging: Path, output: Path) -> None:
        if output.exists():
            previous = output.with_name(f".{output.name}.previous")
            shutil.rmtree(previous, ignore_errors=True)
            output.rename(previous)
            staging.rename(output)
            shutil.rmtree(previous)
            self.logger.debug("previous_output_replaced", output=str(output))
        else:
            staging.rename(output)

    def _write_deps(
        self,
        manifest: Manifest,
        assets: AssetsRecord,
        configuration: Configuration,
        output: Path,
    ) -> Path:
        path = output / f"{manifest.name}.deps.json"
        record = {
            "name": manifest.name,
            "version": manifest.version,
            "configuration": configuration.value,
            "restored_at": assets.restored_at.isoformat(),
            "dependencies": [d.model_dump() for d in assets.dependencies],
        }
        path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        return path

    def _write_runtime_config(
        self,
        manifest: Manifest,
        configuration: Configuration,
        output: Path,
    ) -> Path:
        path = output / f"{manifest.name}.runtimeconfig.json"
        record = {
            "name": manifest.name,
            "version": manifest.version,
            "entry": manifest.entry,
            "configuration": configuration.value,
            "requires_python": manifest.requires_python,
            "artifact": manifest.artifact_name,
            "env": manifest.env,
        }
        path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        return path

    def _copy_assets(self, manifest: Manifest, output: Path) -> List[Path]:
        copied: List[Path] = []
        root = manifest.project_dir
        for pattern in manifest.assets:
            matches = sorted(p for p in root.glob(pattern) if p.is_file())
            if not matches:
                self.logger.warning("asset_pattern_unmatched", pattern=pattern)
            for source in matches:
                target = output / ASSETS_DIR / source.relative_to(root)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(source.read_bytes())
                copied.append(target)
        return copied
