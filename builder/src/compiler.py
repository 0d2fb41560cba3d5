"""
Incremental byte-compilation into the build-local cache.

Compiled modules are written to ``<cache>/<Configuration>/stage/`` as
sourceless ``.pyc`` files (importable from a zip archive), together with
any non-Python package data. ``build.state.json`` records the source
hash of every staged module and the list of staged data files, stamped
with the bytecode magic number, so unchanged modules are reused on the
next run with the same interpreter.
"""

import hashlib
import importlib.util
import json
import py_compile
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List

import structlog

from builder.src.config import Configuration
from builder.src.errors import CompilationError
from builder.src.manifest import Manifest

logger = structlog.get_logger(__name__)

STATE_FILE = "build.state.json"
SKIP_DIRS = {"__pycache__"}
SKIP_SUFFIXES = {".pyc", ".pyo"}
MAGIC = importlib.util.MAGIC_NUMBER.hex()


@dataclass
class CompileResult:
    """Outcome of a compile pass."""

    stage_dir: Path
    compiled: List[str] = field(default_factory=list)
    reused: List[str] = field(default_factory=list)
    data_files: List[str] = field(default_factory=list)

    @property
    def module_count(self) -> int:
        return len(self.compiled) + len(self.reused)


def iter_package_files(manifest: Manifest) -> Iterator[Path]:
    """Yield every file of the manifest's packages, relative to the project dir."""
    root = manifest.project_dir
    for package in manifest.packages:
        for path in sorted((root / package).rglob("*")):
            rel = path.relative_to(root)
            if not path.is_file() or SKIP_DIRS.intersection(rel.parts):
                continue
            if path.suffix in SKIP_SUFFIXES:
                continue
            yield rel


def _digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _load_state(state_path: Path) -> Dict[str, Any]:
    if not state_path.is_file():
        return {}
    try:
        state = json.loads(state_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("build_state_corrupt", state=str(state_path))
        return {}
    if not isinstance(state, dict):
        logger.warning("build_state_corrupt", state=str(state_path))
        return {}
    return state


def compile_sources(
    manifest: Manifest,
    cache_dir: Path,
    configuration: Configuration,
) -> CompileResult:
    """
    Byte-compile the manifest's packages into the cache.

    Release builds compile with optimization level 2; Debug builds compile
    without optimization and also stage the ``.py`` sources. A staged
    ``.pyc`` is only reused when its source hash is unchanged and it was
    written by an interpreter with the same bytecode magic number.
    Modules and data files that left the project are removed from the stage.

    Raises:
        CompilationError: On the first module that fails to compile
    """
    config_dir = cache_dir / configuration.value
    stage_dir = config_dir / "stage"
    state_path = config_dir / STATE_FILE
    previous = _load_state(state_path)
    previous_modules: Dict[str, str] = previous.get("modules", {})
    previous_data: List[str] = previous.get("data_files", [])
    current: Dict[str, str] = {}
    result = CompileResult(stage_dir=stage_dir)

    if previous.get("magic") != MAGIC:
        if previous_modules:
            logger.info(
                "interpreter_changed",
                previous=previous.get("magic"),
                current=MAGIC,
            )
        previous_modules = {}

    stage_dir.mkdir(parents=True, exist_ok=True)

    for rel in iter_package_files(manifest):
        source = manifest.project_dir / rel
        key = rel.as_posix()

        if source.suffix != ".py":
            target = stage_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            result.data_files.append(key)
            continue

        digest = _digest(source)
        compiled = stage_dir / rel.with_suffix(".pyc")
        current[key] = digest

        if previous_modules.get(key) == digest and compiled.is_file():
            result.reused.append(key)
        else:
            compiled.parent.mkdir(parents=True, exist_ok=True)
            try:
                py_compile.compile(
                    str(source),
                    cfile=str(compiled),
                    dfile=key,
                    doraise=True,
                    optimize=configuration.optimize,
                    invalidation_mode=py_compile.PycInvalidationMode.UNCHECKED_HASH,
                )
            except py_compile.PyCompileError as e:
                raise CompilationError(rel, e.msg) from e
            result.compiled.append(key)

        if configuration.include_sources:
            target = stage_dir / rel
            shutil.copy2(source, target)

    for key in set(previous.get("modules", {})) - set(current):
        stale = stage_dir / Path(key).with_suffix(".pyc")
        stale.unlink(missing_ok=True)
        (stage_dir / key).unlink(missing_ok=True)
        logger.debug("stale_module_removed", module=key)

    for key in set(previous_data) - set(result.data_files):
        (stage_dir / key).unlink(missing_ok=True)
        logger.debug("stale_data_file_removed", path=key)

    state = {
        "magic": MAGIC,
        "modules": current,
        "data_files": sorted(result.data_files),
    }
    state_path.write_text(json.dumps(state, indent=2, sort_keys=True), encoding="utf-8")

    logger.info(
        "compile_completed",
        configuration=configuration.value,
        compiled=len(result.compiled),
        reused=len(result.reused),
        data_files=len(result.data_files)
    )
    return result
