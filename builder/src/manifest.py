"""
Project manifest resolution and loading.

A manifest is a ``pyproject.toml`` with a ``[project]`` table and a
``[tool.publish]`` table::

    [tool.publish]
    entry = "api.src.main:app"        # ASGI app imported by the runtime host
    host = "api.src.hosting:main"     # optional; makes the .pyz directly runnable
    packages = ["api", "shared"]      # defaults to the entry's top-level package
    assets = ["static/**/*"]          # copied into wwwroot/
    env = { CATALOG_API_URLS = "http://0.0.0.0:5035" }
"""

import glob
import hashlib
import tomllib
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from builder.src.errors import AmbiguousTargetError, ManifestError, ManifestNotFoundError

logger = structlog.get_logger(__name__)

MANIFEST_NAME = "pyproject.toml"
GLOB_CHARS = set("*?[")


def _is_pattern(selector: str) -> bool:
    return any(ch in selector for ch in GLOB_CHARS)


def resolve_manifest(selector: Union[str, Path, None] = None, cwd: Optional[Path] = None) -> Path:
    """
    Resolve a selector to exactly one manifest file.

    - A file path selects that file.
    - A directory selects its own ``pyproject.toml``; when it has none, its
      immediate subdirectories are searched instead.
    - A glob pattern selects every file it matches.

    Raises:
        ManifestNotFoundError: If nothing matches
        AmbiguousTargetError: If more than one manifest matches
    """
    cwd = (cwd or Path.cwd()).resolve()
    text = str(selector) if selector is not None else "."

    if _is_pattern(text):
        pattern = text if Path(text).is_absolute() else str(cwd / text)
        candidates = [Path(p) for p in glob.glob(pattern, recursive=True) if Path(p).is_file()]
    else:
        target = Path(text)
        target = target if target.is_absolute() else cwd / target
        if target.is_file():
            candidates = [target]
        elif target.is_dir():
            own = target / MANIFEST_NAME
            if own.is_file():
                candidates = [own]
            else:
                candidates = [
                    child / MANIFEST_NAME
                    for child in target.iterdir()
                    if child.is_dir()
                    and not child.name.startswith(".")
                    and (child / MANIFEST_NAME).is_file()
                ]
        else:
            candidates = []

    candidates = sorted({c.resolve() for c in candidates})

    if not candidates:
        raise ManifestNotFoundError(text)
    if len(candidates) > 1:
        logger.error("manifest_ambiguous", selector=text, candidates=[str(c) for c in candidates])
        raise AmbiguousTargetError(text, candidates)

    logger.info("manifest_resolved", selector=text, manifest=str(candidates[0]))
    return candidates[0]


class Manifest(BaseModel):
    """Validated view of a project manifest."""

    path: Path
    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    requires_python: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    entry: str = Field(..., pattern=r"^[\w.]+:[\w.]+$")
    host: Optional[str] = Field(None, pattern=r"^[\w.]+:[\w.]+$")
    packages: List[str] = Field(default_factory=list)
    assets: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    digest: str

    @field_validator("packages")
    @classmethod
    def validate_packages(cls, v: List[str]) -> List[str]:
        """Package entries are directory names relative to the manifest."""
        for package in v:
            if not package or package.startswith(("/", ".")):
                raise ValueError(f"invalid package directory {package!r}")
        return v

    @property
    def project_dir(self) -> Path:
        return self.path.parent

    @property
    def artifact_name(self) -> str:
        return f"{self.name}.pyz"


def load_manifest(path: Path) -> Manifest:
    """
    Load and validate a manifest file.

    Raises:
        ManifestError: If the file is unreadable or lacks required fields
    """
    try:
        raw = path.read_bytes()
        data = tomllib.loads(raw.decode("utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    project = data.get("project")
    if not isinstance(project, dict):
        raise ManifestError(f"{path} has no [project] table")

    publish = data.get("tool", {}).get("publish")
    if not isinstance(publish, dict):
        raise ManifestError(f"{path} has no [tool.publish] table")

    if "version" in project.get("dynamic", []):
        raise ManifestError(f"{path}: dynamic versions are not supported; set project.version")

    entry = publish.get("entry")
    packages = publish.get("packages")
    if packages is None and isinstance(entry, str):
        packages = [entry.split(":", 1)[0].split(".", 1)[0]]

    try:
        manifest = Manifest(
            path=path,
            name=project.get("name"),
            version=project.get("version"),
            requires_python=project.get("requires-python"),
            dependencies=project.get("dependencies", []),
            entry=entry,
            host=publish.get("host"),
            packages=packages or [],
            assets=publish.get("assets", []),
            env={str(k): str(v) for k, v in publish.get("env", {}).items()},
            digest=hashlib.sha256(raw).hexdigest(),
        )
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest {path}: {e}") from e

    missing = [p for p in manifest.packages if not (manifest.project_dir / p).is_dir()]
    if missing:
        raise ManifestError(f"{path}: package directories not found: {', '.join(missing)}")

    logger.debug(
        "manifest_loaded",
        name=manifest.name,
        version=manifest.version,
        packages=manifest.packages,
        dependencies=len(manifest.dependencies)
    )
    return manifest
