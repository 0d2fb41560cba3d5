"""
Dependency restore.

Resolves every requirement declared in the manifest against the
distributions installed in the build environment and records the outcome
in ``<cache>/project.assets.json``. Publishing reads this record to write
the dependency-resolution file; ``--no-restore`` reuses it as-is.
"""

import json
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path
from typing import List, Optional

import structlog
from packaging.requirements import InvalidRequirement, Requirement
from pydantic import BaseModel, Field, ValidationError

from builder.src.errors import AssetsFileNotFoundError, ManifestError, RestoreError
from builder.src.manifest import Manifest

logger = structlog.get_logger(__name__)

ASSETS_FILE = "project.assets.json"


class ResolvedDependency(BaseModel):
    """One declared requirement and what it resolved to."""

    name: str
    specifier: str = ""
    marker: Optional[str] = None
    resolved: Optional[str] = None
    satisfied: bool = False


class AssetsRecord(BaseModel):
    """Contents of ``project.assets.json``."""

    project: str
    version: str
    manifest_digest: str
    restored_at: datetime
    dependencies: List[ResolvedDependency] = Field(default_factory=list)

    @property
    def unresolved(self) -> List[ResolvedDependency]:
        return [d for d in self.dependencies if not d.satisfied]


def _resolve(requirement: Requirement) -> ResolvedDependency:
    try:
        installed: Optional[str] = metadata.version(requirement.name)
    except metadata.PackageNotFoundError:
        installed = None

    satisfied = installed is not None and (
        not requirement.specifier or requirement.specifier.contains(installed, prereleases=True)
    )
    return ResolvedDependency(
        name=requirement.name,
        specifier=str(requirement.specifier),
        marker=str(requirement.marker) if requirement.marker else None,
        resolved=installed,
        satisfied=satisfied,
    )


def restore(manifest: Manifest, cache_dir: Path, strict: bool = False) -> AssetsRecord:
    """
    Resolve the manifest's dependencies and write the assets record.

    Requirements whose environment marker does not apply are skipped.

    Raises:
        ManifestError: If a requirement string cannot be parsed
        RestoreError: In strict mode, if any requirement is unresolved
    """
    dependencies: List[ResolvedDependency] = []

    for line in manifest.dependencies:
        try:
            requirement = Requirement(line)
        except InvalidRequirement as e:
            raise ManifestError(f"Invalid dependency {line!r}: {e}") from e

        if requirement.marker is not None and not requirement.marker.evaluate():
            logger.debug("dependency_skipped_by_marker", dependency=line)
            continue

        resolved = _resolve(requirement)
        if not resolved.satisfied:
            logger.warning(
                "dependency_unresolved",
                dependency=resolved.name,
                specifier=resolved.specifier,
                installed=resolved.resolved
            )
        dependencies.append(resolved)

    record = AssetsRecord(
        project=manifest.name,
        version=manifest.version,
        manifest_digest=manifest.digest,
        restored_at=datetime.now(timezone.utc),
        dependencies=dependencies,
    )

    if strict and record.unresolved:
        names = ", ".join(d.name for d in record.unresolved)
        raise RestoreError(f"Unresolved dependencies for {manifest.name}: {names}")

    cache_dir.mkdir(parents=True, exist_ok=True)
    (cache_dir / ASSETS_FILE).write_text(record.model_dump_json(indent=2), encoding="utf-8")

    logger.info(
        "restore_completed",
        project=manifest.name,
        dependencies=len(dependencies),
        unresolved=len(record.unresolved)
    )
    return record


def load_assets(manifest: Manifest, cache_dir: Path) -> AssetsRecord:
    """
    Load a previously written assets record.

    Raises:
        AssetsFileNotFoundError: If the record is missing
        RestoreError: If it is unreadable or was restored for a different manifest
    """
    path = cache_dir / ASSETS_FILE
    if not path.is_file():
        raise AssetsFileNotFoundError(path)

    try:
        record = AssetsRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise RestoreError(f"Corrupt assets file {path}: {e}") from e

    if record.manifest_digest != manifest.digest:
        raise RestoreError(
            f"Assets file {path} is out of date for {manifest.path.name}; run restore again"
        )

    logger.info("restore_skipped", project=manifest.name, assets=str(path))
    return record
