"""
Build tool errors.

Every error carries a stable ``error_code`` printed by the CLI, so build
logs can be grepped the same way across projects.
"""

from pathlib import Path
from typing import List, Sequence


class BuildError(Exception):
    """Base class for publish pipeline failures."""

    error_code = "BUILD000"


class ManifestNotFoundError(BuildError):
    """No manifest matched the selector."""

    error_code = "BUILD001"

    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(f"No project manifest matches {selector!r}")


class AmbiguousTargetError(BuildError):
    """More than one manifest matched the selector."""

    error_code = "BUILD002"

    def __init__(self, selector: str, candidates: Sequence[Path]):
        self.selector = selector
        self.candidates: List[Path] = sorted(candidates)
        listed = ", ".join(str(c) for c in self.candidates)
        super().__init__(
            f"Selector {selector!r} matches {len(self.candidates)} manifests ({listed}); "
            "pass the path of exactly one manifest instead"
        )


class ManifestError(BuildError):
    """The manifest is missing required fields or references missing sources."""

    error_code = "BUILD003"


class RestoreError(BuildError):
    """Declared dependencies could not be resolved."""

    error_code = "BUILD004"


class AssetsFileNotFoundError(BuildError):
    """``--no-restore`` was given but no usable dependency record exists."""

    error_code = "BUILD005"

    def __init__(self, assets_path: Path):
        self.assets_path = assets_path
        super().__init__(
            f"Assets file {assets_path} not found; run restore first or drop --no-restore"
        )


class CompilationError(BuildError):
    """A source module failed to byte-compile."""

    error_code = "BUILD006"

    def __init__(self, source: Path, detail: str):
        self.source = source
        super().__init__(f"Failed to compile {source}: {detail}")
