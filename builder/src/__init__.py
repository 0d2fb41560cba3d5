"""Build-stage publish tool.

Resolves a project manifest, restores its dependencies, byte-compiles its
packages into a build-local cache, and assembles a self-contained output
directory that the runtime host can serve without any build step.
"""

from builder.src.errors import (
    AmbiguousTargetError,
    AssetsFileNotFoundError,
    BuildError,
    CompilationError,
    ManifestError,
    ManifestNotFoundError,
    RestoreError,
)

__all__ = [
    "AmbiguousTargetError",
    "AssetsFileNotFoundError",
    "BuildError",
    "CompilationError",
    "ManifestError",
    "ManifestNotFoundError",
    "RestoreError",
]
