"""
Runtime host for published catalog artifacts.

Starts the API inside a minimal runtime image:
- Reads the bind URL list from ``CATALOG_API_URLS`` (first entry wins)
- Warns when the listener would bind loopback only, which container port
  publishing cannot reach
- Fails fast with a ``PortInUseError`` when the port is already held
- Loads the ASGI app from a published artifact directory (``*.pyz`` plus
  ``*.runtimeconfig.json``) without any build step, then serves it with
  uvicorn
"""

import argparse
import errno
import importlib
import ipaddress
import json
import os
import socket
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import structlog
import uvicorn
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from pydantic import BaseModel, Field, ValidationError

from api.src.config import clear_settings_cache, get_settings
from shared.logging.structured_logger import configure_logging

logger = structlog.get_logger(__name__)

WILDCARD_HOSTS = {"*", "+", "0.0.0.0"}
DEFAULT_PORTS = {"http": 80}


# ============================================================================
# Errors
# ============================================================================


class HostingError(Exception):
    """Base class for runtime host start-up failures."""

    error_code = "HOST_000"


class InvalidBindUrlError(HostingError):
    """The bind URL cannot be parsed into scheme, host, and port."""

    error_code = "HOST_001"


class PortInUseError(HostingError):
    """Another process already holds the bind port."""

    error_code = "HOST_002"

    def __init__(self, bind: "BindAddress"):
        self.bind = bind
        host_port = bind.port + 1 if bind.port < 65535 else bind.port - 1
        self.remedies = [
            f"stop the process currently listening on port {bind.port}",
            f"or publish a different host port, e.g. -p {host_port}:{bind.port}",
        ]
        super().__init__(
            f"Port {bind.port} is already in use on {bind.host}; "
            + "; ".join(self.remedies)
        )


class RuntimeConfigError(HostingError):
    """The published artifact directory is missing or inconsistent."""

    error_code = "HOST_003"


# ============================================================================
# Bind addresses
# ============================================================================


@dataclass(frozen=True)
class BindAddress:
    """Listener address parsed from a bind URL."""

    scheme: str
    host: str
    port: int

    @property
    def is_wildcard(self) -> bool:
        return self.host in ("0.0.0.0", "::")

    @property
    def is_loopback(self) -> bool:
        if self.host == "localhost":
            return True
        try:
            return ipaddress.ip_address(self.host).is_loopback
        except ValueError:
            return False

    @property
    def family(self) -> int:
        return socket.AF_INET6 if ":" in self.host else socket.AF_INET

    def __str__(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}"


def parse_bind_url(url: str) -> BindAddress:
    """
    Parse a bind URL such as ``http://0.0.0.0:5035`` or ``http://+:5035``.

    ``*`` and ``+`` mean the wildcard address. A missing port falls back to
    the scheme default.

    Raises:
        InvalidBindUrlError: If the URL is malformed or not plain http
    """
    url = url.strip()
    parts = urlsplit(url)

    if parts.scheme not in DEFAULT_PORTS:
        raise InvalidBindUrlError(
            f"Unsupported bind URL {url!r}: expected http://<host>:<port>"
        )

    host = parts.hostname
    if not host:
        raise InvalidBindUrlError(f"Bind URL {url!r} has no host")

    try:
        port = parts.port
    except ValueError as e:
        raise InvalidBindUrlError(f"Bind URL {url!r} has an invalid port: {e}") from e

    if parts.path not in ("", "/"):
        raise InvalidBindUrlError(f"Bind URL {url!r} must not carry a path")

    if host in WILDCARD_HOSTS:
        host = "0.0.0.0"

    return BindAddress(
        scheme=parts.scheme,
        host=host,
        port=port if port is not None else DEFAULT_PORTS[parts.scheme],
    )


def select_bind_address(urls: str) -> BindAddress:
    """
    Pick the listener address from a ``;``-separated URL list.

    Only the first URL is served; the rest are logged and ignored.
    """
    candidates = [u.strip() for u in urls.split(";") if u.strip()]
    if not candidates:
        raise InvalidBindUrlError("No bind URL configured")

    if len(candidates) > 1:
        logger.warning("extra_bind_urls_ignored", ignored=candidates[1:])

    bind = parse_bind_url(candidates[0])

    if bind.is_loopback:
        logger.warning(
            "loopback_bind_unreachable_from_container",
            bind=str(bind),
            hint="bind http://0.0.0.0:<port> so published container ports can reach the listener"
        )

    return bind


def ensure_port_available(bind: BindAddress) -> None:
    """
    Check that the bind port can be taken right now.

    Raises:
        PortInUseError: If another socket already listens on the port
        HostingError: If the address cannot be bound for any other reason
    """
    with socket.socket(bind.family, socket.SOCK_STREAM) as probe:
        probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            probe.bind((bind.host, bind.port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                raise PortInUseError(bind) from e
            raise HostingError(f"Cannot bind {bind}: {e.strerror or e}") from e


# ============================================================================
# Published artifacts
# ============================================================================


class RuntimeConfig(BaseModel):
    """Contents of ``<name>.runtimeconfig.json`` written by the publish step."""

    name: str
    version: str
    entry: str = Field(..., pattern=r"^[\w.]+:[\w.]+$")
    configuration: str
    requires_python: Optional[str] = None
    artifact: str
    env: Dict[str, str] = Field(default_factory=dict)


def read_runtime_config(artifact_dir: Path) -> RuntimeConfig:
    """
    Read the single runtime-configuration record of a published directory.

    Raises:
        RuntimeConfigError: If there is not exactly one record, or it is invalid
    """
    if not artifact_dir.is_dir():
        raise RuntimeConfigError(f"Artifact directory {artifact_dir} does not exist")

    records = sorted(artifact_dir.glob("*.runtimeconfig.json"))
    if len(records) != 1:
        raise RuntimeConfigError(
            f"Expected exactly one *.runtimeconfig.json in {artifact_dir}, found {len(records)}"
        )

    try:
        return RuntimeConfig.model_validate(json.loads(records[0].read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise RuntimeConfigError(f"Invalid runtime config {records[0].name}: {e}") from e


def check_python_version(config: RuntimeConfig) -> None:
    """Fail when the running interpreter does not satisfy ``requires_python``."""
    if not config.requires_python:
        return

    try:
        spec = SpecifierSet(config.requires_python)
    except InvalidSpecifier as e:
        raise RuntimeConfigError(f"Invalid requires_python {config.requires_python!r}") from e

    current = ".".join(str(part) for part in sys.version_info[:3])
    if not spec.contains(current, prereleases=True):
        raise RuntimeConfigError(
            f"{config.name} requires Python {config.requires_python}, running {current}"
        )


def import_entry(entry: str) -> Any:
    """Import ``module:attr`` and return the attribute."""
    module_name, _, attr_path = entry.partition(":")
    target: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        target = getattr(target, attr)
    return target


def load_published_app(artifact_dir: Path) -> Tuple[Any, RuntimeConfig]:
    """
    Load the ASGI app from a published artifact directory.

    Applies the record's default environment (without overriding values
    already set), puts the entry artifact on ``sys.path``, and imports the
    entry point.

    Returns:
        Tuple of (ASGI app, runtime config)
    """
    config = read_runtime_config(artifact_dir)
    check_python_version(config)

    archive = artifact_dir / config.artifact
    if not archive.is_file():
        raise RuntimeConfigError(f"Entry artifact {archive} is missing")

    for key, value in config.env.items():
        os.environ.setdefault(key, value)
    clear_settings_cache()

    if str(archive) not in sys.path:
        sys.path.insert(0, str(archive))

    try:
        app = import_entry(config.entry)
    except (ImportError, AttributeError) as e:
        raise RuntimeConfigError(f"Cannot import entry {config.entry}: {e}") from e

    logger.info(
        "published_app_loaded",
        name=config.name,
        version=config.version,
        configuration=config.configuration,
        artifact=str(archive)
    )
    return app, config


def serve(app: Any, bind: BindAddress, log_level: str = "info") -> None:
    """Run the app under uvicorn on the given address."""
    logger.info("listener_starting", bind=str(bind), wildcard=bind.is_wildcard)
    uvicorn.run(
        app,
        host=bind.host,
        port=bind.port,
        log_level=log_level,
        access_log=False,
    )


# ============================================================================
# Entry point
# ============================================================================


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="catalog-host",
        description="Serve the product catalog API from published artifacts"
    )
    parser.add_argument(
        "--artifacts",
        type=Path,
        default=None,
        help="Published output directory; omit to serve the source tree"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Start the runtime host.

    Returns:
        Process exit code (0 after a clean shutdown, 1 on start-up failure)
    """
    args = parse_args(argv)

    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name="catalog-api"
    )

    try:
        if args.artifacts is not None:
            app, _ = load_published_app(args.artifacts.resolve())
            # the record's env defaults may change the bind URLs
            settings = get_settings()
        else:
            app = import_entry("api.src.main:app")

        bind = select_bind_address(settings.urls)
        ensure_port_available(bind)

    except PortInUseError as e:
        logger.error(
            "port_in_use",
            error_code=e.error_code,
            port=e.bind.port,
            remedies=e.remedies
        )
        return 1
    except HostingError as e:
        logger.error("host_start_failed", error_code=e.error_code, error=str(e))
        return 1

    serve(app, bind, log_level=settings.log_level.lower())
    return 0
