"""Metadata deployment of the local source package.

The local `src/` directory is a Metadata API package (it holds package.xml
next to the component folders). It is zipped in memory, submitted as one
asynchronous deploy and polled until Salesforce reports a terminal state.
"""

from __future__ import annotations

import io
import logging
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol

from apexci.core.errors import DeployError
from apexci.core.runs import poll_until

logger = logging.getLogger(__name__)

TERMINAL_DEPLOY_STATES = frozenset(
    {"Succeeded", "SucceededPartial", "Failed", "Canceled"}
)


@dataclass(frozen=True)
class DeployOptions:
    """
    Metadata API deploy options.

    Attributes:
        rollback_on_error: Roll back every component if one fails.
        ignore_warnings: Let a deploy with warnings succeed.
        allow_missing_files: Allow files referenced by package.xml to be absent.
        auto_update_package: Add files missing from package.xml to it.
        check_only: Validate without saving the components.
    """

    rollback_on_error: bool = True
    ignore_warnings: bool = False
    allow_missing_files: bool = False
    auto_update_package: bool = False
    check_only: bool = False


@dataclass(frozen=True)
class DeployMessage:
    """A single component failure reported by the deploy."""

    component: str
    file: str | None = None
    problem: str | None = None


@dataclass(frozen=True)
class DeployStatus:
    """Deploy status as reported by one status check."""

    id: str
    status: str
    done: bool = False
    state_detail: str | None = None
    components_total: int = 0
    components_deployed: int = 0
    components_failed: int = 0
    errors: tuple[DeployMessage, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DeployResult:
    """Final outcome of a deploy."""

    id: str
    success: bool
    status: str
    done: bool
    components_total: int = 0
    components_deployed: int = 0
    components_failed: int = 0
    errors: tuple[DeployMessage, ...] = field(default_factory=tuple)


class DeployAdapter(Protocol):
    """Interface for the Metadata API deploy calls."""

    def deploy(self, package: bytes, options: DeployOptions) -> str:
        """Submit a zipped package and return the deploy id."""
        ...

    def check_deploy_status(self, deploy_id: str) -> DeployStatus:
        """Return the current status of a deploy."""
        ...


def zip_package(source_dir: Path) -> bytes:
    """
    Zip a metadata package directory in memory.

    Paths inside the archive are relative to `source_dir`, so package.xml
    sits at the archive root.

    Raises:
        DeployError: If the directory or its package.xml is missing.
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise DeployError(f"Source directory not found: {source_dir}")
    if not (source_dir / "package.xml").is_file():
        raise DeployError(f"No package.xml in {source_dir}")

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(source_dir.rglob("*")):
            if path.is_file():
                zf.write(path, path.relative_to(source_dir).as_posix())
    return buf.getvalue()


def _to_result(status: DeployStatus) -> DeployResult:
    return DeployResult(
        id=status.id,
        success=status.status == "Succeeded",
        status=status.status,
        done=status.done or status.status in TERMINAL_DEPLOY_STATES,
        components_total=status.components_total,
        components_deployed=status.components_deployed,
        components_failed=status.components_failed,
        errors=status.errors,
    )


def deploy_from_directory(
    adapter: DeployAdapter,
    source_dir: Path,
    options: DeployOptions | None = None,
    *,
    poll_interval: float = 5,
    timeout: float | None = None,
    on_poll: Callable[[DeployStatus], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DeployResult:
    """
    Deploy a local metadata package and wait for the outcome.

    Args:
        adapter: Metadata deploy adapter.
        source_dir: Directory holding package.xml and the components.
        options: Deploy options; defaults roll back on error.
        poll_interval: Seconds between status checks.
        timeout: Seconds before giving up, or None to wait indefinitely.
        on_poll: Called with every in-progress status.
        sleep: Sleep function (injectable for tests).

    Returns:
        The final DeployResult. A result with success=False is returned, not
        raised; the pipeline decides how to report it.
    """
    options = options or DeployOptions()
    package = zip_package(source_dir)
    logger.debug("Deploying %s (%d bytes zipped)", source_dir, len(package))

    deploy_id = adapter.deploy(package, options)
    logger.debug("Deploy submitted with id %s", deploy_id)

    final = poll_until(
        lambda: adapter.check_deploy_status(deploy_id),
        lambda st: st.done or st.status in TERMINAL_DEPLOY_STATES,
        poll_interval=poll_interval,
        timeout=timeout,
        on_poll=on_poll,
        sleep=sleep,
        what=f"deploy {deploy_id}",
    )
    return _to_result(final)
