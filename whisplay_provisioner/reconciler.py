from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .errors import ApplyError, ConvergenceFailure, ProvisionError, ReadinessTimeout, ResourceDeferred
from .readiness import ReadinessCheck, await_ready

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    PACKAGE_SET = "package-set"
    FILE_OVERLAY = "file-overlay"
    SYMLINK = "symlink"
    LINE_PATCH = "line-patch"
    TEMPLATED_UNIT = "templated-unit"
    REMOTE_DOWNLOAD = "remote-download"
    REPOSITORY = "repository"
    COMMAND = "command"


@dataclass(frozen=True)
class ResourceDescriptor:
    """A single idempotent resource.

    detect answers "is the desired state already present?" and must not
    mutate anything. apply is only called after detect returned False, and
    detect must return True afterwards.
    """

    resource_id: str
    kind: ResourceKind
    detect: Callable[[], bool]
    apply: Callable[[], None]
    fatal: bool = False
    description: str = ""
    wait_for: Optional[ReadinessCheck] = None


@dataclass
class ConvergenceResult:
    resource_id: str
    applied: bool = False
    error: Optional[ProvisionError] = None
    deferred: bool = False
    planned: bool = False
    notes: List[str] = field(default_factory=list)
    timeouts: List[ReadinessTimeout] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.error is None and not self.deferred and not self.planned


def _detect(descriptor: ResourceDescriptor) -> bool:
    try:
        return bool(descriptor.detect())
    except Exception as e:
        raise ApplyError(f"detection failed: {e}", resource_id=descriptor.resource_id) from e


def _converge(
    descriptor: ResourceDescriptor,
    result: ConvergenceResult,
    *,
    dry_run: bool,
    sleep: Callable[[float], None],
) -> None:
    rid = descriptor.resource_id

    if descriptor.wait_for is not None:
        ready = await_ready(descriptor.wait_for, sleep=sleep)
        if ready.timed_out:
            result.timeouts.append(
                ReadinessTimeout(
                    f"{ready.name} not ready after {ready.attempts} attempts; continuing",
                    resource_id=rid,
                )
            )

    if _detect(descriptor):
        logger.info("[%s] already converged", rid)
        return

    if dry_run:
        logger.info("[%s] would apply (%s)", rid, descriptor.description or descriptor.kind.value)
        result.planned = True
        return

    logger.info("[%s] applying (%s)", rid, descriptor.description or descriptor.kind.value)
    try:
        descriptor.apply()
    except ResourceDeferred as e:
        e.resource_id = e.resource_id or rid
        logger.info("[%s] deferred: %s", rid, e.message)
        result.deferred = True
        result.notes.append(e.message)
        return
    except ProvisionError as e:
        e.resource_id = e.resource_id or rid
        raise
    except Exception as e:
        raise ApplyError(f"{type(e).__name__}: {e}", resource_id=rid) from e

    result.applied = True
    if not _detect(descriptor):
        raise ConvergenceFailure("apply ran but desired state is still absent", resource_id=rid)
    logger.info("[%s] converged", rid)


def converge(
    descriptor: ResourceDescriptor,
    *,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> ConvergenceResult:
    """Check-then-apply one descriptor.

    Fatal descriptors raise their ProvisionError; non-fatal ones return it in
    the result so the run can continue.
    """

    result = ConvergenceResult(resource_id=descriptor.resource_id)
    try:
        _converge(descriptor, result, dry_run=dry_run, sleep=sleep)
    except ProvisionError as e:
        if descriptor.fatal:
            logger.error("[%s] fatal: %s", descriptor.resource_id, e.message)
            raise
        logger.warning("[%s] did not converge: %s", descriptor.resource_id, e.message)
        result.error = e
    return result
