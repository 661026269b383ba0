from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from .config import ProvisionConfig
from .environment import EnvironmentContext
from .errors import (
    ApplyError,
    ConfigurationError,
    ConvergenceFailure,
    ProvisionError,
    ReadinessTimeout,
)
from .reconciler import ResourceDescriptor, converge

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A group of related resources, in dependency order."""

    step_id: str

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        ...


@dataclass(frozen=True)
class RunWarning:
    resource_id: str
    category: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"resource_id": self.resource_id, "category": self.category, "message": self.message}


@dataclass
class Summary:
    applied: List[str] = field(default_factory=list)
    converged: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)
    deferred_reasons: Dict[str, str] = field(default_factory=dict)
    planned: List[str] = field(default_factory=list)
    warnings: List[RunWarning] = field(default_factory=list)
    fatal_error: Optional[ProvisionError] = None

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def ok(self) -> bool:
        return self.fatal_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied": list(self.applied),
            "converged": list(self.converged),
            "deferred": list(self.deferred),
            "deferred_reasons": dict(self.deferred_reasons),
            "planned": list(self.planned),
            "warnings": [w.to_dict() for w in self.warnings],
            "fatal_error": str(self.fatal_error) if self.fatal_error else None,
        }


def _category(err: ProvisionError) -> str:
    if isinstance(err, ReadinessTimeout):
        return "readiness"
    if isinstance(err, ConvergenceFailure):
        return "convergence"
    if isinstance(err, ApplyError):
        return "apply"
    return "error"


def select_resources(
    resources: Sequence[ResourceDescriptor],
    *,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> List[ResourceDescriptor]:
    ids = [r.resource_id for r in resources]
    for name, value in (("start_at", start_at), ("stop_after", stop_after)):
        if value is not None and value not in ids:
            raise ConfigurationError(f"Unknown resource id for {name}: {value}")

    selected: List[ResourceDescriptor] = []
    started = start_at is None
    for r in resources:
        if not started:
            if r.resource_id == start_at:
                started = True
            else:
                continue
        selected.append(r)
        if stop_after is not None and r.resource_id == stop_after:
            break
    return selected


def run_resources(
    resources: Sequence[ResourceDescriptor],
    *,
    dry_run: bool = False,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Summary:
    """Converge resources strictly in order.

    A fatal failure stops the run and is returned in the partial summary;
    everything else becomes a warning.
    """

    summary = Summary()

    for r in select_resources(resources, start_at=start_at, stop_after=stop_after):
        try:
            result = converge(r, dry_run=dry_run, sleep=sleep)
        except ProvisionError as e:
            summary.fatal_error = e
            logger.error("Stopping run at %s", r.resource_id)
            break

        for timeout in result.timeouts:
            summary.warnings.append(RunWarning(r.resource_id, _category(timeout), timeout.message))

        if result.error is not None:
            summary.warnings.append(
                RunWarning(r.resource_id, _category(result.error), result.error.message)
            )
        elif result.deferred:
            summary.deferred.append(r.resource_id)
            summary.deferred_reasons[r.resource_id] = "; ".join(result.notes)
        elif result.planned:
            summary.planned.append(r.resource_id)
        elif result.applied:
            summary.applied.append(r.resource_id)
        else:
            summary.converged.append(r.resource_id)

    logger.info(
        "Run finished: applied=%d converged=%d deferred=%d warnings=%d fatal=%s",
        summary.applied_count,
        len(summary.converged),
        len(summary.deferred),
        len(summary.warnings),
        summary.fatal_error,
    )
    return summary
