from __future__ import annotations

from typing import Optional


class ProvisionError(Exception):
    """Base class for provisioning errors.

    resource_id is set once the error is attributed to a descriptor.
    """

    def __init__(self, message: str, *, resource_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.resource_id = resource_id

    def __str__(self) -> str:
        if self.resource_id:
            return f"[{self.resource_id}] {self.message}"
        return self.message


class ConfigurationError(ProvisionError):
    """Environment cannot be resolved or the run was invoked incorrectly. Always fatal."""


class ApplyError(ProvisionError):
    """The apply action (or its detection predicate) raised."""


class ConvergenceFailure(ProvisionError):
    """Apply ran but the detection predicate still reports the resource as absent."""


class ReadinessTimeout(ProvisionError):
    """A readiness poll exhausted its attempts. Never fatal."""


class ResourceDeferred(ProvisionError):
    """Desired state depends on something not yet visible (e.g. pending reboot)."""
