from __future__ import annotations

import logging
from functools import partial
from typing import List, Sequence

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..lib.pkg import apt_install, apt_remove, apt_update, dpkg_installed, missing_packages
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)


def _all_installed(packages: Sequence[str]) -> bool:
    return not missing_packages(packages)


def _install(packages: Sequence[str]) -> None:
    missing = missing_packages(packages)
    logger.info("Installing %d missing package(s): %s", len(missing), " ".join(missing))
    apt_update()
    apt_install(missing)


def _none_installed(packages: Sequence[str]) -> bool:
    return not any(dpkg_installed(p) for p in packages)


def _remove(packages: Sequence[str]) -> None:
    apt_remove([p for p in packages if dpkg_installed(p)])


class PackagesStep:
    step_id = "10_packages"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        wanted = cfg.apt_packages
        conflicts = cfg.apt_conflicts
        return [
            ResourceDescriptor(
                resource_id="base-packages",
                kind=ResourceKind.PACKAGE_SET,
                detect=partial(_all_installed, wanted),
                apply=partial(_install, wanted),
                fatal=True,
                description="apt: " + " ".join(wanted),
            ),
            ResourceDescriptor(
                resource_id="conflicting-packages",
                kind=ResourceKind.PACKAGE_SET,
                detect=partial(_none_installed, conflicts),
                apply=partial(_remove, conflicts),
                description="apt remove: " + " ".join(conflicts),
            ),
        ]
