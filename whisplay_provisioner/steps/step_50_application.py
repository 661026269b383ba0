from __future__ import annotations

import logging
import shlex
from functools import partial
from pathlib import Path
from typing import Dict, List

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..lib.git import clone, is_checkout
from ..lib.nvm import nvm_exec
from ..lib.pkg import pip_install, python_importable
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)


def _node_deps_present(app_dir: Path, build_output: str) -> bool:
    return (app_dir / "node_modules").is_dir() and (app_dir / build_output).exists()


def _install_node_deps(app_dir: Path, nvm_dir: Path, node_version: str) -> None:
    script = " && ".join(
        [
            f"nvm use {shlex.quote(node_version)} >/dev/null",
            "(command -v corepack >/dev/null 2>&1 || npm install -g corepack)",
            "(corepack enable || true)",
            "(command -v yarn >/dev/null 2>&1 || npm install -g yarn)",
            "yarn install",
            "yarn build",
        ]
    )
    nvm_exec(nvm_dir, script, cwd=app_dir)


def _python_deps_present(modules: Dict[str, str]) -> bool:
    return all(python_importable(m) for m in modules.values())


def _install_python_deps(modules: Dict[str, str], app_dir: Path) -> None:
    pip_install(["pip"], upgrade=True)
    pip_install(list(modules))
    requirements = app_dir / "requirements.txt"
    if requirements.is_file():
        pip_install(requirements=requirements)


class ApplicationStep:
    step_id = "50_application"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        return [
            ResourceDescriptor(
                resource_id="app-checkout",
                kind=ResourceKind.REPOSITORY,
                detect=partial(is_checkout, ctx.app_dir),
                apply=partial(clone, cfg.app_repo, ctx.app_dir, replace_non_git=True),
                fatal=True,
                description=f"git clone {cfg.app_repo}",
            ),
            ResourceDescriptor(
                resource_id="node-dependencies",
                kind=ResourceKind.COMMAND,
                detect=partial(_node_deps_present, ctx.app_dir, cfg.app_build_output),
                apply=partial(_install_node_deps, ctx.app_dir, ctx.nvm_dir, cfg.node_version),
                description="yarn install && yarn build",
            ),
            ResourceDescriptor(
                resource_id="python-dependencies",
                kind=ResourceKind.PACKAGE_SET,
                detect=partial(_python_deps_present, cfg.pip_packages),
                apply=partial(_install_python_deps, cfg.pip_packages, ctx.app_dir),
                description="pip: " + " ".join(cfg.pip_packages),
            ),
        ]
