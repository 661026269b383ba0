from __future__ import annotations

from functools import partial
from typing import List

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..lib.nvm import install_node, install_nvm, node_installed, nvm_installed
from ..reconciler import ResourceDescriptor, ResourceKind


class ToolchainStep:
    step_id = "40_toolchain"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        return [
            ResourceDescriptor(
                resource_id="nvm",
                kind=ResourceKind.COMMAND,
                detect=partial(nvm_installed, ctx.nvm_dir),
                apply=partial(install_nvm, ctx.nvm_dir, cfg.nvm_version),
                fatal=True,
                description=f"nvm {cfg.nvm_version}",
            ),
            ResourceDescriptor(
                resource_id="node-runtime",
                kind=ResourceKind.COMMAND,
                detect=partial(node_installed, ctx.nvm_dir, cfg.node_version),
                apply=partial(install_node, ctx.nvm_dir, cfg.node_version),
                fatal=True,
                description=f"node {cfg.node_version} (default alias)",
            ),
        ]
