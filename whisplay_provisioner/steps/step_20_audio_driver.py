from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import List, Sequence

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..errors import ApplyError
from ..lib.audio import boot_config_mentions
from ..lib.command import sudo_cmd
from ..lib.git import clone, is_checkout
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)


def _install_driver(script: Path) -> None:
    if not script.is_file():
        raise ApplyError(f"{script.name} not found in {script.parent}")
    # The installer script resolves its overlay files relative to its own dir.
    sudo_cmd(["bash", script.name], cwd=str(script.parent))
    logger.info("Audio driver installed; a reboot is required for the card to appear")


def _driver_present(boot_configs: Sequence[str], marker: str) -> bool:
    return boot_config_mentions(boot_configs, marker)


class AudioDriverStep:
    """WM8960 codec driver for the Whisplay HAT."""

    step_id = "20_audio_driver"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        script = ctx.driver_dir / cfg.driver_script
        return [
            ResourceDescriptor(
                resource_id="audio-driver-checkout",
                kind=ResourceKind.REPOSITORY,
                detect=partial(is_checkout, ctx.driver_dir),
                apply=partial(clone, cfg.driver_repo, ctx.driver_dir, depth=1),
                description=f"git clone {cfg.driver_repo}",
            ),
            ResourceDescriptor(
                resource_id="audio-driver",
                kind=ResourceKind.COMMAND,
                detect=partial(_driver_present, cfg.boot_configs, cfg.driver_marker),
                apply=partial(_install_driver, script),
                description=f"run {cfg.driver_script}",
            ),
        ]
