from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import List

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..errors import ResourceDeferred
from ..lib.assets import read_text_or_empty, write_file
from ..lib.audio import find_card_index, render_asound_conf
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)


def _conf_matches(path: Path, card_name: str) -> bool:
    index = find_card_index(card_name)
    if index is None:
        return False
    return read_text_or_empty(path) == render_asound_conf(index)


def _write_conf(path: Path, card_name: str) -> None:
    index = find_card_index(card_name)
    if index is None:
        raise ResourceDeferred(
            f"sound card {card_name!r} not visible yet (reboot after driver install, then re-run)"
        )
    logger.info("Detected %s as card %d", card_name, index)
    write_file(path, render_asound_conf(index))


class AudioDeviceStep:
    step_id = "25_audio_device"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        return [
            ResourceDescriptor(
                resource_id="audio-default-card",
                kind=ResourceKind.FILE_OVERLAY,
                detect=partial(_conf_matches, ctx.asound_conf, cfg.card_name),
                apply=partial(_write_conf, ctx.asound_conf, cfg.card_name),
                description=f"{ctx.asound_conf} -> {cfg.card_name}",
            )
        ]
