from __future__ import annotations

import logging
import shutil
from functools import partial
from pathlib import Path
from typing import List, Optional

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..errors import ApplyError
from ..lib.assets import download, ensure_symlink, symlink_points_to
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)


def find_piper(ctx: EnvironmentContext, configured: Optional[str]) -> Optional[Path]:
    """Locate the piper-tts executable.

    configured path -> ~/.local/bin/piper (pip --user) -> PATH, never our own link.
    """

    candidates: List[Path] = []
    if configured:
        candidates.append(Path(configured).expanduser())
    candidates.append(ctx.local_bin / "piper")
    on_path = shutil.which("piper")
    if on_path:
        candidates.append(Path(on_path))

    for c in candidates:
        if c == ctx.piper_bin:
            continue
        if c.is_file():
            return c
    return None


def _link_ok(ctx: EnvironmentContext, configured: Optional[str]) -> bool:
    target = find_piper(ctx, configured)
    return target is not None and symlink_points_to(ctx.piper_bin, target)


def _link(ctx: EnvironmentContext, configured: Optional[str]) -> None:
    ctx.voices_dir.mkdir(parents=True, exist_ok=True)
    target = find_piper(ctx, configured)
    if target is None:
        raise ApplyError(
            f"'piper' binary not found (looked in {ctx.local_bin} and PATH); "
            "install piper-tts or set voice.piper_source"
        )
    ensure_symlink(ctx.piper_bin, target)


def _exists(path: Path) -> bool:
    return path.is_file()


class VoiceAssetsStep:
    step_id = "60_voice_assets"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        model_url = f"{cfg.voice_base_url}/{ctx.voice_model.name}"
        config_url = f"{cfg.voice_base_url}/{ctx.voice_config.name}"
        return [
            ResourceDescriptor(
                resource_id="piper-binary",
                kind=ResourceKind.SYMLINK,
                detect=partial(_link_ok, ctx, cfg.piper_source),
                apply=partial(_link, ctx, cfg.piper_source),
                description=f"link {ctx.piper_bin}",
            ),
            ResourceDescriptor(
                resource_id="piper-voice-model",
                kind=ResourceKind.REMOTE_DOWNLOAD,
                detect=partial(_exists, ctx.voice_model),
                apply=partial(download, model_url, ctx.voice_model),
                description=model_url,
            ),
            ResourceDescriptor(
                resource_id="piper-voice-config",
                kind=ResourceKind.REMOTE_DOWNLOAD,
                detect=partial(_exists, ctx.voice_config),
                apply=partial(download, config_url, ctx.voice_config),
                description=config_url,
            ),
        ]
