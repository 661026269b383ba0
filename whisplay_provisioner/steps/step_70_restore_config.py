from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import List, Sequence

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..errors import ApplyError, ConfigurationError, ResourceDeferred
from ..lib.assets import copy_file
from ..overlay import OverlayRule, apply_overlay, overlay_satisfied, rules_from_mapping
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)

BACKUP_ENV = "env_actual.txt"
BACKUP_NOTES = "piper_models.txt"


def _exists(path: Path) -> bool:
    return path.exists()


def _restore(src: Path, dst: Path, hint: str) -> None:
    if not src.is_file():
        raise ApplyError(f"{src} not found; {hint}")
    copy_file(src, dst)


def _optional_copy_done(src: Path, dst: Path) -> bool:
    # Nothing to restore is as converged as a finished copy.
    return dst.exists() or not src.is_file()


def _patch(path: Path, rules: Sequence[OverlayRule]) -> None:
    # .env is only ever created by restored-env.
    if not path.exists():
        raise ResourceDeferred(f"{path} not restored yet; patch after restored-env converges")
    apply_overlay(path, rules)


class RestoreConfigStep:
    step_id = "70_restore_config"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        tokens = dict(ctx.tokens())
        tokens.update({"ollama_url": cfg.ollama_url, "ollama_model": cfg.ollama_model})
        try:
            env_rules = rules_from_mapping(cfg.env_overlay, tokens)
        except ValueError as e:
            raise ConfigurationError(f"env overlay: {e}") from e

        env_src = ctx.backup_dir / BACKUP_ENV
        notes_src = ctx.backup_dir / BACKUP_NOTES
        notes_dst = ctx.app_dir / "backup-notes" / BACKUP_NOTES
        font_dst = ctx.app_dir / cfg.font_target

        return [
            ResourceDescriptor(
                resource_id="restored-env",
                kind=ResourceKind.FILE_OVERLAY,
                detect=partial(_exists, ctx.env_file),
                apply=partial(_restore, env_src, ctx.env_file, "create .env manually"),
                description=f"{env_src} -> {ctx.env_file}",
            ),
            ResourceDescriptor(
                resource_id="env-overlay",
                kind=ResourceKind.LINE_PATCH,
                detect=partial(overlay_satisfied, ctx.env_file, env_rules),
                apply=partial(_patch, ctx.env_file, env_rules),
                description=", ".join(r.key for r in env_rules),
            ),
            ResourceDescriptor(
                resource_id="backup-notes",
                kind=ResourceKind.FILE_OVERLAY,
                detect=partial(_optional_copy_done, notes_src, notes_dst),
                apply=partial(copy_file, notes_src, notes_dst),
                description=f"{notes_src} -> {notes_dst}",
            ),
            ResourceDescriptor(
                resource_id="ui-font",
                kind=ResourceKind.FILE_OVERLAY,
                detect=partial(_exists, font_dst),
                apply=partial(
                    _restore, Path(cfg.font_source), font_dst, "the UI will complain about its font"
                ),
                description=f"{cfg.font_source} -> {font_dst}",
            ),
        ]
