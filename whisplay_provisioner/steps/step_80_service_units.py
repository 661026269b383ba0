from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import List

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..errors import ApplyError
from ..lib import systemd
from ..lib.assets import read_text_or_empty, write_file
from ..overlay import render_unit
from ..readiness import http_check
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)

UNIT_TEMPLATE = "whisplay.service.txt"


def rendered_unit(ctx: EnvironmentContext, cfg: ProvisionConfig, template: Path) -> str:
    return render_unit(
        read_text_or_empty(template),
        user=ctx.user,
        home=ctx.home,
        app_dir=ctx.app_dir,
        template_user=cfg.template_user,
        template_home=cfg.template_home,
    )


def _unit_current(ctx: EnvironmentContext, cfg: ProvisionConfig, template: Path) -> bool:
    if not template.is_file() or not ctx.unit_path.exists():
        return False
    return read_text_or_empty(ctx.unit_path) == rendered_unit(ctx, cfg, template)


def _install_unit(ctx: EnvironmentContext, cfg: ProvisionConfig, template: Path) -> None:
    if not template.is_file():
        raise ApplyError(f"unit template {template} not found")
    write_file(ctx.unit_path, rendered_unit(ctx, cfg, template))
    systemd.daemon_reload()
    logger.info("Installed %s (user=%s, dir=%s)", ctx.unit_path, ctx.user, ctx.app_dir)


class ServiceUnitsStep:
    step_id = "80_service_units"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        template = ctx.backup_dir / UNIT_TEMPLATE
        name = ctx.service_name
        return [
            ResourceDescriptor(
                resource_id="service-unit",
                kind=ResourceKind.TEMPLATED_UNIT,
                detect=partial(_unit_current, ctx, cfg, template),
                apply=partial(_install_unit, ctx, cfg, template),
                description=str(ctx.unit_path),
            ),
            ResourceDescriptor(
                resource_id="service-enabled",
                kind=ResourceKind.COMMAND,
                detect=partial(systemd.is_enabled, name),
                apply=partial(systemd.enable, name),
                description=f"systemctl enable {name}",
            ),
            ResourceDescriptor(
                resource_id="service-active",
                kind=ResourceKind.COMMAND,
                detect=partial(systemd.is_active, name),
                apply=partial(systemd.restart, name),
                description=f"systemctl restart {name}",
                wait_for=http_check(
                    "ollama API",
                    f"{cfg.ollama_url}/api/tags",
                    interval_s=cfg.readiness_interval_s,
                    max_attempts=cfg.readiness_max_attempts,
                ),
            ),
        ]
