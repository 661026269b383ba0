from __future__ import annotations

import logging

from .command import run_cmd, sudo_cmd

logger = logging.getLogger(__name__)


def _unit(name: str) -> str:
    return name if "." in name else f"{name}.service"


def daemon_reload() -> None:
    sudo_cmd(["systemctl", "daemon-reload"])


def is_enabled(name: str) -> bool:
    return run_cmd(["systemctl", "is-enabled", "--quiet", _unit(name)], check=False, quiet=True).ok


def is_active(name: str) -> bool:
    return run_cmd(["systemctl", "is-active", "--quiet", _unit(name)], check=False, quiet=True).ok


def enable(name: str) -> None:
    sudo_cmd(["systemctl", "enable", _unit(name)])


def restart(name: str) -> None:
    sudo_cmd(["systemctl", "restart", _unit(name)])
