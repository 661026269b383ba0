from __future__ import annotations

import logging
import shlex
from pathlib import Path

from .command import CmdResult, bash_cmd

logger = logging.getLogger(__name__)


def nvm_script(nvm_dir: Path) -> Path:
    return Path(nvm_dir) / "nvm.sh"


def nvm_installed(nvm_dir: Path) -> bool:
    p = nvm_script(nvm_dir)
    return p.is_file() and p.stat().st_size > 0


def nvm_exec(nvm_dir: Path, script: str, *, cwd: Path | None = None, check: bool = True, quiet: bool = False) -> CmdResult:
    """Run a shell snippet with nvm sourced (nvm is a shell function, not a binary)."""

    prelude = f'export NVM_DIR={shlex.quote(str(nvm_dir))}; . "$NVM_DIR/nvm.sh"'
    return bash_cmd(
        f"{prelude} && {script}",
        cwd=str(cwd) if cwd else None,
        check=check,
        quiet=quiet,
    )


def install_nvm(nvm_dir: Path, version: str) -> None:
    url = f"https://raw.githubusercontent.com/nvm-sh/nvm/{version}/install.sh"
    bash_cmd(
        f"curl -fsSL {shlex.quote(url)} | bash",
        check=True,
        env={"NVM_DIR": str(nvm_dir), "PROFILE": "/dev/null"},
    )


def node_installed(nvm_dir: Path, version: str) -> bool:
    if not nvm_installed(nvm_dir):
        return False
    v = shlex.quote(version)
    r = nvm_exec(
        nvm_dir,
        f'nvm ls {v} >/dev/null 2>&1 && [ "$(nvm version default)" = "v{version}" ]',
        check=False,
        quiet=True,
    )
    return r.ok


def install_node(nvm_dir: Path, version: str) -> None:
    v = shlex.quote(version)
    nvm_exec(nvm_dir, f"nvm install {v} && nvm alias default {v}")
