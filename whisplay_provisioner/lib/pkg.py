from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Sequence

from .command import run_cmd, sudo_cmd

logger = logging.getLogger(__name__)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def dpkg_installed(package: str) -> bool:
    """Return True if dpkg reports the package as installed."""

    r = run_cmd(
        ["dpkg-query", "-W", "-f=${Status}", package],
        check=False,
        quiet=True,
    )
    return r.ok and r.stdout.strip().endswith("install ok installed")


def missing_packages(packages: Iterable[str]) -> List[str]:
    return [p for p in packages if not dpkg_installed(p)]


def apt_update() -> None:
    sudo_cmd(["apt-get", "update"], env=_APT_ENV)


def apt_install(packages: Sequence[str], *, with_recommends: bool = True) -> None:
    if not packages:
        return
    argv = ["apt-get", "install", "-y"]
    if not with_recommends:
        argv.append("--no-install-recommends")
    sudo_cmd([*argv, *packages], env=_APT_ENV)


def apt_remove(packages: Sequence[str]) -> None:
    if not packages:
        return
    sudo_cmd(["apt-get", "remove", "-y", *packages], env=_APT_ENV)


def python_importable(module: str, *, python: str = "python3") -> bool:
    r = run_cmd([python, "-c", f"import {module}"], check=False, quiet=True)
    return r.ok


def pip_install(
    packages: Sequence[str] = (),
    *,
    requirements: Path | None = None,
    upgrade: bool = False,
    python: str = "python3",
) -> None:
    """Install into the system interpreter (Bookworm marks it externally managed)."""

    argv = [python, "-m", "pip", "install", "--break-system-packages"]
    if upgrade:
        argv.append("--upgrade")
    if requirements is not None:
        argv += ["-r", str(requirements)]
    if not packages and requirements is None:
        return
    run_cmd([*argv, *packages])
