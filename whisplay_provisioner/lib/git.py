from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .command import run_cmd

logger = logging.getLogger(__name__)


def is_checkout(path: Path) -> bool:
    return (Path(path) / ".git").is_dir()


def clone(repo: str, dest: Path, *, depth: int | None = None, replace_non_git: bool = False) -> None:
    """Clone repo into dest.

    A directory that exists but is not a checkout is removed first only when
    replace_non_git is set; otherwise git refuses to clone into it.
    """

    d = Path(dest)
    if d.exists() and not is_checkout(d) and replace_non_git:
        logger.info("Removing non-git directory %s before clone", d)
        shutil.rmtree(d)

    argv = ["git", "clone"]
    if depth:
        argv += ["--depth", str(depth)]
    run_cmd([*argv, repo, str(d)])
