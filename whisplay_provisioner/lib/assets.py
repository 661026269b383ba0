from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

import httpx

from .command import sudo_cmd

logger = logging.getLogger(__name__)


def read_text_or_empty(path: Path) -> str:
    """Read a text file; a missing file reads as empty."""

    p = Path(path)
    if not p.exists():
        return ""
    with p.open("r", encoding="utf-8", newline="") as f:
        return f.read()


def _writable(path: Path) -> bool:
    if path.exists():
        return os.access(path, os.W_OK)
    parent = path.parent
    while not parent.exists() and parent != parent.parent:
        parent = parent.parent
    return os.access(parent, os.W_OK)


def write_file(path: Path, contents: str) -> None:
    """Write text, escalating through sudo when the target is not ours to write."""

    p = Path(path)
    if _writable(p):
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8", newline="") as f:
            f.write(contents)
        return

    logger.info("Writing %s via sudo", p)
    sudo_cmd(["mkdir", "-p", str(p.parent)])
    sudo_cmd(["tee", str(p)], input_text=contents, quiet=True)


def copy_file(src: Path, dst: Path) -> None:
    s = Path(src)
    d = Path(dst)
    if not s.is_file():
        raise FileNotFoundError(str(s))

    if _writable(d):
        d.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(s, d)
    else:
        sudo_cmd(["mkdir", "-p", str(d.parent)])
        sudo_cmd(["cp", str(s), str(d)])
    logger.info("Copied %s -> %s", s, d)


def symlink_points_to(link: Path, target: Path) -> bool:
    link = Path(link)
    if not link.is_symlink():
        return False
    return Path(os.readlink(link)) == Path(target)


def ensure_symlink(link: Path, target: Path) -> None:
    """Create or repoint link -> target (like `ln -sf`)."""

    link = Path(link)
    link.parent.mkdir(parents=True, exist_ok=True)
    if link.is_symlink() or link.exists():
        if link.is_dir() and not link.is_symlink():
            raise IsADirectoryError(str(link))
        link.unlink()
    link.symlink_to(target)
    logger.info("Linked %s -> %s", link, target)


def download(url: str, dest: Path, *, timeout_s: float = 60.0) -> None:
    """Stream url into dest.

    The body lands in a temporary sibling first so a partial download never
    looks like a finished one. No checksum is verified.
    """

    d = Path(dest)
    d.parent.mkdir(parents=True, exist_ok=True)
    tmp = d.with_name(d.name + ".part")
    logger.info("GET %s -> %s", url, d)
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=True) as client:
            with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with tmp.open("wb") as f:
                    for chunk in resp.iter_bytes():
                        f.write(chunk)
        tmp.replace(d)
    finally:
        if tmp.exists():
            tmp.unlink()
