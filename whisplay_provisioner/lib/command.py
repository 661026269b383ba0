from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str) -> None:
        super().__init__(f"Command failed ({returncode}): {fmt_argv(argv)}\n{stderr.strip()}")
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    quiet: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Logs the command (at DEBUG when quiet, e.g. for detection probes).
    - Captures stdout/stderr.
    - A missing executable is reported as exit code 127 rather than raised,
      so probes can treat it like any other negative answer.
    """

    argv_list = list(argv)
    logger.log(logging.DEBUG if quiet else logging.INFO, "CMD %s", fmt_argv(argv_list))

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except FileNotFoundError as e:
        if check:
            raise CommandError(argv_list, 127, str(e)) from e
        return CmdResult(argv=argv_list, returncode=127, stdout="", stderr=str(e))

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(argv_list, p.returncode, p.stderr or "")

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def sudo_cmd(argv: Sequence[str], **kwargs) -> CmdResult:
    """Run a command through the privilege broker."""

    return run_cmd(["sudo", *argv], **kwargs)


def bash_cmd(script: str, **kwargs) -> CmdResult:
    return run_cmd(["bash", "-lc", script], **kwargs)
