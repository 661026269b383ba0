from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence

import httpx

from .lib.command import run_cmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadinessCheck:
    name: str
    probe: Callable[[], bool]
    interval_s: float = 2.0
    max_attempts: int = 30


@dataclass(frozen=True)
class ReadinessResult:
    name: str
    ready: bool
    attempts: int

    @property
    def timed_out(self) -> bool:
        return not self.ready


def await_ready(check: ReadinessCheck, *, sleep: Callable[[float], None] = time.sleep) -> ReadinessResult:
    """Probe at a fixed interval until ready or out of attempts.

    Sleeps only between attempts. A probe that raises counts as not ready.
    """

    attempts = max(1, int(check.max_attempts))
    for attempt in range(1, attempts + 1):
        try:
            ok = bool(check.probe())
        except Exception as e:
            logger.debug("Probe %s raised on attempt %d: %s", check.name, attempt, e)
            ok = False
        if ok:
            logger.info("%s ready after %d attempt(s)", check.name, attempt)
            return ReadinessResult(name=check.name, ready=True, attempts=attempt)
        if attempt < attempts:
            sleep(check.interval_s)

    logger.warning("%s not ready after %d attempts", check.name, attempts)
    return ReadinessResult(name=check.name, ready=False, attempts=attempts)


def http_probe(url: str, *, timeout_s: float = 2.0) -> Callable[[], bool]:
    def probe() -> bool:
        try:
            with httpx.Client(timeout=timeout_s) as client:
                resp = client.get(url)
                return resp.status_code < 500
        except httpx.HTTPError:
            return False

    return probe


def command_probe(argv: Sequence[str]) -> Callable[[], bool]:
    def probe() -> bool:
        return run_cmd(argv, check=False, quiet=True).ok

    return probe


def http_check(name: str, url: str, *, interval_s: float = 2.0, max_attempts: int = 30) -> ReadinessCheck:
    return ReadinessCheck(name=name, probe=http_probe(url), interval_s=interval_s, max_attempts=max_attempts)


def command_check(
    name: str, argv: Sequence[str], *, interval_s: float = 2.0, max_attempts: int = 30
) -> ReadinessCheck:
    return ReadinessCheck(name=name, probe=command_probe(argv), interval_s=interval_s, max_attempts=max_attempts)
