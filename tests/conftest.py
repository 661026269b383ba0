"""Shared pytest fixtures and test helpers for provisioner tests."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pytest

from whisplay_provisioner.config import ProvisionConfig
from whisplay_provisioner.environment import EnvironmentContext
from whisplay_provisioner.lib.command import CmdResult
from whisplay_provisioner.reconciler import ResourceDescriptor, ResourceKind


class FakeRunner:
    """Stands in for run_cmd: records argv, answers by argv prefix."""

    def __init__(self, responses: Dict[Tuple[str, ...], Tuple[int, str]] | None = None) -> None:
        self.calls: List[List[str]] = []
        self.responses = responses or {}

    def __call__(self, argv: Sequence[str], **kwargs) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        for prefix, (rc, out) in self.responses.items():
            if tuple(argv[: len(prefix)]) == prefix:
                return CmdResult(argv=argv, returncode=rc, stdout=out, stderr="")
        return CmdResult(argv=argv, returncode=0, stdout="", stderr="")

    def sudo(self, argv: Sequence[str], **kwargs) -> CmdResult:
        return self(["sudo", *argv], **kwargs)


@pytest.fixture
def cfg() -> ProvisionConfig:
    return ProvisionConfig()


@pytest.fixture
def ctx(tmp_path: Path) -> EnvironmentContext:
    """Context for user pi5ai with home and /etc rooted in tmp_path."""
    home = tmp_path / "home" / "pi5ai"
    home.mkdir(parents=True)
    etc = tmp_path / "etc"
    etc.mkdir()
    return EnvironmentContext(
        user="pi5ai",
        home=home,
        app_dir=home / "whisplay-ai-chatbot",
        backup_dir=home / "whisplay-chatbot-Qwen" / "whisplay-backup",
        driver_dir=home / "Whisplay",
        piper_dir=home / "piper",
        nvm_dir=home / ".nvm",
        state_dir=home / ".local" / "state" / "whisplay-provision",
        etc_dir=etc,
    )


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested intervals."""
    slept: List[float] = []

    def sleep(seconds: float) -> None:
        slept.append(seconds)

    sleep.calls = slept  # type: ignore[attr-defined]
    return sleep


class FakeResource:
    """Host state for one resource, with an apply counter."""

    def __init__(self, present: bool = False, *, effective: bool = True, error: Exception | None = None):
        self.present = present
        self.effective = effective
        self.error = error
        self.applies = 0

    def detect(self) -> bool:
        return self.present

    def apply(self) -> None:
        self.applies += 1
        if self.error is not None:
            raise self.error
        if self.effective:
            self.present = True

    def descriptor(self, rid: str = "thing", *, fatal: bool = False, wait_for=None) -> ResourceDescriptor:
        return ResourceDescriptor(
            resource_id=rid,
            kind=ResourceKind.COMMAND,
            detect=self.detect,
            apply=self.apply,
            fatal=fatal,
            wait_for=wait_for,
        )
