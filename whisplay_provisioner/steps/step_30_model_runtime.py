from __future__ import annotations

import logging
import shlex
import shutil
from functools import partial
from typing import List

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..lib.command import bash_cmd, run_cmd
from ..readiness import http_check
from ..reconciler import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)


def ollama_on_path() -> bool:
    return shutil.which("ollama") is not None


def _install_ollama(url: str) -> None:
    bash_cmd(f"curl -fsSL {shlex.quote(url)} | sh")


def parse_model_list(text: str) -> List[str]:
    """First column of `ollama list`, minus the header."""

    names: List[str] = []
    for i, line in enumerate(text.splitlines()):
        cols = line.split()
        if not cols or (i == 0 and cols[0].upper() == "NAME"):
            continue
        names.append(cols[0])
    return names


def model_present(tag: str) -> bool:
    if not ollama_on_path():
        return False
    r = run_cmd(["ollama", "list"], check=False, quiet=True)
    return r.ok and tag in parse_model_list(r.stdout)


def _pull_model(tag: str) -> None:
    run_cmd(["ollama", "pull", tag])


class ModelRuntimeStep:
    step_id = "30_model_runtime"

    def resources(self, ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
        api_ready = http_check(
            "ollama API",
            f"{cfg.ollama_url}/api/tags",
            interval_s=cfg.readiness_interval_s,
            max_attempts=cfg.readiness_max_attempts,
        )
        return [
            ResourceDescriptor(
                resource_id="model-runtime",
                kind=ResourceKind.COMMAND,
                detect=ollama_on_path,
                apply=partial(_install_ollama, cfg.ollama_install_url),
                description="install Ollama",
            ),
            ResourceDescriptor(
                resource_id="model-weights",
                kind=ResourceKind.REMOTE_DOWNLOAD,
                detect=partial(model_present, cfg.ollama_model),
                apply=partial(_pull_model, cfg.ollama_model),
                description=f"ollama pull {cfg.ollama_model}",
                wait_for=api_ready,
            ),
        ]
