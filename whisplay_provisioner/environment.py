from __future__ import annotations

import logging
import os
import pwd
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from .config import ProvisionConfig
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentContext:
    """Everything a resource needs to know about who and where it runs.

    Built once per run. Resources derive every path from here.
    """

    user: str
    home: Path
    app_dir: Path
    backup_dir: Path
    driver_dir: Path
    piper_dir: Path
    nvm_dir: Path
    state_dir: Path
    etc_dir: Path = Path("/etc")
    service_name: str = "whisplay"
    voice_name: str = "en_US-amy-medium"

    @property
    def voices_dir(self) -> Path:
        return self.piper_dir / "voices"

    @property
    def piper_bin(self) -> Path:
        return self.piper_dir / "piper"

    @property
    def voice_model(self) -> Path:
        return self.voices_dir / f"{self.voice_name}.onnx"

    @property
    def voice_config(self) -> Path:
        return self.voices_dir / f"{self.voice_name}.onnx.json"

    @property
    def env_file(self) -> Path:
        return self.app_dir / ".env"

    @property
    def asound_conf(self) -> Path:
        return self.etc_dir / "asound.conf"

    @property
    def unit_path(self) -> Path:
        return self.etc_dir / "systemd" / "system" / f"{self.service_name}.service"

    @property
    def local_bin(self) -> Path:
        return self.home / ".local" / "bin"

    @property
    def default_log_path(self) -> Path:
        return self.state_dir / "provision.log"

    @property
    def default_state_path(self) -> Path:
        return self.state_dir / "state.json"

    def tokens(self) -> Dict[str, str]:
        """Placeholder values for `{token}` strings in configuration."""

        return {
            "user": self.user,
            "home": str(self.home),
            "app_dir": str(self.app_dir),
            "backup_dir": str(self.backup_dir),
            "piper_dir": str(self.piper_dir),
            "piper_bin": str(self.piper_bin),
            "voices_dir": str(self.voices_dir),
            "voice_model": str(self.voice_model),
            "voice_config": str(self.voice_config),
        }


def _under_home(home: Path, rel: str) -> Path:
    p = Path(rel).expanduser()
    return p if p.is_absolute() else home / p


def _home_of(user: str) -> Optional[str]:
    try:
        return pwd.getpwnam(user).pw_dir
    except KeyError:
        return None


def _login_of(uid: int) -> Optional[str]:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return None


def resolve_user(
    override: Optional[str],
    environ: Mapping[str, str],
    euid: int,
) -> str:
    """explicit override -> PI_USER -> SUDO_USER -> login name of euid -> fail.

    An explicitly requested root is an error; an inferred one is skipped.
    """

    for explicit in (override, environ.get("PI_USER")):
        if explicit and explicit.strip() == "root":
            raise ConfigurationError("Acting user must not be root (check --user, config user, PI_USER)")

    for candidate in (override, environ.get("PI_USER"), environ.get("SUDO_USER"), _login_of(euid)):
        if candidate and candidate.strip() and candidate.strip() != "root":
            return candidate.strip()
    raise ConfigurationError("Could not determine a non-root acting user (set --user or PI_USER)")


def resolve(
    config: ProvisionConfig,
    *,
    environ: Optional[Mapping[str, str]] = None,
    euid: Optional[int] = None,
    require_sudo: bool = True,
) -> EnvironmentContext:
    """Resolve the acting user and build the run's EnvironmentContext."""

    env = os.environ if environ is None else environ
    uid = os.geteuid() if euid is None else euid

    if uid == 0:
        raise ConfigurationError(
            "Run this as a normal non-root user (e.g. 'pi'); privileged steps use sudo."
        )
    if require_sudo and shutil.which("sudo", path=env.get("PATH")) is None:
        raise ConfigurationError("This tool assumes 'sudo' is available.")

    user = resolve_user(config.user, env, uid)

    home_raw = config.home or env.get("PI_HOME") or _home_of(user)
    if not home_raw:
        raise ConfigurationError(f"Could not determine home directory for user {user!r}")
    home = Path(home_raw).expanduser()

    paths = config.paths
    ctx = EnvironmentContext(
        user=user,
        home=home,
        app_dir=_under_home(home, paths["app_dir"]),
        backup_dir=_under_home(home, paths["backup_dir"]),
        driver_dir=_under_home(home, paths["driver_dir"]),
        piper_dir=_under_home(home, paths["piper_dir"]),
        nvm_dir=_under_home(home, paths["nvm_dir"]),
        state_dir=_under_home(home, paths["state_dir"]),
        etc_dir=Path(paths["etc_dir"]),
        service_name=config.service_name,
        voice_name=config.voice_name,
    )
    logger.info("Resolved environment user=%s home=%s app_dir=%s", ctx.user, ctx.home, ctx.app_dir)
    return ctx
