from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationError


DEFAULT_APT_PACKAGES = [
    "git",
    "curl",
    "build-essential",
    "python3",
    "python3-pip",
    "python3-venv",
    "ffmpeg",
    "sox",
    "alsa-utils",
    "libportaudio2",
    "libasound2-plugins",
    "python3-opencv",
    "python3-cairosvg",
    "fonts-dejavu-core",
]

# Debian's 'piper' (a GTK mouse configurator) shadows the piper-tts binary.
DEFAULT_APT_CONFLICTS = ["piper"]

# pip distribution -> import name used to detect it.
DEFAULT_PIP_PACKAGES = {
    "openai-whisper": "whisper",
    "piper-tts": "piper",
    "soundfile": "soundfile",
    "cairosvg": "cairosvg",
}

DEFAULT_ENV_OVERLAY = {
    "TTS_SERVER": "PIPER",
    "PIPER_BINARY_PATH": "{piper_bin}",
    "PIPER_MODEL_PATH": "{voice_model}",
    "OLLAMA_ENDPOINT": "{ollama_url}",
    "OLLAMA_MODEL": "{ollama_model}",
}


def ensure_defaults(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with sane defaults (without overriding user values)."""

    raw.setdefault("user", None)
    raw.setdefault("home", None)
    raw.setdefault("dry_run", False)

    paths = raw.setdefault("paths", {})
    paths.setdefault("app_dir", "whisplay-ai-chatbot")
    paths.setdefault("backup_dir", "whisplay-chatbot-Qwen/whisplay-backup")
    paths.setdefault("driver_dir", "Whisplay")
    paths.setdefault("piper_dir", "piper")
    paths.setdefault("nvm_dir", ".nvm")
    paths.setdefault("state_dir", ".local/state/whisplay-provision")
    paths.setdefault("etc_dir", "/etc")

    apt = raw.setdefault("apt", {})
    apt.setdefault("packages", list(DEFAULT_APT_PACKAGES))
    apt.setdefault("conflicts", list(DEFAULT_APT_CONFLICTS))

    drv = raw.setdefault("audio_driver", {})
    drv.setdefault("repo", "https://github.com/PiSugar/Whisplay.git")
    drv.setdefault("script", "Driver/install_wm8960_drive.sh")
    drv.setdefault("marker", "wm8960")
    drv.setdefault("boot_configs", ["/boot/firmware/config.txt", "/boot/config.txt"])
    drv.setdefault("card_name", "wm8960soundcard")

    ollama = raw.setdefault("ollama", {})
    ollama.setdefault("install_url", "https://ollama.com/install.sh")
    ollama.setdefault("model", "qwen3:1.7b")
    ollama.setdefault("url", "http://127.0.0.1:11434")

    node = raw.setdefault("node", {})
    node.setdefault("nvm_version", "v0.39.7")
    node.setdefault("version", "20.19.5")

    app = raw.setdefault("app", {})
    app.setdefault("repo", "https://github.com/PiSugar/whisplay-ai-chatbot.git")
    app.setdefault("build_output", "dist")

    raw.setdefault("pip_packages", dict(DEFAULT_PIP_PACKAGES))

    voice = raw.setdefault("voice", {})
    voice.setdefault("name", "en_US-amy-medium")
    voice.setdefault(
        "base_url",
        "https://huggingface.co/rhasspy/piper-voices/resolve/main/en/en_US/amy/medium",
    )
    voice.setdefault("piper_source", None)

    raw.setdefault("env", dict(DEFAULT_ENV_OVERLAY))

    svc = raw.setdefault("service", {})
    svc.setdefault("name", "whisplay")
    svc.setdefault("template_user", "pi")
    svc.setdefault("template_home", "/home/pi")

    ready = raw.setdefault("readiness", {})
    ready.setdefault("interval_s", 2.0)
    ready.setdefault("max_attempts", 30)

    font = raw.setdefault("font", {})
    font.setdefault("source", "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf")
    font.setdefault("target", "python/NotoSansSC-Bold.ttf")

    return raw


@dataclass(frozen=True)
class ProvisionConfig:
    raw: Dict[str, Any] = field(default_factory=lambda: ensure_defaults({}))

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def user(self) -> Optional[str]:
        return self.raw.get("user") or None

    @property
    def home(self) -> Optional[str]:
        return self.raw.get("home") or None

    @property
    def dry_run(self) -> bool:
        return bool(self.raw.get("dry_run", False))

    @property
    def paths(self) -> Dict[str, str]:
        return {k: str(v) for k, v in self._section("paths").items()}

    @property
    def apt_packages(self) -> List[str]:
        return [str(p) for p in self._section("apt").get("packages") or []]

    @property
    def apt_conflicts(self) -> List[str]:
        return [str(p) for p in self._section("apt").get("conflicts") or []]

    @property
    def driver_repo(self) -> str:
        return str(self._section("audio_driver")["repo"])

    @property
    def driver_script(self) -> str:
        return str(self._section("audio_driver")["script"])

    @property
    def driver_marker(self) -> str:
        return str(self._section("audio_driver")["marker"])

    @property
    def boot_configs(self) -> List[str]:
        return [str(p) for p in self._section("audio_driver").get("boot_configs") or []]

    @property
    def card_name(self) -> str:
        return str(self._section("audio_driver")["card_name"])

    @property
    def ollama_install_url(self) -> str:
        return str(self._section("ollama")["install_url"])

    @property
    def ollama_model(self) -> str:
        return str(self._section("ollama")["model"])

    @property
    def ollama_url(self) -> str:
        return str(self._section("ollama")["url"]).rstrip("/")

    @property
    def nvm_version(self) -> str:
        return str(self._section("node")["nvm_version"])

    @property
    def node_version(self) -> str:
        return str(self._section("node")["version"])

    @property
    def app_repo(self) -> str:
        return str(self._section("app")["repo"])

    @property
    def app_build_output(self) -> str:
        return str(self._section("app")["build_output"])

    @property
    def pip_packages(self) -> Dict[str, str]:
        pkgs = self.raw.get("pip_packages") or {}
        return {str(k): str(v) for k, v in pkgs.items()}

    @property
    def voice_name(self) -> str:
        return str(self._section("voice")["name"])

    @property
    def voice_base_url(self) -> str:
        return str(self._section("voice")["base_url"]).rstrip("/")

    @property
    def piper_source(self) -> Optional[str]:
        return self._section("voice").get("piper_source") or None

    @property
    def env_overlay(self) -> Dict[str, str]:
        return {str(k): str(v) for k, v in (self.raw.get("env") or {}).items()}

    @property
    def service_name(self) -> str:
        return str(self._section("service")["name"])

    @property
    def template_user(self) -> str:
        return str(self._section("service")["template_user"])

    @property
    def template_home(self) -> str:
        return str(self._section("service")["template_home"]).rstrip("/")

    @property
    def readiness_interval_s(self) -> float:
        return float(self._section("readiness")["interval_s"])

    @property
    def readiness_max_attempts(self) -> int:
        return int(self._section("readiness")["max_attempts"])

    @property
    def font_source(self) -> str:
        return str(self._section("font")["source"])

    @property
    def font_target(self) -> str:
        return str(self._section("font")["target"])

    def with_overrides(self, **overrides: Any) -> "ProvisionConfig":
        """Return a copy with non-None top-level overrides applied (CLI flags)."""

        raw = dict(self.raw)
        for key, value in overrides.items():
            if value is not None:
                raw[key] = value
        return ProvisionConfig(raw=raw)


def load_config(path: Optional[str] = None) -> ProvisionConfig:
    if path is None:
        return ProvisionConfig(raw=ensure_defaults({}))

    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigurationError("Provision config must be YAML")

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read the provision config") from e

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a mapping/object")

    for section in ("paths", "apt", "audio_driver", "ollama", "node", "app", "voice", "service", "readiness", "font"):
        if section in raw and not isinstance(raw[section], Mapping):
            raise ConfigurationError(f"{path}: '{section}' must be a mapping")

    return ProvisionConfig(raw=ensure_defaults(raw))
