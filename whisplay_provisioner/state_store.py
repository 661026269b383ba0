from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from .environment import EnvironmentContext
from .pipeline import Summary

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def _yaml():
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("YAML state requested but PyYAML is not available. Use a .json state path.") from e
    return yaml


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    if _detect_format(p) in {"yaml", "yml"}:
        yaml = _yaml()
        try:
            data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML state in {p}: {e}") from e
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")
    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(_yaml().safe_dump(state, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def record_run(
    state: Dict[str, Any],
    ctx: EnvironmentContext,
    summary: Summary,
    *,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """Append the run to the audit record. Never consulted for idempotence."""

    entry = summary.to_dict()
    entry.update(
        {
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "user": ctx.user,
            "home": str(ctx.home),
            "dry_run": dry_run,
        }
    )
    state["last_run"] = entry
    runs = state.setdefault("runs", [])
    runs.append(
        {
            "finished_at": entry["finished_at"],
            "dry_run": dry_run,
            "applied": len(entry["applied"]),
            "warnings": len(entry["warnings"]),
            "fatal_error": entry["fatal_error"],
        }
    )
    # Keep the history short; the log has the details.
    del runs[:-20]
    return state
