from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Optional

from .command import run_cmd

logger = logging.getLogger(__name__)

_CARD_RE = re.compile(r"^card\s+(?P<index>\d+):\s+(?P<id>\S+)\s+\[(?P<name>[^\]]*)\]")


def parse_aplay_cards(text: str) -> Dict[int, Dict[str, str]]:
    """Parse `aplay -l` output into {index: {"id": ..., "name": ...}}."""

    cards: Dict[int, Dict[str, str]] = {}
    for line in text.splitlines():
        m = _CARD_RE.match(line.strip())
        if not m:
            continue
        cards.setdefault(int(m.group("index")), {"id": m.group("id"), "name": m.group("name")})
    return cards


def find_card_index(card_name: str) -> Optional[int]:
    """Return the ALSA index of a card matched by id or long name.

    The index is not stable across boots or HAT combinations, so it is
    always discovered rather than assumed.
    """

    r = run_cmd(["aplay", "-l"], check=False, quiet=True)
    if not r.ok:
        return None
    needle = card_name.lower()
    for index, card in sorted(parse_aplay_cards(r.stdout).items()):
        if needle == card["id"].lower() or needle in card["name"].lower():
            return index
    return None


def render_asound_conf(index: int) -> str:
    return (
        f"defaults.pcm.card {index}\n"
        f"defaults.ctl.card {index}\n"
        "\n"
        "pcm.!default {\n"
        "    type hw\n"
        f"    card {index}\n"
        "}\n"
        "\n"
        "ctl.!default {\n"
        "    type hw\n"
        f"    card {index}\n"
        "}\n"
    )


def boot_config_mentions(paths: Iterable[str], marker: str) -> bool:
    """True when any boot config enables an overlay containing marker."""

    for p in paths:
        path = Path(p)
        try:
            text = path.read_text(encoding="utf-8", errors="ignore")
        except OSError:
            continue
        for line in text.splitlines():
            s = line.strip()
            if s.startswith("dtoverlay=") and marker in s:
                return True
    return False
