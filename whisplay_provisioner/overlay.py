"""Idempotent line-oriented patching of key/value and unit files.

Rules are applied in order. For each rule the first matching line is rewritten
in place; when no line matches, the rule is appended (at end of file, or at the
end of its [section] for unit files). Running the same rules against the
engine's own output is a byte-for-byte no-op.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .lib.assets import read_text_or_empty, write_file

logger = logging.getLogger(__name__)

_SECTION_RE = re.compile(r"^\s*\[(?P<name>[^\]]+)\]\s*$")

# Characters that may continue a path or account name.
_NAME_CHARS = r"A-Za-z0-9_.\-"


@dataclass(frozen=True)
class OverlayRule:
    key: str
    value: str
    separator: str = "="
    pattern: Optional[str] = None
    section: Optional[str] = None

    @property
    def line(self) -> str:
        return f"{self.key}{self.separator}{self.value}"

    def matcher(self) -> "re.Pattern[str]":
        if self.pattern is not None:
            return re.compile(self.pattern)
        return re.compile(rf"^\s*{re.escape(self.key)}\s*{re.escape(self.separator)}")


def _ending(lines: List[str]) -> str:
    for ln in lines:
        if ln.endswith("\r\n"):
            return "\r\n"
        if ln.endswith("\n"):
            return "\n"
    return "\n"


def _section_bounds(lines: List[str], section: str) -> Optional[tuple[int, int]]:
    """Return [start, end) line indexes of a section body, or None."""

    start = None
    for i, ln in enumerate(lines):
        m = _SECTION_RE.match(ln)
        if not m:
            continue
        if start is not None:
            return start, i
        if m.group("name").strip() == section:
            start = i + 1
    if start is None:
        return None
    return start, len(lines)


def _apply_rule(lines: List[str], rule: OverlayRule, eol: str) -> None:
    matcher = rule.matcher()
    lo, hi = 0, len(lines)
    bounds = _section_bounds(lines, rule.section) if rule.section else None
    if bounds is not None:
        lo, hi = bounds

    for i in range(lo, hi):
        if matcher.search(lines[i].rstrip("\r\n")):
            lines[i] = rule.line + eol
            return

    if lines and not lines[-1].endswith("\n"):
        lines[-1] = lines[-1] + eol

    if rule.section and bounds is None:
        if lines and lines[-1].strip():
            lines.append(eol)
        lines.append(f"[{rule.section}]{eol}")
        lines.append(rule.line + eol)
        return

    if bounds is not None:
        # Insert after the last non-blank line of the section body.
        insert_at = hi
        while insert_at > lo and not lines[insert_at - 1].strip():
            insert_at -= 1
        if insert_at > 0 and not lines[insert_at - 1].endswith("\n"):
            lines[insert_at - 1] = lines[insert_at - 1] + eol
        lines.insert(insert_at, rule.line + eol)
        return

    lines.append(rule.line + eol)


def overlay_text(text: str, rules: Sequence[OverlayRule]) -> str:
    lines = text.splitlines(keepends=True)
    eol = _ending(lines)
    for rule in rules:
        _apply_rule(lines, rule, eol)
    return "".join(lines)


def overlay_satisfied(path: Path, rules: Sequence[OverlayRule]) -> bool:
    """True when applying the rules would leave the file unchanged."""

    p = Path(path)
    if not p.exists():
        return not rules
    current = read_text_or_empty(p)
    return overlay_text(current, rules) == current


def apply_overlay(path: Path, rules: Sequence[OverlayRule], *, dry_run: bool = False) -> bool:
    """Apply rules to a file in place. Returns True when the file changed."""

    p = Path(path)
    current = read_text_or_empty(p)
    updated = overlay_text(current, rules)
    if updated == current and p.exists():
        logger.debug("Overlay on %s already satisfied", p)
        return False
    if dry_run:
        logger.info("Would patch %s (%d rules)", p, len(rules))
        return True
    write_file(p, updated)
    logger.info("Patched %s (%s)", p, ", ".join(r.key for r in rules))
    return True


def rules_from_mapping(values: Mapping[str, str], tokens: Mapping[str, str]) -> List[OverlayRule]:
    """Build KEY=VALUE rules, rendering `{token}` placeholders in values."""

    rules: List[OverlayRule] = []
    for key, value in values.items():
        try:
            rendered = str(value).format_map(dict(tokens))
        except KeyError as e:
            raise ValueError(f"Unknown placeholder {e} in value for {key}") from e
        rules.append(OverlayRule(key=key, value=rendered))
    return rules


def substitute_tokens(text: str, mapping: Mapping[str, str]) -> str:
    """Replace whole path/account tokens in a single pass.

    A token only matches when it is not glued to other name characters on
    either side, so '/home/pi' never rewrites '/home/pi5ai'. Longer tokens
    win over shorter ones, and replacements are never re-scanned.
    """

    tokens = [t for t in mapping if t]
    if not tokens:
        return text
    tokens.sort(key=len, reverse=True)
    alternation = "|".join(re.escape(t) for t in tokens)
    pattern = re.compile(rf"(?<![{_NAME_CHARS}])(?:{alternation})(?![{_NAME_CHARS}])")
    return pattern.sub(lambda m: mapping[m.group(0)], text)


def render_unit(
    template: str,
    *,
    user: str,
    home: Path,
    app_dir: Path,
    template_user: str,
    template_home: str,
) -> str:
    """Adapt a restored unit file to the resolved environment."""

    template_home = template_home.rstrip("/")
    mapping: Dict[str, str] = {
        f"{template_home}/{app_dir.name}": str(app_dir),
        template_home: str(home),
    }
    text = substitute_tokens(template, mapping)

    rules = [
        OverlayRule(key="User", value=user, section="Service"),
        OverlayRule(key="WorkingDirectory", value=str(app_dir), section="Service"),
    ]
    # Group= is only normalized when it named the template account.
    if re.search(rf"^\s*Group\s*=\s*{re.escape(template_user)}\s*$", text, flags=re.MULTILINE):
        rules.append(OverlayRule(key="Group", value=user, section="Service"))
    return overlay_text(text, rules)
