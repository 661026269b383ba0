from __future__ import annotations

import argparse
import logging
import time
from typing import Callable, Optional

from .config import load_config
from .environment import resolve
from .errors import ConfigurationError
from .logging_utils import configure_logging
from .pipeline import Summary, run_resources
from .state_store import load_state, record_run, save_state
from .steps import build_resources

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def report(summary: Summary) -> None:
    """Tell a human exactly what still needs attention."""

    logger.info("Applied %d resource(s): %s", summary.applied_count, ", ".join(summary.applied) or "-")
    for rid in summary.planned:
        logger.info("Would apply: %s", rid)
    for rid in summary.deferred:
        logger.warning("Deferred (re-run later): %s: %s", rid, summary.deferred_reasons.get(rid) or "-")
    for w in summary.warnings:
        logger.warning("Not converged: %s (%s): %s", w.resource_id, w.category, w.message)
    if summary.fatal_error is not None:
        logger.error("Fatal: %s", summary.fatal_error)


def run(
    *,
    config_path: Optional[str] = None,
    user: Optional[str] = None,
    home: Optional[str] = None,
    state_path: Optional[str] = None,
    log_path: Optional[str] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> Summary:
    """Resolve the environment, converge every resource, persist the run record."""

    cfg = load_config(config_path).with_overrides(user=user, home=home)
    dry_run = dry_run or cfg.dry_run
    ctx = resolve(cfg)

    configure_logging(log_path=log_path or str(ctx.default_log_path))

    resources = build_resources(ctx, cfg)
    summary = run_resources(
        resources,
        dry_run=dry_run,
        start_at=start_at,
        stop_after=stop_after,
        sleep=sleep,
    )

    actual_state_path = state_path or str(ctx.default_state_path)
    try:
        state = load_state(actual_state_path)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable run record %s: %s", actual_state_path, e)
        state = {}
    try:
        save_state(actual_state_path, record_run(state, ctx, summary, dry_run=dry_run))
    except OSError as e:
        logger.warning("Could not write run record %s: %s", actual_state_path, e)

    report(summary)
    return summary


def list_resources(config_path: Optional[str], user: Optional[str], home: Optional[str]) -> None:
    cfg = load_config(config_path).with_overrides(user=user, home=home)
    ctx = resolve(cfg)
    for r in build_resources(ctx, cfg):
        print(f"{r.resource_id:24} {r.kind.value:16} {'fatal' if r.fatal else 'warn':6} {r.description}")


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="whisplay-provision",
        description="Converge a Raspberry Pi to a working Whisplay chatbot install (safe to re-run).",
    )
    p.add_argument("--config", default=None, help="Path to provision config (yaml)")
    p.add_argument("--user", default=None, help="Acting user (default: PI_USER, SUDO_USER, then current user)")
    p.add_argument("--home", default=None, help="Home directory of the acting user")
    p.add_argument("--state", default=None, help="Path to run record (json|yaml)")
    p.add_argument("--log", default=None, help="Path to provision log")
    p.add_argument("--start-at", default=None, help="Start at resource id (e.g. app-checkout)")
    p.add_argument("--stop-after", default=None, help="Stop after resource id")
    p.add_argument("--dry-run", action="store_true", help="Report what would change without changing it")
    p.add_argument("--list", action="store_true", help="List resources in order and exit")
    p.add_argument("-v", "--verbose", action="store_true", help="Log command output")

    args = p.parse_args(argv)

    configure_logging(log_path=None, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.list:
            list_resources(args.config, args.user, args.home)
            return EXIT_OK
        summary = run(
            config_path=args.config,
            user=args.user,
            home=args.home,
            state_path=args.state,
            log_path=args.log,
            start_at=args.start_at,
            stop_after=args.stop_after,
            dry_run=bool(args.dry_run),
        )
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG

    return EXIT_OK if summary.ok else EXIT_FATAL


if __name__ == "__main__":
    raise SystemExit(main())
