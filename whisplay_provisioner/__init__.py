"""Whisplay provisioner (Python-first, convergence-driven).

Core design goals:
- Every resource checks before it acts
- Safe to re-run at any point
- Patch existing config in place, never clobber it
- One resolved environment for every path
- Centralized logging and a per-run record
"""

__all__ = []
