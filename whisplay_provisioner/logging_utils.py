from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

LOG_FILENAME = "whisplay-provision.log"


def configure_logging(
    log_path: Optional[str] = None,
    level: Optional[int] = None,
    also_console: bool = True,
) -> Optional[str]:
    """Configure logging.

    Every decision the run makes is logged to log_path (normally under the
    acting user's state dir) and to the console.

    Notes:
    - If the log path cannot be created we fall back to a file in the
      current working directory rather than losing the record.
    - log_path=None configures the console only (used before the
      environment, and hence the state dir, is known).
    - A second call only adds the file handler if the first had none.

    Returns the actual file path being used, if any.
    """

    logger = logging.getLogger()
    if level is not None:
        logger.setLevel(level)
    elif not getattr(logger, "_whisplay_console", False):
        logger.setLevel(logging.INFO)

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    if not getattr(logger, "_whisplay_console", False) and also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        logger.addHandler(console)
        setattr(logger, "_whisplay_console", True)

    if log_path is None or getattr(logger, "_whisplay_log_path", None):
        return getattr(logger, "_whisplay_log_path", None)

    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        chosen_path = log_path
    except OSError:
        # Fall back to a writable location.
        chosen_path = str(Path.cwd() / LOG_FILENAME)
        file_handler = logging.FileHandler(chosen_path)
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)

    setattr(logger, "_whisplay_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
