"""Relay logging: one file logger, kept short enough for /api/logs/tail."""

from __future__ import annotations

import logging
from pathlib import Path

from relay.core.config import settings

LOG_PATH = Path(settings.log_file)
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)

KEEP_LINES = 10000
TRUNCATE_AFTER_LINES = 15000


def truncate_log_file(path: Path | None = None) -> int:
    """Drop the oldest relay log lines once the file passes TRUNCATE_AFTER_LINES.

    The newest KEEP_LINES lines are written to a sibling ``.tmp`` file that
    then replaces the log, so a concurrent tail never sees a half-written file.

    Returns:
        Number of lines removed (0 when nothing was truncated)
    """
    path = path or LOG_PATH
    if not path.exists():
        return 0

    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
        if len(lines) <= TRUNCATE_AFTER_LINES:
            return 0

        kept = lines[-KEEP_LINES:]
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.writelines(kept)
        tmp_path.replace(path)
    except OSError as e:
        # logging is not configured yet on the first call
        print(f"RELAY_LOG_TRUNCATE_FAILED path={path} error={e}")
        return 0

    print(f"RELAY_LOG_TRUNCATED path={path} removed={len(lines) - len(kept)}")
    return len(lines) - len(kept)


truncate_log_file()

logging.basicConfig(
    filename=str(LOG_PATH),
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)

log = logging.getLogger("locket-relay")
