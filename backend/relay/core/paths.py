from __future__ import annotations

from pathlib import Path

# Project root is 3 levels up from this file (backend/relay/core/paths.py -> root)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent

# Data directory at project root (logs, spooled uploads)
DATA_DIR = PROJECT_ROOT / "data"


def get_data_path(filename: str = "") -> Path:
    """Get path to file in the data directory.

    Args:
        filename: Optional filename to append to data directory path

    Returns:
        Path object pointing to data/ or data/filename
    """
    if filename:
        return DATA_DIR / filename
    return DATA_DIR
