from __future__ import annotations

import logging
from pathlib import Path

from .config import BenchmarkConfigError

LOGGER = logging.getLogger("iobench.filelists")


def load_file_list(path: str | Path) -> tuple[str, ...]:
    """Read a newline-delimited list of file paths.

    Order and duplicates are preserved; blank lines are ignored.
    """

    try:
        with open(path, "r", encoding="utf-8") as handle:
            entries = tuple(line.strip() for line in handle if line.strip())
    except OSError as exc:
        raise BenchmarkConfigError(f"could not read list of files: {path}") from exc

    LOGGER.debug("Loaded %d entries from %s", len(entries), path)
    return entries
