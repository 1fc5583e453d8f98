"""
Locate the freshest ralph status file.

ralph.zsh writes one status file per shell (ralph-status-$$.json) into the
shared temp directory. Stale files from dead shells are left behind, so the
current one is whichever was modified last. Freshness is decided purely by
mtime, never by content.
"""

import logging
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from ralphdash.lib.constants import STATUS_FILE_PREFIX, STATUS_FILE_SUFFIX

logger = logging.getLogger(__name__)


def find_latest(paths: Iterable[Path]) -> Optional[Path]:
    """Return the path with the greatest mtime.

    Candidates that cannot be stat'ed (deleted between listing and stat,
    permission errors) are skipped. Ties keep the earlier candidate.
    """
    latest: Optional[Path] = None
    latest_mtime = 0.0

    for path in paths:
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            logger.debug(f"Skipping status candidate {path}: {e}")
            continue
        if latest is None or mtime > latest_mtime:
            latest = path
            latest_mtime = mtime

    return latest


class StatusFileLocator:
    """Finds <directory>/<prefix>*<suffix> with the newest mtime.

    Cheap enough to call on every poll tick.
    """

    def __init__(
        self,
        directory: Optional[Path] = None,
        prefix: str = STATUS_FILE_PREFIX,
        suffix: str = STATUS_FILE_SUFFIX,
    ) -> None:
        self.directory = Path(directory) if directory is not None else Path(tempfile.gettempdir())
        self.prefix = prefix
        self.suffix = suffix

    def candidates(self) -> list[Path]:
        """Matching files in stable (sorted) order. Empty if the directory is missing."""
        try:
            return sorted(self.directory.glob(f"{self.prefix}*{self.suffix}"))
        except OSError as e:
            logger.debug(f"Cannot list {self.directory}: {e}")
            return []

    def locate(self) -> Optional[Path]:
        return find_latest(self.candidates())
