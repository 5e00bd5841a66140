"""Locate the most recent video in a folder.

Files are classified by their content signature (via the ``filetype``
library), not by extension, so a renamed or extension-less recording is
still found and a stray ``.mp4`` text file is not.
"""

from __future__ import annotations

import logging
from pathlib import Path

import filetype

logger = logging.getLogger(__name__)


def is_video(path: Path) -> bool:
    """Return True if the header of *path* identifies a video container."""
    return filetype.is_video(str(path))


def find_newest(directory: Path | str, log: logging.Logger | None = None) -> Path | None:
    """
    Return the most recently modified video directly inside *directory*.

    Sub-folders are not searched.  When two videos share the same
    modification time the one listed last wins; listing order depends on
    the filesystem.  Returns None when the folder holds no video.
    """
    log = log or logger
    directory = Path(directory)
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        log.error("Cannot list %s: %s", directory, exc)
        return None

    newest: Path | None = None
    newest_mtime = 0.0
    for entry in entries:
        try:
            if not entry.is_file() or not is_video(entry):
                continue
            mtime = entry.stat().st_mtime
        except OSError as exc:
            log.error("Skipping %s: %s", entry, exc)
            continue
        if newest is None or mtime >= newest_mtime:
            newest = entry
            newest_mtime = mtime

    if newest is None:
        log.debug("No video found in %s", directory)
    else:
        log.debug("Newest video in %s: %s", directory, newest.name)
    return newest
