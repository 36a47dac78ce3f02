"""One-way mirroring of a source into a destination."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from capivara.remote_db import time_to_string
from capivara.source import Source

log = logging.getLogger(__name__)

_FILE_PERMISSION = "-rw-r--r--"


def _is_after(first: Optional[datetime], second: Optional[datetime]) -> bool:
    """Compare times where an unknown time counts as the earliest possible."""
    if first is None:
        return False
    if second is None:
        return True
    return first > second


def _show(moment: Optional[datetime]) -> str:
    return time_to_string(moment) if moment is not None else "unknown"


def rsync(origin: Source, destination: Source, delete: bool) -> None:
    """Copy new and changed files from ``origin`` to ``destination``.

    A differing destination file that is newer than the origin file is kept.
    With ``delete`` set, destination files missing from the origin are removed.
    """
    files = origin.list_files()

    if delete:
        log.info("deleting files on destination if not in the origin")
        for file in destination.list_files():
            if not origin.exists(file.path):
                log.error(
                    "File not found in origin, removing from destination: %s", file.path
                )
                try:
                    destination.remove_file(file.path)
                except (OSError, ValueError) as error:
                    log.error("Error removing file from destination: %s", error)

    log.info("Syncing files from origin to destination")
    for file in files:
        log.debug(
            "file : %s MD5: %s Filename: %s LT : %s",
            file.path,
            file.md5,
            file.filename,
            file.last_modified,
        )
        reason = ""
        if destination.exists(file.path):
            try:
                remote_hash = destination.get_file_hash(file.path)
            except (OSError, ValueError, RuntimeError) as error:
                log.error("Error getting file hash: %s", error)
                remote_hash = ""
            if remote_hash != file.md5:
                try:
                    last_modified: Optional[datetime] = destination.get_file_last_modified(
                        file.path
                    )
                except (OSError, ValueError, RuntimeError) as error:
                    log.error("Error getting file last modified: %s", error)
                    last_modified = None
                log.info("local hash is : %s remote_hash is : %s", file.md5, remote_hash)
                if _is_after(last_modified, file.last_modified):
                    log.warning(
                        "The File: %s is older: %s then remote: %s",
                        file.path,
                        _show(file.last_modified),
                        _show(last_modified),
                    )
                else:
                    reason = "Remote file hash does not match."
            else:
                log.debug("File already exists in remote storage, skipping upload. %s", file.path)
        else:
            reason = "File does not exist in remote storage."

        if reason:
            log.info("Sync up file: %s — reason: %s", file.path, reason)
            try:
                content = origin.get_file(file.path)
            except (OSError, ValueError) as error:
                print("Error getting file:", error)
                content = b""
            log.info("Writing file to remote: %s", file.path)
            try:
                destination.save_file(file.path, content, _FILE_PERMISSION)
            except (OSError, ValueError) as error:
                log.error("Error saving file to remote storage: %s", error)
            else:
                log.debug("File saved to remote storage successfully")
        log.debug("File synced successfully %s", file.path)