"""Deduplicated, compressed backup of a source into a destination."""

from __future__ import annotations

import logging
import sqlite3

from capivara.compressor import compress_zstd
from capivara.database import get_file_by_hash, save_file_info, save_snapshot
from capivara.remote_db import remote_database
from capivara.source import FileInfo, Setting, Source

log = logging.getLogger(__name__)

_BLOCK_PERMISSION = "-rw-r--r--"


def get_remote_file_name(file: FileInfo) -> str:
    """Name of the block that stores content with ``file.md5``."""
    return "block_" + file.md5 + ".zst"


def backup(origin: Source, destination: Source, setting: Setting) -> None:
    """Take a new snapshot of ``origin`` and store missing blocks in ``destination``."""
    with remote_database(destination) as db:
        snap_id = save_snapshot(db)
        print("Files in folder:")
        for file in origin.list_files():
            _backup_file(db, origin, destination, setting, file, snap_id)


def _backup_file(
    db: sqlite3.Connection,
    origin: Source,
    destination: Source,
    setting: Setting,
    file: FileInfo,
    snap_id: int,
) -> None:
    log.debug("File is %s MD5: %s Filename: %s", file.path, file.md5, file.filename)
    remote_filename = get_remote_file_name(file)
    exists = destination.exists(remote_filename)

    try:
        previous = get_file_by_hash(db, file.md5)
    except sqlite3.Error as error:
        print("Error getting file by hash:", error)
        previous = None

    reason = ""
    remote_hash = ""
    upload = True
    status = "upload"

    if exists:
        try:
            remote_hash = destination.get_file_hash(remote_filename)
        except (OSError, ValueError, RuntimeError) as error:
            log.error("Error getting file hash: %s", error)
    else:
        reason = "File does not exist in remote storage."

    if previous is None:
        reason = "file has not been backed up previously."
    else:
        log.warning(
            "file exists hash is : %s file hash is: %s", remote_hash, previous.remote_hash
        )

    if previous is not None and exists and remote_hash != previous.remote_hash:
        reason = "Remote file hash does not match."
        if setting.skip_hash:
            upload = False
            status = "skip"

    if reason and upload:
        log.info("Backing up file: %s — reason: %s", file.path, reason)
        try:
            content = origin.get_file(file.path)
        except (OSError, ValueError) as error:
            print("Error getting file:", error)
            content = b""
        log.debug("File size: %d", len(content))
        compressed = compress_zstd(content)
        remote_hash = destination.calculate_file_hash(compressed)
        log.debug(" size of file: %d", len(compressed))
        log.info("Writing file to remote: %s", remote_filename)
        try:
            destination.save_file(remote_filename, compressed, _BLOCK_PERMISSION)
        except (OSError, ValueError) as error:
            log.error("Error saving file to remote storage: %s", error)
        else:
            log.debug("File saved to remote storage successfully")

    try:
        save_file_info(
            db, file.path, file.md5, file.permission, snap_id, remote_hash, status
        )
    except sqlite3.Error as error:
        log.error("Error saving file info to database: %s", error)
    else:
        log.debug("File info saved to database successfully")