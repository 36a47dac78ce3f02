"""Restoring a snapshot from a destination back into an origin."""

from __future__ import annotations

import logging

from capivara.backup import get_remote_file_name
from capivara.compressor import decompress_zstd
from capivara.database import get_last_snap, get_snap_by_date, list_files_by_snapshot
from capivara.remote_db import remote_database
from capivara.source import Source

log = logging.getLogger(__name__)


def restore(origin: Source, destination: Source, snap_date: str, clean: bool) -> None:
    """Bring ``origin`` back to the snapshot taken at ``snap_date`` (latest if empty).

    Raises LookupError when no such snapshot exists.
    """
    with remote_database(destination) as db:
        if not snap_date:
            log.warning("SnapShot Date not provided, using the last snapshot")
            snapshot = get_last_snap(db)
        else:
            log.info("Searching SnapShot date: %s", snap_date)
            snapshot = get_snap_by_date(db, snap_date)
        if snapshot is None:
            raise LookupError(f"snapshot not found: {snap_date or 'latest'}")
        log.info("Restoring snapshot ID: %s Date: %s", snapshot.id, snapshot.date)

        records = list_files_by_snapshot(db, snapshot.id)

        if clean:
            log.warning(
                "Clean Flag activated - removing all files in origin that are not in the snapshot"
            )
            known = {record.md5 for record in records}
            for file in origin.list_files():
                if file.md5 not in known:
                    log.warning("removing the file from origin storage: %s", file.path)

        for record in records:
            log.debug("Restoring file: %s", record.path)
            exists = origin.exists(record.path)
            try:
                current_hash = origin.get_file_hash(record.path)
            except (OSError, ValueError, RuntimeError):
                current_hash = ""
            if exists and current_hash == record.md5:
                log.debug("File already exists in origin storage %s", record.path)
                continue
            data = destination.get_file(get_remote_file_name(record))
            log.info("File restored from destination storage")
            origin.save_file(record.path, decompress_zstd(data), record.permission)