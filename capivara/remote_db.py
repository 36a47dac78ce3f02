"""Fetching the snapshot catalogue from a destination and putting it back."""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from capivara.database import init_db
from capivara.source import Source

log = logging.getLogger(__name__)

DB_FILENAME = "snapshot_files.db"
DB_PERMISSION = "-rw-r--r--"

_DISPLAY_ZONE = "America/Sao_Paulo"
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_database_from_remote(destination: Source) -> sqlite3.Connection:
    """Move the catalogue from ``destination`` to the working directory and open it.

    When the destination holds no catalogue a fresh one is created locally.
    """
    try:
        data = destination.get_file(DB_FILENAME)
    except (OSError, ValueError) as error:
        log.error("Error getting database file from remote storage: %s", error)
    else:
        log.info("Database file already exists in remote storage")
        try:
            Path(DB_FILENAME).write_bytes(data)
        except OSError as error:
            log.error("failed to write file: %s", error)
        try:
            destination.remove_file(DB_FILENAME)
        except (OSError, ValueError) as error:
            log.error("Error removing file from remote storage: %s", error)
    return init_db(DB_FILENAME)


def _upload_database(destination: Source) -> None:
    try:
        data = Path(DB_FILENAME).read_bytes()
    except OSError:
        data = b""
    log.info("Saving database file to remote storage")
    destination.save_file(DB_FILENAME, data, DB_PERMISSION)
    try:
        os.remove(DB_FILENAME)
    except OSError as error:
        log.error("Error removing local database file: %s", error)


@contextmanager
def remote_database(destination: Source) -> Iterator[sqlite3.Connection]:
    """Open the destination's catalogue and store it back there on exit.

    Raises whatever ``save_file`` raises when the catalogue cannot be stored;
    the local copy is then left in place.
    """
    db = get_database_from_remote(destination)
    try:
        yield db
    finally:
        log.info("Clean up environment")
        db.close()
        _upload_database(destination)


def time_to_string(t: datetime) -> str:
    """Format ``t`` as ``YYYY-MM-DD HH:MM:SS`` in the display time zone."""
    try:
        zone = ZoneInfo(_DISPLAY_ZONE)
    except ZoneInfoNotFoundError as error:
        log.error("Error loading timezone: %s", error)
        return t.strftime(_TIME_FORMAT)
    return t.astimezone(zone).strftime(_TIME_FORMAT)