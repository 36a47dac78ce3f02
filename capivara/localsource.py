"""Source backed by a directory on the local file system."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator

from capivara.source import FileInfo, Source

log = logging.getLogger(__name__)

# (position in the string, characters that set the bit, bit)
_PERMISSION_BITS = (
    (1, "r", 0o400),
    (2, "w", 0o200),
    (3, "xs", 0o100),
    (4, "r", 0o040),
    (5, "w", 0o020),
    (6, "xs", 0o010),
    (7, "r", 0o004),
    (8, "w", 0o002),
    (9, "xt", 0o001),
)


def file_mode_from_string(perm_str: str) -> int:
    """Turn a ``-rw-r--r--`` style string into permission bits."""
    if len(perm_str) != 10:
        raise ValueError(f"invalid permission string: {perm_str!r}")
    return sum(bit for index, chars, bit in _PERMISSION_BITS if perm_str[index] in chars)


def _permission_string(mode: int) -> str:
    letters = "rwxrwxrwx"
    bits = (0o400, 0o200, 0o100, 0o040, 0o020, 0o010, 0o004, 0o002, 0o001)
    return "-" + "".join(
        letter if mode & bit else "-" for letter, bit in zip(letters, bits)
    )


@dataclass(frozen=True)
class LocalSource(Source):
    """Files under ``localpath``; paths are appended to it as given."""

    localpath: str = ""

    def _full(self, path: str) -> str:
        return self.localpath + path

    def exists(self, path: str) -> bool:
        log.debug("Checking if file exists: %s", self._full(path))
        try:
            os.stat(self._full(path))
        except OSError:
            return False
        return True

    def get_file_hash(self, path: str) -> str:
        digest = hashlib.md5()
        with open(self._full(path), "rb") as handle:
            for chunk in iter(lambda: handle.read(65536), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def get_file(self, path: str) -> bytes:
        with open(self._full(path), "rb") as handle:
            return handle.read()

    def remove_file(self, path: str) -> None:
        os.remove(self._full(path))

    def save_file(self, path: str, data: bytes, permission: str) -> None:
        file_path = self._full(path)
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        mode = file_mode_from_string(permission)
        with open(file_path, "wb") as handle:
            handle.write(data)
        os.chmod(file_path, mode)

    def calculate_file_hash(self, data: bytes) -> str:
        return hashlib.md5(data).hexdigest()

    def list_files(self) -> Iterator[FileInfo]:
        try:
            yield from self._walk(self.localpath)
        except OSError as error:
            print(f"Error walking directory: {error}")

    def _walk(self, directory: str) -> Iterator[FileInfo]:
        with os.scandir(directory) as scanner:
            entries = sorted(scanner, key=lambda entry: entry.name)
        for entry in entries:
            full_path = os.path.join(directory, entry.name)
            if entry.is_dir(follow_symlinks=False):
                yield from self._walk(full_path)
                continue
            relative_path = full_path.replace(self.localpath, "")
            try:
                md5sum = self.get_file_hash(relative_path)
            except OSError:
                md5sum = ""
            info = entry.stat(follow_symlinks=False)
            permission = _permission_string(info.st_mode & 0o777)
            log.debug("File: %s %s %s %s", full_path, md5sum, relative_path, permission)
            yield FileInfo(
                path=relative_path,
                md5=md5sum,
                filename=entry.name,
                permission=permission,
                last_modified=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
            )

    def get_file_last_modified(self, remote_path: str) -> datetime:
        info = os.stat(self._full(remote_path))
        return datetime.fromtimestamp(info.st_mtime, tz=timezone.utc)