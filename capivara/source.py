"""Common types shared by every storage source."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional


@dataclass(frozen=True)
class FileInfo:
    """A file found while listing a source."""

    path: str
    md5: str = ""
    filename: str = ""
    permission: str = ""
    remote_hash: str = ""
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class Setting:
    """Options that steer a backup run."""

    compress: bool = False
    skip_hash: bool = False


class Source(ABC):
    """A place files can be listed, read, written and removed."""

    @abstractmethod
    def list_files(self) -> Iterator[FileInfo]:
        """Yield every file held by the source."""

    @abstractmethod
    def get_file(self, path: str) -> bytes:
        """Return the content of the file at ``path``."""

    @abstractmethod
    def save_file(self, path: str, data: bytes, permission: str) -> None:
        """Write ``data`` to ``path`` with the given ``-rwxr-xr-x`` permission."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Tell whether ``path`` exists."""

    @abstractmethod
    def get_file_hash(self, path: str) -> str:
        """Return the checksum of the stored file at ``path``."""

    @abstractmethod
    def remove_file(self, path: str) -> None:
        """Delete the file at ``path``."""

    @abstractmethod
    def calculate_file_hash(self, data: bytes) -> str:
        """Return the checksum this source would report for ``data``."""

    @abstractmethod
    def get_file_last_modified(self, remote_path: str) -> datetime:
        """Return the modification time of the file at ``remote_path``."""