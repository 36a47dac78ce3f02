"""Deduplicating zstd-compressed backups with snapshots on local, SSH or WebDAV storage."""

__version__ = "0.1.0"