"""Source reached over SSH, with file access through SFTP."""

from __future__ import annotations

import hashlib
import json
import logging
import posixpath
import re
import stat
import sys
from datetime import datetime, timedelta, timezone
from typing import Iterator

import paramiko

from capivara.localsource import file_mode_from_string
from capivara.source import FileInfo, Source

log = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 10
_DEFAULT_PORT = 22

_STAT_TIME = re.compile(
    r"(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})(?:\.(\d+))? ([+-])(\d{2})(\d{2})"
)


def _quote(text: str) -> str:
    """Double-quote ``text`` with backslash escapes."""
    return json.dumps(text, ensure_ascii=False)


def _permission_string(mode: int) -> str:
    return stat.filemode(stat.S_IFREG | (mode & 0o777))


def _parse_stat_time(text: str) -> datetime:
    """Parse the ``%y`` output of ``stat``, e.g. ``2024-01-02 10:11:12.5 +0000``."""
    match = _STAT_TIME.fullmatch(text.strip())
    if match is None:
        print(f"Error parsing time: cannot parse {text!r}")
        raise ValueError(f"cannot parse time {text!r}")
    year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
    fraction = (match[7] or "")[:6].ljust(6, "0")
    offset = timedelta(hours=int(match[9]), minutes=int(match[10]))
    if match[8] == "-":
        offset = -offset
    return datetime(
        year, month, day, hour, minute, second, int(fraction), tzinfo=timezone(offset)
    )


def _ensure_remote_dir(sftp, remote_path: str) -> None:
    """Create every missing directory above ``remote_path``."""
    current = "/"
    for part in posixpath.normpath(posixpath.dirname(remote_path)).split("/"):
        if not part:
            continue
        current = posixpath.normpath(posixpath.join(current, part))
        try:
            sftp.stat(current)
        except OSError:
            sftp.mkdir(current)


class SSHSource(Source):
    """Files under ``base_path`` on a host reached over SSH."""

    def __init__(self, client, sftp, base_path: str) -> None:
        self.client = client
        self.sftp = sftp
        self.base_path = base_path

    @classmethod
    def connect(cls, user: str, addr: str, base_path: str, password: str) -> "SSHSource":
        """Open an SSH and SFTP session to ``addr`` (``host:port``)."""
        host, _, port = addr.rpartition(":")
        if not host:
            host, port = addr, str(_DEFAULT_PORT)
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=host,
                port=int(port),
                username=user,
                password=password,
                timeout=_CONNECT_TIMEOUT,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as error:
            raise ConnectionError(f"SSH connection failed: {error}") from error
        try:
            sftp = client.open_sftp()
        except (paramiko.SSHException, OSError) as error:
            client.close()
            raise ConnectionError(f"SFTP client init failed: {error}") from error
        return cls(client, sftp, base_path)

    def _run(self, command: str) -> tuple[int, bytes, bytes]:
        _, stdout, stderr = self.client.exec_command(command)
        out = stdout.read()
        err = stderr.read()
        return stdout.channel.recv_exit_status(), out, err

    def get_file_hash(self, path: str) -> str:
        command = f"md5sum {_quote(self.base_path + path)}"
        try:
            status, out, err = self._run(command)
        except paramiko.SSHException as error:
            log.error("Failed to create SSH session: %s", error)
            raise
        output = out + err
        if status != 0:
            log.error("Failed to execute md5sum command on path %r: status %s", path, status)
            log.debug("Command output: %s", output.decode(errors="replace"))
            raise RuntimeError(f"md5sum exited with status {status} on path {path!r}")
        parts = output.decode(errors="replace").split()
        if not parts:
            raise RuntimeError(f"unexpected md5sum output: {output!r}")
        return parts[0]

    def list_files(self) -> Iterator[FileInfo]:
        try:
            root = self.sftp.lstat(self.base_path)
        except OSError:
            return
        for path, attrs in self._walk(self.base_path, root):
            yield FileInfo(
                path=path,
                permission=_permission_string(attrs.st_mode or 0),
                last_modified=datetime.fromtimestamp(attrs.st_mtime or 0, tz=timezone.utc),
            )

    def _walk(self, top: str, attrs):
        yield top, attrs
        if not stat.S_ISDIR(attrs.st_mode or 0):
            return
        try:
            children = self.sftp.listdir_attr(top)
        except OSError:
            return
        for child in sorted(children, key=lambda item: item.filename):
            child_path = posixpath.normpath(posixpath.join(top, child.filename))
            yield from self._walk(child_path, child)

    def get_file(self, path: str) -> bytes:
        with self.sftp.open(self.base_path + path, "rb") as handle:
            return handle.read()

    def save_file(self, path: str, data: bytes, permission: str) -> None:
        file_path = self.base_path + path
        try:
            _ensure_remote_dir(self.sftp, file_path)
        except OSError as error:
            raise OSError(f"failed to create remote dirs: {error}") from error
        log.debug("Writing file to remote: %s", file_path)
        with self.sftp.open(file_path, "wb") as handle:
            handle.write(data)
        try:
            mode = file_mode_from_string(permission)
        except ValueError as error:
            log.error("Error parsing permission string: %s %s", permission, error)
            mode = 0
        try:
            self.sftp.chmod(file_path, mode)
        except OSError as error:
            raise OSError(f"failed to chmod remote file: {error}") from error

    def exists(self, path: str) -> bool:
        try:
            self.sftp.stat(self.base_path + path)
        except OSError:
            return False
        return True

    def remove_file(self, path: str) -> None:
        self.sftp.remove(self.base_path + path)

    def calculate_file_hash(self, data: bytes) -> str:
        return hashlib.md5(data).hexdigest()

    def get_file_last_modified(self, remote_path: str) -> datetime:
        command = f"stat -c %y {remote_path}"
        print(f"cmd :  {command}", file=sys.stderr)
        status, out, _ = self._run(command)
        if status != 0:
            raise RuntimeError(f"failed to execute command: exit status {status}")
        return _parse_stat_time(out.decode(errors="replace"))