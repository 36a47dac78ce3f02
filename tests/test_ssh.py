import errno
import io
import posixpath
import stat
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import paramiko
import pytest

from capivara.localsource import LocalSource, file_mode_from_string
from capivara.ssh import SSHSource

MTIME = 1_700_000_000


class _Writer(io.BytesIO):
    def __init__(self, owner, path):
        super().__init__()
        self._owner = owner
        self._path = path

    def close(self):
        if not self.closed:
            self._owner.files[self._path] = self.getvalue()
            self._owner.modes.setdefault(self._path, 0o644)
        super().close()


class FakeSFTP:
    def __init__(self, dirs=(), files=None, modes=None):
        self.dirs = {"/", *dirs}
        self.files = dict(files or {})
        self.modes = dict(modes or {})

    @staticmethod
    def _norm(path):
        return posixpath.normpath(path)

    def stat(self, path):
        path = self._norm(path)
        attrs = paramiko.SFTPAttributes()
        if path in self.files:
            attrs.st_mode = stat.S_IFREG | self.modes.get(path, 0o644)
        elif path in self.dirs:
            attrs.st_mode = stat.S_IFDIR | 0o755
        else:
            raise IOError(errno.ENOENT, "No such file", path)
        attrs.st_mtime = MTIME
        attrs.filename = posixpath.basename(path)
        return attrs

    def lstat(self, path):
        return self.stat(path)

    def listdir_attr(self, path):
        path = self._norm(path)
        prefix = path.rstrip("/") + "/"
        names = []
        for entry in [*self.files, *self.dirs]:
            rest = entry[len(prefix):] if entry.startswith(prefix) else ""
            if rest and "/" not in rest:
                names.append(entry)
        return [self.stat(name) for name in sorted(names, reverse=True)]

    def open(self, path, mode):
        path = self._norm(path)
        if mode == "rb":
            if path not in self.files:
                raise IOError(errno.ENOENT, "No such file", path)
            return io.BytesIO(self.files[path])
        if posixpath.dirname(path) not in self.dirs:
            raise IOError(errno.ENOENT, "No such directory", path)
        return _Writer(self, path)

    def mkdir(self, path):
        path = self._norm(path)
        if posixpath.dirname(path) not in self.dirs:
            raise IOError(errno.ENOENT, "No parent", path)
        self.dirs.add(path)

    def chmod(self, path, mode):
        path = self._norm(path)
        if path not in self.files:
            raise IOError(errno.ENOENT, "No such file", path)
        self.modes[path] = mode

    def remove(self, path):
        path = self._norm(path)
        if path not in self.files:
            raise IOError(errno.ENOENT, "No such file", path)
        del self.files[path]


def fake_client(stdout=b"", stderr=b"", status=0):
    client = MagicMock()
    out = MagicMock()
    out.read.return_value = stdout
    out.channel.recv_exit_status.return_value = status
    err = MagicMock()
    err.read.return_value = stderr
    client.exec_command.return_value = (MagicMock(), out, err)
    return client


def test_save_file_creates_dirs_and_round_trips():
    sftp = FakeSFTP()
    source = SSHSource(MagicMock(), sftp, "/backup/")
    source.save_file("a/b/file.txt", b"data", "-rwxr-x---")
    assert {"/backup", "/backup/a", "/backup/a/b"} <= sftp.dirs
    assert sftp.modes["/backup/a/b/file.txt"] == file_mode_from_string("-rwxr-x---")
    assert source.get_file("a/b/file.txt") == b"data"


def test_save_file_with_bad_permission_sets_no_bits():
    sftp = FakeSFTP(dirs={"/backup"})
    source = SSHSource(MagicMock(), sftp, "/backup/")
    source.save_file("file.txt", b"x", "invalid")
    assert sftp.modes["/backup/file.txt"] == 0


def test_exists_and_remove_file():
    sftp = FakeSFTP(dirs={"/backup"}, files={"/backup/f.txt": b"1"})
    source = SSHSource(MagicMock(), sftp, "/backup/")
    assert source.exists("f.txt") is True
    source.remove_file("f.txt")
    assert source.exists("f.txt") is False
    with pytest.raises(OSError):
        source.remove_file("f.txt")


def test_get_missing_file_raises():
    source = SSHSource(MagicMock(), FakeSFTP(), "/backup/")
    with pytest.raises(OSError):
        source.get_file("missing.txt")


def test_list_files_walks_sorted_with_full_paths():
    sftp = FakeSFTP(
        dirs={"/data", "/data/sub"},
        files={"/data/b.txt": b"b", "/data/a.txt": b"a", "/data/sub/c.txt": b"c"},
        modes={"/data/a.txt": 0o640},
    )
    source = SSHSource(MagicMock(), sftp, "/data/")
    found = list(source.list_files())
    assert [info.path for info in found] == [
        "/data/",
        "/data/a.txt",
        "/data/b.txt",
        "/data/sub",
        "/data/sub/c.txt",
    ]
    by_path = {info.path: info for info in found}
    assert by_path["/data/a.txt"].permission == "-rw-r-----"
    assert by_path["/data/sub"].permission == "-rwxr-xr-x"
    assert by_path["/data/a.txt"].last_modified == datetime.fromtimestamp(MTIME, tz=timezone.utc)


def test_list_files_of_missing_root_is_empty():
    source = SSHSource(MagicMock(), FakeSFTP(), "/nowhere/")
    assert list(source.list_files()) == []


def test_get_file_hash_reads_first_field():
    client = fake_client(stdout=b"abc123  /base/x.txt\n")
    source = SSHSource(client, FakeSFTP(), "/base/")
    assert source.get_file_hash("x.txt") == "abc123"
    client.exec_command.assert_called_once_with('md5sum "/base/x.txt"')


def test_get_file_hash_failing_command_raises():
    client = fake_client(stderr=b"md5sum: no such file", status=1)
    source = SSHSource(client, FakeSFTP(), "/base/")
    with pytest.raises(RuntimeError):
        source.get_file_hash("x.txt")


def test_get_file_hash_empty_output_raises():
    source = SSHSource(fake_client(stdout=b"   \n"), FakeSFTP(), "/base/")
    with pytest.raises(RuntimeError, match="unexpected md5sum output"):
        source.get_file_hash("x.txt")


def test_calculate_file_hash_is_md5_like_local_source():
    source = SSHSource(MagicMock(), FakeSFTP(), "/")
    data = b"test data"
    assert source.calculate_file_hash(data) == LocalSource().calculate_file_hash(data)
    assert len(source.calculate_file_hash(data)) == 32


def test_get_file_last_modified_parses_stat_output():
    client = fake_client(stdout=b"2024-03-05 10:20:30.123456789 -0300\n")
    source = SSHSource(client, FakeSFTP(), "/base/")
    result = source.get_file_last_modified("/base/x.txt")
    assert result == datetime(
        2024, 3, 5, 10, 20, 30, 123456, tzinfo=timezone(timedelta(hours=-3))
    )
    client.exec_command.assert_called_once_with("stat -c %y /base/x.txt")


def test_get_file_last_modified_without_fraction():
    client = fake_client(stdout=b"2024-03-05 10:20:30 +0000\n")
    source = SSHSource(client, FakeSFTP(), "/base/")
    assert source.get_file_last_modified("x") == datetime(
        2024, 3, 5, 10, 20, 30, tzinfo=timezone.utc
    )


def test_get_file_last_modified_bad_output_raises():
    source = SSHSource(fake_client(stdout=b"garbage"), FakeSFTP(), "/base/")
    with pytest.raises(ValueError):
        source.get_file_last_modified("x")


def test_get_file_last_modified_failing_command_raises():
    source = SSHSource(fake_client(status=1), FakeSFTP(), "/base/")
    with pytest.raises(RuntimeError):
        source.get_file_last_modified("x")


def test_connect_opens_ssh_and_sftp(mocker):
    client_class = mocker.patch("capivara.ssh.paramiko.SSHClient")
    client = client_class.return_value
    sftp = object()
    client.open_sftp.return_value = sftp
    password = "password"
    source = SSHSource.connect("backup", "host.example.com:22", "/srv/", password)
    client.connect.assert_called_once_with(
        hostname="host.example.com",
        port=22,
        username="backup",
        password=password,
        timeout=10,
        allow_agent=False,
        look_for_keys=False,
    )
    assert source.sftp is sftp
    assert source.client is client
    assert source.base_path == "/srv/"


def test_connect_failure_raises_connection_error(mocker):
    client_class = mocker.patch("capivara.ssh.paramiko.SSHClient")
    client_class.return_value.connect.side_effect = paramiko.AuthenticationException("denied")
    password = "password"
    with pytest.raises(ConnectionError, match="SSH connection failed"):
        SSHSource.connect("backup", "host.example.com:22", "/srv/", password)


def test_connect_sftp_failure_raises_connection_error(mocker):
    client_class = mocker.patch("capivara.ssh.paramiko.SSHClient")
    client_class.return_value.open_sftp.side_effect = paramiko.SSHException("no sftp")
    password = "password"
    with pytest.raises(ConnectionError, match="SFTP client init failed"):
        SSHSource.connect("backup", "host.example.com:22", "/srv/", password)