import os

import pytest

from capivara.cli import build_source, ensure_trailing_slash, main
from capivara.compressor import decompress_zstd
from capivara.localsource import LocalSource
from capivara.ssh import SSHSource
from capivara.webdav import WebDAVSource


@pytest.fixture
def dirs(tmp_path, monkeypatch):
    work = tmp_path / "work"
    origin = tmp_path / "origin"
    dest = tmp_path / "dest"
    restored = tmp_path / "restored"
    for directory in (work, origin, dest):
        directory.mkdir()
    (origin / "a.txt").write_bytes(b"alpha content")
    (origin / "sub").mkdir()
    (origin / "sub" / "b.txt").write_bytes(b"beta content")
    monkeypatch.chdir(work)
    return {"work": work, "origin": origin, "dest": dest, "restored": restored}


@pytest.mark.parametrize(
    "path, expected",
    [("a", "a/"), ("a/", "a/"), ("", "/"), ("/srv/data", "/srv/data/")],
)
def test_ensure_trailing_slash(path, expected):
    assert ensure_trailing_slash(path) == expected


def test_build_local_source(tmp_path):
    source = build_source(str(tmp_path), "", "")
    assert isinstance(source, LocalSource)
    assert source.localpath == str(tmp_path) + "/"


def test_build_webdav_source_with_user_in_path():
    password = "password"
    source = build_source("user@http://example.com/dav/", password, "")
    assert isinstance(source, WebDAVSource)
    assert source.server == "http://example.com/dav/"
    assert source.username == "user"
    assert source.password == "password"


def test_build_webdav_source_with_user_flag():
    password = "password"
    source = build_source("http://example.com/dav/", password, "user")
    assert source.server == "http://example.com/dav/"
    assert source.username == "user"


def test_build_webdav_source_without_user_fails():
    password = "password"
    with pytest.raises(ValueError, match="User not provided"):
        build_source("http://example.com/dav/", password, "")


def test_build_webdav_source_prompts_for_password(mocker):
    prompt = mocker.patch("getpass.getpass", return_value="password")
    source = build_source("user@http://example.com/dav/", "", "")
    prompt.assert_called_once_with("Enter password: ")
    assert source.password == "password"


def test_build_ssh_source(mocker):
    client_class = mocker.patch("paramiko.SSHClient")
    password = "password"
    source = build_source("user@example.com:/srv/backup", password, "")
    assert isinstance(source, SSHSource)
    assert source.base_path == "/srv/backup/"
    kwargs = client_class.return_value.connect.call_args.kwargs
    assert kwargs["hostname"] == "example.com"
    assert kwargs["port"] == 22
    assert kwargs["username"] == "user"
    assert kwargs["password"] == "password"


def test_build_ssh_source_without_path_fails():
    password = "password"
    with pytest.raises(ValueError):
        build_source("user@example.com", password, "")


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "backup" in capsys.readouterr().out


def test_backup_requires_dest(dirs):
    assert main(["backup", "--origin", str(dirs["origin"])]) == 1


def test_invalid_compress_value(dirs):
    args = ["backup", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])]
    assert main(args + ["--x=maybe"]) == 1


def test_backup_stores_blocks_and_catalogue(dirs, capsys):
    args = ["backup", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])]
    assert main(args) == 0
    assert "Backup completed successfully" in capsys.readouterr().out
    stored = sorted(os.listdir(dirs["dest"]))
    assert "snapshot_files.db" in stored
    blocks = [name for name in stored if name.startswith("block_")]
    assert len(blocks) == 2
    contents = {decompress_zstd((dirs["dest"] / name).read_bytes()) for name in blocks}
    assert contents == {b"alpha content", b"beta content"}
    assert not (dirs["work"] / "snapshot_files.db").exists()


def test_restore_list_shows_snapshot(dirs, capsys):
    main(["backup", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])])
    capsys.readouterr()
    assert main(["restore", "--dest", str(dirs["dest"]), "--list"]) == 0
    out = capsys.readouterr().out
    assert "Listing snapshots" in out
    assert "Snapshot ID: 1 Date:" in out


def test_backup_then_restore_round_trip(dirs):
    main(["backup", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])])
    status = main(
        ["restore", "--origin", str(dirs["restored"]), "--dest", str(dirs["dest"])]
    )
    assert status == 0
    assert (dirs["restored"] / "a.txt").read_bytes() == b"alpha content"
    assert (dirs["restored"] / "sub" / "b.txt").read_bytes() == b"beta content"
    assert (dirs["dest"] / "snapshot_files.db").exists()


def test_restore_unknown_snapshot_fails(dirs):
    main(["backup", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])])
    status = main(
        [
            "restore",
            "--origin",
            str(dirs["restored"]),
            "--dest",
            str(dirs["dest"]),
            "--snap",
            "1999-01-01 00:00:00",
        ]
    )
    assert status == 1
    assert not (dirs["restored"] / "a.txt").exists()


def test_rsync_copies_files(dirs):
    args = ["rsync", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])]
    assert main(args) == 0
    assert (dirs["dest"] / "a.txt").read_bytes() == b"alpha content"
    assert (dirs["dest"] / "sub" / "b.txt").read_bytes() == b"beta content"


def test_rsync_delete_removes_extra_files(dirs):
    (dirs["dest"] / "stale.txt").write_bytes(b"old")
    args = ["rsync", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])]
    assert main(args + ["--delete"]) == 0
    assert not (dirs["dest"] / "stale.txt").exists()
    assert (dirs["dest"] / "a.txt").read_bytes() == b"alpha content"


def test_rsync_without_delete_keeps_extra_files(dirs):
    (dirs["dest"] / "stale.txt").write_bytes(b"old")
    args = ["rsync", "--origin", str(dirs["origin"]), "--dest", str(dirs["dest"])]
    assert main(args) == 0
    assert (dirs["dest"] / "stale.txt").read_bytes() == b"old"