# capivara

`capivara` backs up a folder to storage elsewhere. It keeps each file as a
zstd-compressed block named `block_<md5>.zst`, after the MD5 checksum of the
file's content, so files with the same content are stored once. Every backup
run records a snapshot in a small SQLite catalogue (`snapshot_files.db`). The
catalogue is kept next to the blocks, and you can restore a folder to the
state of any earlier run.

Either side can be one of three kinds of storage:

| Location form                          | Storage                                  |
|----------------------------------------|------------------------------------------|
| `/some/local/folder`                   | local disk                               |
| `user@host:/remote/folder`             | SSH with SFTP, always on port 22          |
| `user@https://dav.example.com/path/`   | WebDAV (any location containing `http`)  |

For SSH and WebDAV locations, `capivara-sync` asks for the password unless you
give it with `--origin-password` or `--dest-password`. A WebDAV location
without `user@` needs `--origin-user` or `--dest-user`.

A trailing slash is added to local and SSH folders when it is missing. WebDAV
URLs are used exactly as given, and file names are appended to them, so end
them with a slash.

## Installation

```
pip install .
```

This installs the `capivara-sync` command. It exits with status 0 on success
and 1 on failure. Progress is logged at INFO level.

## Backing up

```
capivara-sync backup --origin /home/me/documents --dest me@backup.example.com:/srv/backups/documents
```

A run creates a new snapshot, dated now in UTC. For each file in the origin,
its block is compressed and uploaded when any of these holds:

- the block is missing at the destination;
- no file with that content is recorded in the catalogue;
- the stored block's checksum differs from the one the catalogue recorded.

Every file is then recorded in the catalogue under the new snapshot.

Options:

- `-s`, `--skip`: when a stored block's checksum differs from the catalogue,
  leave the block alone and record the file with status `skip`.
- `--x [true|false]`: the compress setting. It is on by default and is logged,
  but blocks are always compressed whatever its value.

## Listing and restoring snapshots

List the snapshots held at a destination. Each is shown with its ID and date:

```
capivara-sync restore --list --dest me@backup.example.com:/srv/backups/documents
```

Restore the latest snapshot:

```
capivara-sync restore --origin /home/me/documents --dest me@backup.example.com:/srv/backups/documents
```

Restore a particular snapshot by the date shown by `--list`:

```
capivara-sync restore -o /home/me/documents -d me@backup.example.com:/srv/backups/documents -s "2025-01-31 21:15:02"
```

Only files that are missing, or whose checksum differs, are written back.
They are decompressed and saved with the permissions the catalogue recorded.
If no matching snapshot exists, the command fails.

With `-c`, `--clean`, files in the origin whose content is not part of the
snapshot are reported in the log. They are not deleted.

## Mirroring without snapshots

`rsync` copies files as they are, with no compression and no catalogue:

```
capivara-sync rsync --origin /home/me/music --dest /mnt/usb/music
```

A file is copied, with permission `-rw-r--r--`, in two cases:

- it is missing at the destination;
- its checksum differs and the destination copy is not newer.

With `-d`, `--delete`, files at the destination that no longer exist at the
origin are removed first.

## How the catalogue is handled

At the start of `backup`, `restore` and `restore --list`, the catalogue is
moved from the destination into the current working directory as
`snapshot_files.db`. If the destination has none, a new empty catalogue is
created there. When the command ends, the catalogue is saved back to the
destination and the local copy is removed. Run only one command at a time in a
given directory.

## Using it from Python

```python
from capivara.localsource import LocalSource
from capivara.source import Setting
from capivara.backup import backup
from capivara.restore import restore

origin = LocalSource("/home/me/documents/")
destination = LocalSource("/mnt/usb/backups/")

backup(origin, destination, Setting(compress=True, skip_hash=False))
restore(origin, destination, "", False)
```

All storage kinds follow the `capivara.source.Source` interface:

- `capivara.localsource.LocalSource`
- `capivara.ssh.SSHSource`, created with `SSHSource.connect(user, "host:22", base_path, password)`
- `capivara.webdav.WebDAVSource`, created with `WebDAVSource(server, username, password)`

`capivara.rsync.rsync` mirrors one source into another.
`capivara.cli.build_source` turns a location string into a source.

The functions in `capivara.database` read and write a catalogue, for example
`list_snapshots` and `list_files_by_snapshot`. `capivara.remote_db.remote_database`
is a context manager that fetches a destination's catalogue and stores it back
on exit.

## Limits

- SSH connections use password authentication on port 22 only. Unknown host
  keys are accepted without checking.
- On SSH hosts, checksums and modification times are read by running `md5sum`
  and `stat`, so those commands must exist there.
- The SSH source's listing gives full remote paths, permissions and
  modification times, but no checksums. It is therefore not suited as a
  backup origin.
- The WebDAV source needs a server that reports ownCloud-style `MD5:`
  checksums and `getlastmodified` through PROPFIND.
- Nothing is encrypted; blocks are only compressed.
- `restore --clean` only reports extra files. It never removes them.