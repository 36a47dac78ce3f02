"""Command line entry point: backup, restore and rsync between sources."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import Optional, Sequence

from capivara.backup import backup
from capivara.database import list_snapshots
from capivara.localsource import LocalSource
from capivara.remote_db import remote_database
from capivara.restore import restore
from capivara.rsync import rsync
from capivara.source import Setting, Source
from capivara.ssh import SSHSource
from capivara.webdav import WebDAVSource

log = logging.getLogger(__name__)

_SSH_PORT = "22"
_TRUE_WORDS = frozenset({"1", "t", "true"})
_FALSE_WORDS = frozenset({"0", "f", "false"})


def ensure_trailing_slash(path: str) -> str:
    """Return ``path`` ending with exactly the slash it needs."""
    return path if path.endswith("/") else path + "/"


def _prompt_password() -> str:
    return getpass.getpass("Enter password: ")


def build_source(source_path: str, password: str, user: str) -> Source:
    """Create the source described by ``source_path``.

    ``http...`` URLs give a WebDAV source, ``user@host:path`` an SSH source and
    anything else a local directory. A missing password is asked for.
    """
    if "http" in source_path:
        if not password:
            password = _prompt_password()
        if "@" in source_path and not user:
            parts = source_path.split("@")
            user, host = parts[0], parts[1]
        else:
            if not user:
                raise ValueError("User not provided for SSH/DAV source")
            host = source_path
        return WebDAVSource(host, user, password)

    if "@" in source_path:
        if not password:
            password = _prompt_password()
        parts = source_path.split("@")
        host_parts = parts[1].split(":")
        if len(host_parts) < 2:
            raise ValueError(
                f"invalid SSH source {source_path!r}: expected user@host:path"
            )
        base_path = ensure_trailing_slash(host_parts[1])
        return SSHSource.connect(
            parts[0], f"{host_parts[0]}:{_SSH_PORT}", base_path, password
        )

    return LocalSource(localpath=ensure_trailing_slash(source_path))


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {text!r}")


def _add_credentials(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--origin-password",
        default="",
        help="SSH/DAV password (optional, will prompt if not provided)",
    )
    parser.add_argument(
        "--dest-password",
        default="",
        help="SSH/DAV password (optional, will prompt if not provided)",
    )
    parser.add_argument(
        "--origin-user",
        default="",
        help="SSH/DAV user (optional, will prompt if not provided)",
    )
    parser.add_argument(
        "--dest-user",
        default="",
        help="SSH/DAV user (optional, will prompt if not provided)",
    )


def _origin(args: argparse.Namespace) -> Source:
    return build_source(args.origin, args.origin_password, args.origin_user)


def _destination(args: argparse.Namespace) -> Source:
    return build_source(args.dest, args.dest_password, args.dest_user)


def _run_backup(args: argparse.Namespace) -> None:
    origin = _origin(args)
    destination = _destination(args)
    log.warning("compress mode is %s", args.compress)
    backup(origin, destination, Setting(compress=args.compress, skip_hash=args.skip))
    print("Backup completed successfully")


def _run_restore(args: argparse.Namespace) -> None:
    destination = _destination(args)
    if args.list:
        with remote_database(destination) as db:
            print("Listing snapshots")
            for snapshot in list_snapshots(db):
                print("Snapshot ID:", snapshot.id, "Date:", snapshot.date)
        return
    origin = _origin(args)
    restore(origin, destination, args.snap, args.clean)


def _run_rsync(args: argparse.Namespace) -> None:
    origin = _origin(args)
    destination = _destination(args)
    rsync(origin, destination, args.delete)
    print("Backup completed successfully")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="capivara-sync",
        description=(
            "capivara-sync is a backup tool that uses zstd to reduce remote "
            "storage use. It can restore to a point in time."
        ),
    )
    commands = parser.add_subparsers(dest="command")

    backup_parser = commands.add_parser(
        "backup", help="Backup a origin folder to a destination"
    )
    backup_parser.add_argument(
        "-s", "--skip", action="store_true", help="Skip mode no check remote checksum"
    )
    backup_parser.add_argument(
        "--x",
        dest="compress",
        nargs="?",
        const=True,
        default=True,
        type=_parse_bool,
        help="Compress mode, compress files before sending to remote",
    )
    backup_parser.add_argument(
        "--origin", required=True, help="origin: local or ssh (required)"
    )
    backup_parser.add_argument(
        "--dest", required=True, help="destination: local or ssh (required)"
    )
    _add_credentials(backup_parser)
    backup_parser.set_defaults(handler=_run_backup)

    restore_parser = commands.add_parser(
        "restore", help="Restore a backup from a snapshot"
    )
    restore_parser.add_argument(
        "-l", "--list", action="store_true", help="List snapshots dates"
    )
    restore_parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Report origin files that are not in the snapshot",
    )
    restore_parser.add_argument(
        "-o", "--origin", default="", help="origin: local or ssh"
    )
    restore_parser.add_argument(
        "-d", "--dest", required=True, help="destination: local or ssh (required)"
    )
    restore_parser.add_argument(
        "-s",
        "--snap",
        default="",
        help="snap date to restore if not latest (optional)",
    )
    _add_credentials(restore_parser)
    restore_parser.set_defaults(handler=_run_restore)

    rsync_parser = commands.add_parser(
        "rsync", help="Rsync a origin folder to a destination"
    )
    rsync_parser.add_argument(
        "-d",
        "--delete",
        action="store_true",
        help="Delete files on destination if not on the origin",
    )
    rsync_parser.add_argument(
        "--origin", required=True, help="origin: local or ssh (required)"
    )
    rsync_parser.add_argument(
        "--dest", required=True, help="destination: local or ssh (required)"
    )
    _add_credentials(rsync_parser)
    rsync_parser.set_defaults(handler=_run_rsync)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line and return the exit status."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exit_request:
        return 0 if exit_request.code in (0, None) else 1
    if args.command is None:
        parser.print_help()
        return 0
    try:
        args.handler(args)
    except Exception as error:  # top-level guard: report and fail
        log.error("%s failed: %s", args.command, error)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())