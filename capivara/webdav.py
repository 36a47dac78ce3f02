"""Source backed by a WebDAV server that reports ownCloud checksums."""

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterator, Optional
from urllib.parse import unquote_plus
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests

from capivara.source import FileInfo, Source

log = logging.getLogger(__name__)

_OC_NS = "http://owncloud.org/ns"
_MULTI_STATUS = 207
_DISPLAY_ZONE = "America/Sao_Paulo"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

_CHECKSUM_BODY = """<?xml version="1.0" encoding="utf-8" ?>
		<d:propfind xmlns:d="DAV:" xmlns:oc="http://owncloud.org/ns">
			<d:prop><oc:checksums/></d:prop>
		</d:propfind>"""

_LAST_MODIFIED_BODY = """<?xml version="1.0" encoding="utf-8" ?>
		<d:propfind xmlns:d="DAV:">
			<d:prop><d:getlastmodified/></d:prop>
		</d:propfind>"""


def _parse_rfc1123(text: str) -> datetime:
    """Parse a ``Mon, 02 Jan 2006 15:04:05 GMT`` style timestamp."""
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError) as error:
        print(f"Error parsing time: {error}")
        raise ValueError(f"cannot parse time {text!r}") from error
    if parsed is None:
        raise ValueError(f"cannot parse time {text!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def convert_time_from_rfc3339(time_string: str) -> datetime:
    """Parse an RFC 1123 timestamp and express it in the display time zone."""
    parsed = _parse_rfc1123(time_string)
    try:
        zone = ZoneInfo(_DISPLAY_ZONE)
    except ZoneInfoNotFoundError as error:
        print(f"Error loading time zone: {error}")
        raise
    return parsed.astimezone(zone)


@dataclass
class _DavEntry:
    href: str = ""
    display_name: str = ""
    content_length: str = ""
    last_modified: str = ""
    checksums: list[str] = field(default_factory=list)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _text(element) -> str:
    return "".join(element.itertext())


def _parse_multistatus(content: bytes, require_root: bool) -> list[_DavEntry]:
    try:
        root = ElementTree.fromstring(content)
    except ElementTree.ParseError as error:
        raise ValueError(f"failed to parse response: {error}") from error
    if require_root and _local(root.tag) != "multistatus":
        raise ValueError(f"failed to parse response: unexpected root <{_local(root.tag)}>")
    entries = []
    for response in root:
        if _local(response.tag) != "response":
            continue
        entry = _DavEntry()
        for child in response:
            name = _local(child.tag)
            if name == "href":
                entry.href = _text(child)
            elif name == "propstat":
                for prop in child:
                    if _local(prop.tag) == "prop":
                        _read_prop(prop, entry)
        entries.append(entry)
    return entries


def _read_prop(prop, entry: _DavEntry) -> None:
    for item in prop:
        name = _local(item.tag)
        if item.tag == f"{{{_OC_NS}}}checksums":
            entry.checksums.extend(
                _text(checksum) for checksum in item if checksum.tag == f"{{{_OC_NS}}}checksum"
            )
        elif name == "displayname":
            entry.display_name = _text(item)
        elif name == "getcontentlength":
            entry.content_length = _text(item)
        elif name == "getlastmodified":
            entry.last_modified = _text(item)


@dataclass
class WebDAVSource(Source):
    """Files below the collection URL ``server``; paths are appended to it."""

    server: str
    username: str
    password: str

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        return requests.request(
            method, self.server + path, auth=(self.username, self.password), **kwargs
        )

    def _propfind(self, remote_path: str, body: str) -> list[_DavEntry]:
        response = self._request(
            "PROPFIND",
            remote_path,
            data=body.encode("utf-8"),
            headers={"Content-Type": "application/xml"},
        )
        if response.status_code != _MULTI_STATUS:
            raise OSError(f"unexpected status: {response.status_code} {response.reason}")
        return _parse_multistatus(response.content, require_root=True)

    def calculate_file_hash(self, data: bytes) -> str:
        return hashlib.sha1(data).hexdigest()

    def list_files(self) -> Iterator[FileInfo]:
        try:
            response = self._request("PROPFIND", "", headers={"Depth": "1000"})
        except requests.RequestException as error:
            log.error("Error performing request: %s", error)
            return
        if response.status_code != _MULTI_STATUS:
            log.error("Unexpected status code: %s", response.status_code)
            return
        try:
            entries = _parse_multistatus(response.content, require_root=False)
        except ValueError as error:
            log.error("Error decoding response: %s", error)
            return
        if not entries:
            return
        base_path = entries[0].href
        log.info("Base path: %s", base_path)
        for entry in entries:
            if entry.href.endswith("/"):
                log.debug("Skipping directory: %s", entry.href)
                continue
            raw_path = entry.href.removeprefix(base_path)
            if _BAD_ESCAPE.search(raw_path):
                print(f"Error decoding string: invalid URL escape in {raw_path!r}")
                return
            remote_path = unquote_plus(raw_path)
            try:
                md5 = self.get_file_hash(remote_path)
            except (OSError, ValueError) as error:
                log.error("Error getting file hash: %s", error)
                md5 = ""
            last_modified: Optional[datetime]
            try:
                last_modified = self.get_file_last_modified(remote_path)
            except (OSError, ValueError) as error:
                log.error("Error getting file last modified: %s", error)
                last_modified = None
            yield FileInfo(
                path=remote_path,
                md5=md5,
                filename=posixpath.basename(remote_path),
                permission=entry.content_length,
                remote_hash="",
                last_modified=last_modified,
            )

    def get_file(self, path: str) -> bytes:
        log.warning("Performing GET request for: %s on %s", path, self.server)
        response = self._request("GET", path)
        if response.status_code != 200:
            raise OSError("failed to fetch file")
        return response.content

    def save_file(self, path: str, data: bytes, permission: str) -> None:
        log.info("Saving file to WebDAV: %s %s", self.server, path)
        response = self._request("PUT", path, data=data)
        if response.status_code not in (200, 201):
            log.error("Error saving file: %s %s", response.status_code, response.reason)
            raise OSError("failed to save file")

    def exists(self, path: str) -> bool:
        try:
            response = self._request("HEAD", path)
        except requests.RequestException:
            return False
        return response.status_code == 200

    def get_file_hash(self, remote_path: str) -> str:
        for entry in self._propfind(remote_path, _CHECKSUM_BODY):
            for checksum in entry.checksums:
                for value in checksum.split(" "):
                    if value.startswith("MD5:"):
                        return value.removeprefix("MD5:")
        raise ValueError("MD5 checksum not found")

    def remove_file(self, path: str) -> None:
        response = self._request("DELETE", path)
        if response.status_code not in (200, 204):
            raise OSError("failed to remove file")

    def get_file_last_modified(self, remote_path: str) -> datetime:
        for entry in self._propfind(remote_path, _LAST_MODIFIED_BODY):
            if entry.last_modified:
                return _parse_rfc1123(entry.last_modified)
        raise ValueError("last modified time not found")