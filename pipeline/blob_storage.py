#!/usr/bin/env python3
"""
Uploaded export storage

Exports are written under a local root directory and addressed by their
path. Locations that are http(s) URLs (files already held by a remote
blob store) are fetched and deleted over HTTP, but only from hosts on
the configured allowlist.
"""

import logging
import re
import uuid
from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 60
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobFetchError(RuntimeError):
    """Raised when an uploaded export cannot be read"""


def _is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


class BlobStorage:
    """
    Upload/fetch/delete for raw chat exports

    Args:
        root: Directory for locally stored uploads
        api_token: Bearer token sent when deleting remote blobs
        allowed_hosts: Hostnames remote locations may point at; empty
            means remote locations are refused
    """

    def __init__(
        self,
        root: Union[str, Path],
        api_token: Optional[str] = None,
        allowed_hosts: Iterable[str] = (),
    ):
        self.root = Path(root)
        self.api_token = api_token
        self.allowed_hosts = frozenset(host.lower() for host in allowed_hosts)

    def upload(self, filename: str, data: bytes) -> str:
        """
        Store an export and return its location

        The stored name is prefixed with a random id so repeated uploads of
        the same file never collide.
        """
        safe_name = _UNSAFE_CHARS.sub("_", Path(filename).name) or "export"
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / f"{uuid.uuid4().hex}-{safe_name}"
        path.write_bytes(data)
        logger.info("Stored upload %s (%d bytes)", path.name, len(data))
        return str(path)

    def _remote_url(self, location: str) -> str:
        host = (urlsplit(location).hostname or "").lower()
        if host not in self.allowed_hosts:
            raise BlobFetchError(f"Remote host is not allowed: {host or location}")
        return location

    def _local_path(self, location: str) -> Path:
        path = Path(location).resolve()
        if self.root.resolve() not in path.parents:
            raise BlobFetchError(f"Location is outside the upload directory: {location}")
        return path

    def fetch(self, location: str) -> bytes:
        """
        Read an export's raw bytes

        Raises:
            BlobFetchError: If the file is missing, the host is not allowed
                or the download fails
        """
        if _is_remote(location):
            url = self._remote_url(location)
            try:
                response = requests.get(url, timeout=HTTP_TIMEOUT)
                response.raise_for_status()
            except requests.RequestException as e:
                raise BlobFetchError(f"Failed to fetch file: {e}") from e
            return response.content

        path = self._local_path(location)
        try:
            return path.read_bytes()
        except OSError as e:
            raise BlobFetchError(f"Failed to fetch file: {e}") from e

    def delete(self, location: str) -> None:
        """Remove an export; deleting a missing file is not an error"""
        if _is_remote(location):
            url = self._remote_url(location)
            headers = {"Authorization": f"Bearer {self.api_token}"} if self.api_token else {}
            response = requests.delete(url, headers=headers, timeout=HTTP_TIMEOUT)
            if response.status_code != 404:
                response.raise_for_status()
            return

        self._local_path(location).unlink(missing_ok=True)
        logger.debug("Deleted upload %s", location)
