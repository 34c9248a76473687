"""Nix store paths and store URIs."""

from __future__ import annotations

import functools
import os
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Tuple, Union
from urllib.parse import parse_qs, urlsplit

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


@functools.total_ordering
@dataclass(frozen=True, eq=True)
class StorePath:
    """A path in the Nix store: either a derivation or some other path."""

    path: str

    def __init__(self, path: Union[str, "os.PathLike[str]"]) -> None:
        object.__setattr__(self, "path", os.fspath(path))

    def is_drv(self) -> bool:
        """Whether this is a derivation path.

        The final path component must equal ``.drv``; matching is done on
        whole components, not on a string suffix.
        """
        return PurePosixPath(self.path).parts[-1:] == (".drv",)

    def _sort_key(self) -> Tuple[int, Tuple[str, ...]]:
        return (0 if self.is_drv() else 1, PurePosixPath(self.path).parts)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, StorePath):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __str__(self) -> str:
        return self.path

    def __fspath__(self) -> str:
        return self.path


class StoreURIParseError(ValueError):
    """A store URI could not be parsed."""


@dataclass(frozen=True)
class StoreOpts:
    """User options attached to a store URI through its query string."""

    copy_inputs: bool = False


@dataclass(frozen=True)
class SSHStoreURI:
    """A remote store reachable over SSH."""

    host: str
    user: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.user}@{self.host}" if self.user is not None else self.host


def _parse_bool(value: str) -> bool:
    if value == "true":
        return True
    if value == "false":
        return False
    raise StoreURIParseError(f"invalid boolean for copy-inputs: {value!r}")


def _parse_opts(query: str) -> StoreOpts:
    params = parse_qs(query, keep_blank_values=True)
    values = params.get("copy-inputs")
    if not values:
        return StoreOpts()
    return StoreOpts(copy_inputs=_parse_bool(values[-1]))


def _split_host(hostport: str) -> str:
    if hostport.startswith("["):
        end = hostport.find("]")
        return hostport if end < 0 else hostport[: end + 1]
    host, sep, port = hostport.rpartition(":")
    if sep and (port == "" or port.isdigit()):
        return host
    return hostport


@dataclass(frozen=True)
class StoreURI:
    """A Nix store somewhere; only ``ssh://`` stores are supported."""

    ssh: SSHStoreURI
    opts: StoreOpts = StoreOpts()

    @classmethod
    def parse(cls, uri: str) -> "StoreURI":
        """Parse a store URI such as ``ssh://user@host?copy-inputs=true``."""
        if not _SCHEME_RE.match(uri):
            raise StoreURIParseError("relative URL without a base")
        parts = urlsplit(uri)
        scheme = parts.scheme.lower()
        if scheme != "ssh":
            raise StoreURIParseError(f"Unsupported scheme: {scheme}")
        userinfo, at, hostport = parts.netloc.rpartition("@")
        host = _split_host(hostport)
        if not host:
            raise StoreURIParseError("Missing host")
        username = userinfo.split(":", 1)[0] if at else ""
        ssh = SSHStoreURI(host=host, user=username or None)
        return cls(ssh, _parse_opts(parts.query))

    def __str__(self) -> str:
        return f"ssh://{self.ssh}"