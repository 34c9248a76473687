"""The version of Nix, as reported by ``nix --version``."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Optional, Union

from .command import NixCmd, NixCmdError

_VERSION_RE = re.compile(r"(?:nix \(Nix\) )?(\d+)\.(\d+)\.(\d+)")
_U32_MAX = 2**32 - 1


class BadNixVersion(ValueError):
    """The output of ``nix --version`` cannot be parsed."""


def _u32(text: str) -> int:
    value = int(text)
    if value > _U32_MAX:
        raise BadNixVersion("Parse error (regex): `nix --version` cannot be parsed")
    return value


@dataclass(frozen=True, order=True)
class NixVersion:
    """A Nix version: major, minor and patch."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, s: str) -> "NixVersion":
        """Parse ``nix --version`` output, or a bare ``X.Y.Z`` version."""
        match = _VERSION_RE.search(s)
        if match is None:
            raise BadNixVersion("Parse error (int): `nix --version` cannot be parsed")
        major, minor, patch = (_u32(g) for g in match.groups())
        return cls(major, minor, patch)

    @classmethod
    def from_nix(cls, cmd: NixCmd) -> "NixVersion":
        """Run ``nix --version`` and parse the result."""
        return cmd.run_with_args_expecting_fromstr(["--version"], cls.parse)

    @classmethod
    def get(cls) -> "NixVersion":
        """Return the installed Nix version, determined once per process."""
        global _cached
        with _lock:
            if _cached is None:
                try:
                    _cached = cls.from_nix(NixCmd())
                except NixCmdError as err:
                    _cached = err
            result = _cached
        if isinstance(result, NixCmdError):
            raise result
        return result

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


_lock = threading.Lock()
_cached: Optional[Union[NixVersion, NixCmdError]] = None