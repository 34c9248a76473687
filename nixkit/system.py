"""Nix system identifiers such as ``x86_64-linux``."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Arch(Enum):
    """CPU architecture of a system."""

    AARCH64 = "aarch64"
    X86_64 = "x86_64"

    def human_readable(self) -> str:
        """A human-readable title for the architecture."""
        return "ARM" if self is Arch.AARCH64 else "Intel"


_DARWIN, _LINUX, _OTHER = 0, 1, 2
_ARCH_ORDER = {Arch.AARCH64: 0, Arch.X86_64: 1}

_KNOWN = {
    "aarch64-linux": (_LINUX, Arch.AARCH64),
    "x86_64-linux": (_LINUX, Arch.X86_64),
    "x86_64-darwin": (_DARWIN, Arch.X86_64),
    "aarch64-darwin": (_DARWIN, Arch.AARCH64),
}


@functools.total_ordering
@dataclass(frozen=True)
class System:
    """The system a derivation builds for.

    The four standard systems are recognised; any other name is kept as is.
    Ordering puts macOS systems first, then Linux, then the rest.
    """

    name: str

    @classmethod
    def parse(cls, s: str) -> "System":
        """Build a system from its Nix name; this never fails."""
        return cls(s)

    def _known(self) -> Optional[Tuple[int, Arch]]:
        return _KNOWN.get(self.name)

    def _sort_key(self) -> Tuple[int, int, str]:
        known = self._known()
        if known is None:
            return (_OTHER, 0, self.name)
        kind, arch = known
        return (kind, _ARCH_ORDER[arch], "")

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, System):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def human_readable(self) -> str:
        """A human-readable title for the system."""
        known = self._known()
        if known is None:
            return self.name
        kind, arch = known
        label = "Linux" if kind == _LINUX else "macOS"
        return f"{label} ({arch.human_readable()})"

    def __str__(self) -> str:
        return self.name