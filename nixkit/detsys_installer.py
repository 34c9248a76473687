"""Detection of the DetSys nix-installer."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Union

_VERSION_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)")
_U32_MAX = 2**32 - 1
DEFAULT_INSTALLER_PATH = "/nix/nix-installer"


class BadInstallerVersion(Exception):
    """The installer version could not be determined."""


def _u32(text: str) -> int:
    value = int(text)
    if value > _U32_MAX:
        raise BadInstallerVersion(
            f"Failed to parse installer version: number too large: {text}"
        )
    return value


@dataclass(frozen=True, order=True)
class InstallerVersion:
    """The version of the DetSys nix-installer."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, s: str) -> "InstallerVersion":
        """Find an ``X.Y.Z`` version in ``s``."""
        match = _VERSION_RE.search(s)
        if match is None:
            raise BadInstallerVersion(
                "Failed to fetch installer version: Failed to capture regex"
            )
        major, minor, patch = (_u32(g) for g in match.groups())
        return cls(major, minor, patch)

    @classmethod
    def get_version(
        cls, executable_path: Union[str, "os.PathLike[str]"]
    ) -> "InstallerVersion":
        """Run ``<executable> --version`` and parse what it prints."""
        try:
            out = subprocess.run(
                [os.fspath(executable_path), "--version"], capture_output=True, check=False
            )
        except OSError as err:
            raise BadInstallerVersion(f"Failed to fetch installer version: {err}") from err
        try:
            text = (out.stdout or b"").decode("utf-8")
        except UnicodeDecodeError as err:
            raise BadInstallerVersion(f"Failed to decode installer output: {err}") from err
        return cls.parse(text)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True, order=True)
class DetSysNixInstaller:
    """The DetSys nix-installer and its version."""

    version: InstallerVersion

    @classmethod
    def detect(
        cls, installer_path: Union[str, "os.PathLike[str]"] = DEFAULT_INSTALLER_PATH
    ) -> Optional["DetSysNixInstaller"]:
        """The installer at ``installer_path``, or ``None`` if it is absent."""
        if not os.path.exists(installer_path):
            return None
        return cls(InstallerVersion.get_version(installer_path))

    def __str__(self) -> str:
        return f"DetSys nix-installer ({self.version})"