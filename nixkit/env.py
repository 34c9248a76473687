"""The environment in which Nix runs."""

from __future__ import annotations

import getpass
import os
import platform
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import psutil

from .detsys_installer import BadInstallerVersion, DetSysNixInstaller

_NIX_CONF = "/etc/nix/nix.conf"
_OS_RELEASE = "/etc/os-release"


class NixEnvError(Exception):
    """The Nix environment could not be determined."""


def to_bytesize(n: int) -> int:
    """Round ``n`` bytes down to whole GiB, MiB or KiB, whichever is largest."""
    kib = n // 1024
    mib = kib // 1024
    gib = mib // 1024
    if gib > 0:
        return gib * 1024**3
    if mib > 0:
        return mib * 1024**2
    if kib > 0:
        return kib * 1024
    return n


def get_current_user_groups() -> List[str]:
    """The groups of the current user, as printed by ``groups``."""
    try:
        out = subprocess.run(["groups"], capture_output=True, check=False)
    except OSError as err:
        raise NixEnvError(f"Failed to fetch groups: {err}") from err
    return (out.stdout or b"").decode("utf-8", errors="replace").split()


def _nix_disk_total() -> int:
    mounts = {part.mountpoint for part in psutil.disk_partitions(all=True)}
    for mountpoint in ("/nix", "/"):
        if mountpoint in mounts:
            return psutil.disk_usage(mountpoint).total
    raise NixEnvError("Unable to find root disk or /nix volume")


def _os_release() -> Dict[str, str]:
    try:
        text = Path(_OS_RELEASE).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return {}
    fields = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep and not key.startswith("#"):
            fields[key.strip()] = value.strip().strip("\"'")
    return fields


def _is_proc_translated() -> bool:
    try:
        out = subprocess.run(
            ["sysctl", "-n", "sysctl.proc_translated"], capture_output=True, check=False
        )
    except OSError:
        return False
    return out.returncode == 0 and (out.stdout or b"").strip() == b"1"


class OSKind(Enum):
    """The kind of system Nix runs on."""

    MACOS = "macos"
    NIXOS = "nixos"
    OTHER = "other"


@dataclass(frozen=True)
class OS:
    """The system under which Nix is installed."""

    kind: OSKind
    name: str = ""
    nix_darwin: bool = False
    arch: Optional[str] = None
    proc_translated: bool = False

    @classmethod
    def detect(cls) -> "OS":
        """Detect the running system."""
        system = platform.system()
        if system == "Darwin":
            # nix-darwin manages nix.conf as a symlink, as NixOS does.
            return cls(
                OSKind.MACOS,
                "Mac OS",
                nix_darwin=os.path.islink(_NIX_CONF),
                arch=platform.machine() or None,
                proc_translated=_is_proc_translated(),
            )
        release = _os_release()
        if release.get("ID") == "nixos":
            return cls(OSKind.NIXOS, "NixOS")
        return cls(OSKind.OTHER, release.get("NAME") or system or "Unknown")

    def nix_system_config_label(self) -> Optional[str]:
        """The label for a nix-darwin or NixOS system configuration."""
        if self.kind is OSKind.MACOS and self.nix_darwin:
            return "nix-darwin configuration"
        if self.kind is OSKind.NIXOS:
            return "nixos configuration"
        return None

    def nix_config_label(self) -> str:
        """Where Nix is configured on this system."""
        return self.nix_system_config_label() or _NIX_CONF

    def __str__(self) -> str:
        if self.kind is OSKind.MACOS:
            return "macOS (nix-darwin)" if self.nix_darwin else "macOS"
        if self.kind is OSKind.NIXOS:
            return "NixOS"
        return self.name


@dataclass(frozen=True)
class NixInstaller:
    """How Nix was installed: the DetSys installer, or another way."""

    detsys: Optional[DetSysNixInstaller] = None
    nix_path: Optional[str] = None

    @classmethod
    def detect(cls) -> "NixInstaller":
        """Detect the installer, falling back to the ``nix`` found in PATH."""
        try:
            detsys = DetSysNixInstaller.detect()
        except BadInstallerVersion as err:
            raise NixEnvError(f"Failed to detect Nix installer: {err}") from err
        if detsys is not None:
            return cls(detsys=detsys)
        nix_path = shutil.which("nix")
        if nix_path is None:
            raise NixEnvError("`nix` not found in PATH: cannot find binary path")
        return cls(nix_path=nix_path)

    def __str__(self) -> str:
        if self.detsys is not None:
            return str(self.detsys)
        return f"Unknown installer for {self.nix_path}"


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "Unknown"


@dataclass(frozen=True)
class NixEnv:
    """The environment in which Nix operates."""

    current_user: str
    current_user_groups: List[str]
    os: OS
    total_disk_space: int
    total_memory: int
    installer: NixInstaller

    @classmethod
    def detect(cls) -> "NixEnv":
        """Determine the environment on this machine."""
        detected_os = OS.detect()
        current_user = _current_user()
        total_disk_space = to_bytesize(_nix_disk_total())
        total_memory = to_bytesize(psutil.virtual_memory().total)
        groups = get_current_user_groups()
        installer = NixInstaller.detect()
        return cls(
            current_user=current_user,
            current_user_groups=groups,
            os=detected_os,
            total_disk_space=total_disk_space,
            total_memory=total_memory,
            installer=installer,
        )