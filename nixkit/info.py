"""Everything known about the local Nix installation."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Union

from .command import NixCmdError
from .config import NixConfig, NixConfigError
from .env import NixEnv, NixEnvError
from .version import NixVersion


class NixInfoError(Exception):
    """Information about the Nix installation could not be gathered."""


@dataclass(frozen=True)
class NixInfo:
    """The Nix version, its configuration and the environment it runs in."""

    nix_version: NixVersion
    nix_config: NixConfig
    nix_env: NixEnv

    @classmethod
    def new(cls, nix_version: NixVersion, nix_config: NixConfig) -> "NixInfo":
        """Detect the environment and combine it with the given version and config."""
        try:
            nix_env = NixEnv.detect()
        except NixEnvError as err:
            raise NixInfoError(f"Nix environment error: {err}") from err
        return cls(nix_version, nix_config, nix_env)

    @classmethod
    def get(cls) -> "NixInfo":
        """Return the installation info, determined once per process."""
        global _cached
        with _lock:
            if _cached is None:
                _cached = cls._gather()
            result = _cached
        if isinstance(result, NixInfoError):
            raise result
        return result

    @classmethod
    def _gather(cls) -> Union["NixInfo", NixInfoError]:
        try:
            version = NixVersion.get()
            config = NixConfig.get()
            return cls.new(version, config)
        except NixInfoError as err:
            return err
        except NixCmdError as err:
            wrapped = NixInfoError(f"Nix command error: {err}")
            wrapped.__cause__ = err
            return wrapped
        except NixConfigError as err:
            wrapped = NixInfoError(f"Nix config error: {err}")
            wrapped.__cause__ = err
            return wrapped


_lock = threading.Lock()
_cached: Optional[Union[NixInfo, NixInfoError]] = None