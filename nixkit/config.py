"""The Nix configuration, as reported by ``nix config show --json``."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Iterable, List, Mapping, Optional, TypeVar, Union

from .command import DecodeError, NixCmd, NixCmdError
from .system import System
from .version import NixVersion

T = TypeVar("T")

_NIX_2_20_0 = NixVersion(2, 20, 0)
_I32_MIN, _I32_MAX = -(2**31), 2**31 - 1
_URL_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


class NixConfigError(Exception):
    """The Nix configuration could not be obtained."""

    def __init__(self, cause: NixCmdError) -> None:
        super().__init__(f"Nix command error: {cause}")
        self.cause = cause


def _json_error(message: str) -> DecodeError:
    return DecodeError(f"Failed to decode command stdout (json error): {message}")


def _as_i32(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _json_error(f"expected an integer, got {value!r}")
    if not _I32_MIN <= value <= _I32_MAX:
        raise _json_error(f"integer out of range: {value}")
    return value


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise _json_error(f"expected a string, got {value!r}")
    return value


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        raise _json_error(f"expected a list, got {value!r}")
    return [_as_str(item) for item in value]


def _as_url(value: Any) -> str:
    text = _as_str(value)
    if not _URL_SCHEME_RE.match(text):
        raise _json_error(f"relative URL without a base: {text!r}")
    return text


def _as_url_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        raise _json_error(f"expected a list, got {value!r}")
    return [_as_url(item) for item in value]


def _as_system(value: Any) -> System:
    return System.parse(_as_str(value))


def _as_trusted_users(value: Any) -> List["TrustedUserValue"]:
    return [TrustedUserValue.parse(item) for item in _as_str_list(value)]


@dataclass(frozen=True)
class ConfigVal(Generic[T]):
    """One configuration item: its current value, its default and a description."""

    value: T
    default_value: T
    description: str

    @classmethod
    def _from_json(cls, data: Any, convert: Callable[[Any], T]) -> "ConfigVal[T]":
        if not isinstance(data, Mapping):
            raise _json_error(f"expected an object, got {data!r}")
        try:
            return cls(
                value=convert(data["value"]),
                default_value=convert(data["defaultValue"]),
                description=_as_str(data["description"]),
            )
        except KeyError as err:
            raise _json_error(f"missing field {err.args[0]!r}") from err


@dataclass(frozen=True)
class TrustedUserValue:
    """An entry of ``trusted-users``: everyone, a user, or a group."""

    class Kind(Enum):
        ALL = "all"
        USER = "user"
        GROUP = "group"

    kind: "TrustedUserValue.Kind"
    name: Optional[str] = None

    @classmethod
    def parse(cls, s: str) -> "TrustedUserValue":
        """Parse a nix.conf entry: ``*`` is everyone, ``@name`` a group."""
        if s == "*":
            return cls(cls.Kind.ALL)
        if s.startswith("@"):
            return cls(cls.Kind.GROUP, s[1:])
        return cls(cls.Kind.USER, s)

    @staticmethod
    def display_original(values: Iterable["TrustedUserValue"]) -> str:
        """Render entries back into their nix.conf form."""
        return " ".join(str(v) for v in values)

    def __str__(self) -> str:
        if self.kind is TrustedUserValue.Kind.ALL:
            return "*"
        if self.kind is TrustedUserValue.Kind.GROUP:
            return f"@{self.name}"
        return self.name or ""


_FIELDS = {
    "cores": ("cores", _as_i32),
    "experimental_features": ("experimental-features", _as_str_list),
    "extra_platforms": ("extra-platforms", _as_str_list),
    "flake_registry": ("flake-registry", _as_str),
    "max_jobs": ("max-jobs", _as_i32),
    "substituters": ("substituters", _as_url_list),
    "system": ("system", _as_system),
    "trusted_users": ("trusted-users", _as_trusted_users),
}


@dataclass(frozen=True)
class NixConfig:
    """The parts of the Nix configuration this package uses."""

    cores: ConfigVal[int]
    experimental_features: ConfigVal[List[str]]
    extra_platforms: ConfigVal[List[str]]
    flake_registry: ConfigVal[str]
    max_jobs: ConfigVal[int]
    substituters: ConfigVal[List[str]]
    system: ConfigVal[System]
    trusted_users: ConfigVal[List[TrustedUserValue]]

    @classmethod
    def from_json(cls, data: Any) -> "NixConfig":
        """Build from the parsed JSON output of ``nix config show --json``."""
        if not isinstance(data, Mapping):
            raise _json_error(f"expected an object, got {data!r}")
        values = {}
        for attr, (key, convert) in _FIELDS.items():
            if key not in data:
                raise _json_error(f"missing field {key!r}")
            values[attr] = ConfigVal._from_json(data[key], convert)
        return cls(**values)

    @classmethod
    def from_nix(cls, nix_cmd: NixCmd, nix_version: NixVersion) -> "NixConfig":
        """Ask nix for its configuration, using the subcommand its version expects."""
        if nix_version >= _NIX_2_20_0:
            args = ["config", "show", "--json"]
        else:
            args = ["show-config", "--json"]
        return cls.from_json(nix_cmd.run_with_args_expecting_json(args))

    @classmethod
    def get(cls) -> "NixConfig":
        """Return the Nix configuration, determined once per process."""
        global _cached
        with _lock:
            if _cached is None:
                cmd = NixCmd()
                # nix-command may not be enabled yet, so enable it for this call.
                cmd.with_nix_command()
                try:
                    _cached = cls.from_nix(cmd, NixVersion.get())
                except NixCmdError as err:
                    _cached = NixConfigError(err)
            result = _cached
        if isinstance(result, NixConfigError):
            raise result
        return result

    def is_flakes_enabled(self) -> bool:
        """Whether both nix-command and flakes are enabled."""
        features = self.experimental_features.value
        return "nix-command" in features and "flakes" in features


_lock = threading.Lock()
_cached: Optional[Union[NixConfig, NixConfigError]] = None