"""Lists of systems, given by flakes that evaluate to a list of system names."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .command import DecodeError, NixCmd
from .flake_url import FlakeUrl
from .system import System


def nix_systems() -> Dict[str, FlakeUrl]:
    """The built-in map from system name to its systems-list flake.

    It is read from the ``NIX_SYSTEMS`` environment variable, a JSON object;
    when that is unset the map is empty.
    """
    raw = os.environ.get("NIX_SYSTEMS")
    if raw is None:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as err:
        raise ValueError(f"NIX_SYSTEMS is not valid JSON: {err}") from err
    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        raise ValueError("NIX_SYSTEMS must be a JSON object of strings")
    return {name: FlakeUrl(url) for name, url in data.items()}


@dataclass(frozen=True)
class SystemsListFlakeRef:
    """A flake that evaluates to a list of systems."""

    url: FlakeUrl

    @classmethod
    def from_known_system(cls, system: System) -> Optional["SystemsListFlakeRef"]:
        """The known flake for ``system``, which needs no network access."""
        url = nix_systems().get(str(system))
        return None if url is None else cls(url)

    @classmethod
    def parse(cls, s: str) -> "SystemsListFlakeRef":
        """A known system name, or else any flake URL."""
        known = cls.from_known_system(System.parse(s))
        return known if known is not None else cls(FlakeUrl(s))


def _json_error(message: str) -> DecodeError:
    return DecodeError(f"Failed to decode command stdout (json error): {message}")


def _nix_eval_impure_expr(cmd: NixCmd, expr: str) -> Any:
    return cmd.run_with_args_expecting_json(["eval", "--impure", "--json", "--expr", expr])


def _nix_import_flake(cmd: NixCmd, url: FlakeUrl) -> Any:
    flake_path = _nix_eval_impure_expr(cmd, f'builtins.getFlake "{url.url}"')
    if not isinstance(flake_path, str):
        raise _json_error(f"expected a string, got {flake_path!r}")
    return _nix_eval_impure_expr(cmd, f"import {flake_path}")


@dataclass(frozen=True)
class SystemsList:
    """A list of systems."""

    systems: List[System]

    @classmethod
    def from_flake(cls, cmd: NixCmd, url: SystemsListFlakeRef) -> "SystemsList":
        """Load the systems a flake lists, avoiding nix for known flakes."""
        known = cls._from_known_flake(url)
        if known is not None:
            return known
        data = _nix_import_flake(cmd, url.url)
        if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
            raise _json_error(f"expected a list of strings, got {data!r}")
        return cls([System.parse(s) for s in data])

    @classmethod
    def _from_known_flake(cls, url: SystemsListFlakeRef) -> Optional["SystemsList"]:
        for name, known_url in nix_systems().items():
            if known_url == url.url:
                return cls([System.parse(name)])
        return None