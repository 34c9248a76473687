"""Flake outputs, as described by flake schemas."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .command import DecodeError, NixCmd
from .flake_command import FlakeOptions, nix_eval
from .flake_url import FlakeUrl
from .system import System
from .system_list import SystemsListFlakeRef

if TYPE_CHECKING:
    from .config import NixConfig


def _env_flake(name: str) -> FlakeUrl:
    value = os.environ.get(name)
    if value is None:
        raise RuntimeError(f"environment variable {name} is not set")
    return FlakeUrl.from_path(value)


def default_flake_schemas() -> FlakeUrl:
    """The flake of default flake schemas, from ``DEFAULT_FLAKE_SCHEMAS``."""
    return _env_flake("DEFAULT_FLAKE_SCHEMAS")


def inspect_flake() -> FlakeUrl:
    """The flake with functions inspecting flake outputs, from ``INSPECT_FLAKE``."""
    return _env_flake("INSPECT_FLAKE")


def _json_error(message: str) -> DecodeError:
    return DecodeError(f"Failed to decode command stdout (json error): {message}")


class FlakeType(Enum):
    """The type of a flake output; any unrecognised name is ``UNKNOWN``."""

    NIXOS_MODULE = "NixOS module"
    NIXOS_CONFIGURATION = "NixOS configuration"
    DARWIN_CONFIGURATION = "nix-darwin configuration"
    PACKAGE = "package"
    DEV_SHELL = "development environment"
    CHECK = "CI test"
    APP = "app"
    TEMPLATE = "template"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> Optional["FlakeType"]:
        return cls.UNKNOWN if isinstance(value, str) else None

    def to_icon(self) -> str:
        """An icon for this type."""
        return _ICONS[self]

    def __str__(self) -> str:
        return _NAMES[self]


_ICONS = {
    FlakeType.NIXOS_MODULE: "❄️",
    FlakeType.NIXOS_CONFIGURATION: "🔧",
    FlakeType.DARWIN_CONFIGURATION: "🍎",
    FlakeType.PACKAGE: "📦",
    FlakeType.DEV_SHELL: "🐚",
    FlakeType.CHECK: "🧪",
    FlakeType.APP: "📱",
    FlakeType.TEMPLATE: "🏗️",
    FlakeType.UNKNOWN: "❓",
}

_NAMES = {
    FlakeType.NIXOS_MODULE: "NixosModule",
    FlakeType.NIXOS_CONFIGURATION: "NixosConfiguration",
    FlakeType.DARWIN_CONFIGURATION: "DarwinConfiguration",
    FlakeType.PACKAGE: "Package",
    FlakeType.DEV_SHELL: "DevShell",
    FlakeType.CHECK: "Check",
    FlakeType.APP: "App",
    FlakeType.TEMPLATE: "Template",
    FlakeType.UNKNOWN: "Unknown",
}


@dataclass(frozen=True)
class Val:
    """A terminal flake output value."""

    type_: FlakeType = FlakeType.UNKNOWN
    derivation_name: Optional[str] = None
    short_description: Optional[str] = None

    @classmethod
    def from_json(cls, data: Any) -> "Val":
        """Build from a schema leaf such as ``{"what": "package", ...}``."""
        val = _val_or_none(data)
        if val is None:
            raise _json_error(f"not a flake output value: {data!r}")
        return val


def _optional_str(data: Mapping[str, Any], key: str) -> Tuple[bool, Optional[str]]:
    value = data.get(key)
    return (value is None or isinstance(value, str)), value


def _val_or_none(data: Any) -> Optional[Val]:
    if not isinstance(data, Mapping) or not isinstance(data.get("what"), str):
        return None
    ok_name, name = _optional_str(data, "derivationName")
    ok_desc, desc = _optional_str(data, "shortDescription")
    if not (ok_name and ok_desc):
        return None
    return Val(FlakeType(data["what"]), name, desc)


# A schema inventory node: a value, a documentation string, or nested nodes.
InventoryItem = Union[Val, str, Dict[str, Any]]


def _parse_item(data: Any) -> InventoryItem:
    val = _val_or_none(data)
    if val is not None:
        return val
    if isinstance(data, str):
        return data
    if isinstance(data, Mapping):
        return {key: _parse_item(value) for key, value in data.items()}
    raise _json_error(f"data did not match any inventory item: {data!r}")


@dataclass
class FlakeOutputs:
    """A tree of flake outputs: a terminal value or nested outputs by name."""

    value: Union[Val, Dict[str, "FlakeOutputs"]]

    def get_val(self) -> Optional[Val]:
        """The terminal value, if this is one."""
        return self.value if isinstance(self.value, Val) else None

    def get_attrset(self) -> Optional[Dict[str, "FlakeOutputs"]]:
        """The nested outputs, if this is not a terminal value."""
        return None if isinstance(self.value, Val) else self.value

    def get_attrset_of_val(self) -> List[Tuple[str, Val]]:
        """The terminal values directly under this node, by name."""
        attrs = self.get_attrset()
        if attrs is None:
            return []
        return [(key, child.value) for key, child in attrs.items() if isinstance(child.value, Val)]

    def get_by_path(self, path: Sequence[str]) -> Optional["FlakeOutputs"]:
        """Look up a node by its path of names, e.g. ``["aarch64-darwin", "default"]``."""
        current: FlakeOutputs = self
        for key in path:
            attrs = current.get_attrset()
            if attrs is None or key not in attrs:
                return None
            current = attrs[key]
        return current


def _item_to_outputs(item: InventoryItem) -> Optional[FlakeOutputs]:
    if isinstance(item, Val):
        return FlakeOutputs(item)
    if isinstance(item, str):
        return None
    if "children" in item:
        return _item_to_outputs(item["children"])
    children = {}
    for key, child in item.items():
        converted = _item_to_outputs(child)
        if converted is not None:
            children[key] = converted
    return FlakeOutputs(children) if children else None


@dataclass
class FlakeSchemas:
    """The schema inventory of a flake, as evaluated by the inspect flake."""

    inventory: Dict[str, InventoryItem]

    @classmethod
    def from_json(cls, data: Any) -> "FlakeSchemas":
        """Build from the JSON the inspect flake evaluates to."""
        if not isinstance(data, Mapping):
            raise _json_error(f"expected an object, got {data!r}")
        inventory = data.get("inventory")
        if not isinstance(inventory, Mapping):
            raise _json_error("missing or invalid field 'inventory'")
        return cls({key: _parse_item(value) for key, value in inventory.items()})

    @classmethod
    def from_nix(cls, nix_cmd: NixCmd, flake_url: FlakeUrl, system: System) -> "FlakeSchemas":
        """Evaluate the schemas of ``flake_url`` for ``system``."""
        # excludingOutputPaths is much faster than includingOutputPaths.
        inspect = inspect_flake().with_attr("contents.excludingOutputPaths")
        systems_ref = SystemsListFlakeRef.from_known_system(system)
        if systems_ref is None:
            raise ValueError(f"No known systems flake for system {system}")
        opts = FlakeOptions(
            no_write_lock_file=True,
            override_inputs={
                "flake-schemas": default_flake_schemas(),
                "flake": flake_url,
                "systems": systems_ref.url,
            },
        )
        return cls.from_json(nix_eval(nix_cmd, opts, inspect))

    def to_flake_outputs(self) -> FlakeOutputs:
        """The outputs tree, keeping only branches that lead to values."""
        outputs = {}
        for key, item in self.inventory.items():
            converted = _item_to_outputs(item)
            if converted is not None:
                outputs[key] = converted
        return FlakeOutputs(outputs)


@dataclass
class Flake:
    """A flake and its outputs."""

    url: FlakeUrl
    output: FlakeOutputs

    @classmethod
    def from_nix(cls, nix_cmd: NixCmd, nix_config: "NixConfig", url: FlakeUrl) -> "Flake":
        """Inspect the flake at ``url`` for the configured system."""
        schemas = FlakeSchemas.from_nix(nix_cmd, url, nix_config.system.value)
        return cls(url, schemas.to_flake_outputs())