"""CI configuration of subflakes and their steps, as defined in flake.nix."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..flake_url import FlakeAttr, FlakeUrl
from ..store import StorePath
from ..system import System

_DEFAULT_NIX_BUILD_ARGS = ("--refresh", "-j", "auto")


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected an object, got {data!r}")
    return data


def _required(data: Mapping[str, Any], key: str, what: str) -> Any:
    if key not in data:
        raise ValueError(f"{what}: missing field {key!r}")
    return data[key]


def _bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{what}: expected a boolean, got {value!r}")
    return value


def _str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{what}: expected a string, got {value!r}")
    return value


def _str_list(value: Any, what: str) -> List[str]:
    if not isinstance(value, list):
        raise ValueError(f"{what}: expected a list, got {value!r}")
    return [_str(item, what) for item in value]


def _systems(value: Any, what: str) -> Optional[List[System]]:
    if value is None:
        return None
    return [System.parse(s) for s in _str_list(value, what)]


def _flake_attr(value: Any, what: str) -> FlakeAttr:
    if value is None:
        return FlakeAttr()
    return FlakeAttr(_str(value, what))


def _enable(data: Any, what: str) -> bool:
    data = _mapping(data, what)
    return _bool(_required(data, "enable", what), f"{what}.enable")


def _whitelisted(whitelist: Optional[Sequence[System]], systems: Iterable[System]) -> bool:
    if whitelist is None:
        return True
    wanted = list(systems)
    return any(s in wanted for s in whitelist)


def _sorted_unique(paths: Iterable[StorePath]) -> List[StorePath]:
    result: List[StorePath] = []
    for path in sorted(paths):
        if not result or result[-1] != path:
            result.append(path)
    return result


@dataclass
class DevourFlakeOutput:
    """The store paths built from all outputs of a flake."""

    out_paths: List[StorePath] = field(default_factory=list)
    by_name: Dict[str, StorePath] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> "DevourFlakeOutput":
        """Parse devour-flake output; out paths come back sorted and deduplicated."""
        what = "devour-flake output"
        data = _mapping(data, what)
        out_paths = _str_list(_required(data, "outPaths", what), f"{what}.outPaths")
        by_name = _mapping(_required(data, "byName", what), f"{what}.byName")
        return cls(
            # A flake may expose one package under several names.
            out_paths=_sorted_unique(StorePath(p) for p in out_paths),
            by_name={k: StorePath(_str(v, f"{what}.byName")) for k, v in by_name.items()},
        )


@dataclass
class BuildStep:
    """Builds all flake outputs."""

    enable: bool = True


@dataclass
class BuildStepArgs:
    """Command-line arguments of the build step."""

    include_all_dependencies: bool = False
    extra_nix_build_args: List[str] = field(
        default_factory=lambda: list(_DEFAULT_NIX_BUILD_ARGS)
    )

    def to_cli_args(self) -> List[str]:
        """These arguments in their command-line form."""
        args: List[str] = []
        if self.include_all_dependencies:
            args.append("--include-all-dependencies")
        if self.extra_nix_build_args:
            args.append("--")
            args.extend(self.extra_nix_build_args)
        return args


@dataclass
class BuildStepResult:
    """The outcome of the build step."""

    devour_flake_output: DevourFlakeOutput = field(default_factory=DevourFlakeOutput)
    all_deps: Optional[List[StorePath]] = None

    def to_json(self) -> Dict[str, Any]:
        """A JSON-ready dict; ``allDeps`` appears only when known."""
        data: Dict[str, Any] = {
            "outPaths": [str(p) for p in self.devour_flake_output.out_paths],
            "byName": {k: str(v) for k, v in self.devour_flake_output.by_name.items()},
        }
        if self.all_deps is not None:
            data["allDeps"] = [str(p) for p in self.all_deps]
        return data


@dataclass
class LockfileStep:
    """Checks that ``flake.lock`` is not out of date."""

    enable: bool = True


@dataclass
class FlakeCheckStep:
    """Runs ``nix flake check``; off by default since few flakes need it."""

    enable: bool = False


class CustomStepKind(Enum):
    """What a custom step runs."""

    APP = "app"
    DEVSHELL = "devshell"


@dataclass
class CustomStep:
    """A user-defined step: a flake app, or a command in a devshell."""

    kind: CustomStepKind
    name: FlakeAttr = field(default_factory=FlakeAttr)
    args: List[str] = field(default_factory=list)
    command: List[str] = field(default_factory=list)
    systems: Optional[List[System]] = None

    def __post_init__(self) -> None:
        if self.kind is CustomStepKind.DEVSHELL and not self.command:
            raise ValueError("devshell step needs a non-empty command")

    @classmethod
    def from_json(cls, data: Any) -> "CustomStep":
        """Parse a step tagged by its ``type``: ``app`` or ``devshell``."""
        what = "custom step"
        data = _mapping(data, what)
        tag = _str(_required(data, "type", what), f"{what}.type")
        try:
            kind = CustomStepKind(tag)
        except ValueError:
            raise ValueError(
                f"{what}: unknown variant {tag!r}, expected 'app' or 'devshell'"
            ) from None
        name = _flake_attr(data.get("name"), f"{what}.name")
        systems = _systems(data.get("systems"), f"{what}.systems")
        if kind is CustomStepKind.APP:
            args = _str_list(data.get("args", []), f"{what}.args")
            return cls(kind, name=name, args=args, systems=systems)
        command = _str_list(_required(data, "command", what), f"{what}.command")
        return cls(kind, name=name, command=command, systems=systems)

    def can_run_on(self, systems: Iterable[System]) -> bool:
        """Whether this step may run on any of ``systems``."""
        return _whitelisted(self.systems, systems)


@dataclass
class Steps:
    """The builtin CI steps and the user's custom steps."""

    lockfile_step: LockfileStep = field(default_factory=LockfileStep)
    build_step: BuildStep = field(default_factory=BuildStep)
    flake_check_step: FlakeCheckStep = field(default_factory=FlakeCheckStep)
    custom_steps: Dict[str, CustomStep] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.custom_steps = dict(sorted(self.custom_steps.items()))

    @classmethod
    def from_json(cls, data: Any) -> "Steps":
        """Parse the ``steps`` object; every step is optional."""
        what = "steps"
        data = _mapping(data, what)
        steps = cls()
        if "lockfile" in data:
            steps.lockfile_step = LockfileStep(_enable(data["lockfile"], "lockfile"))
        if "build" in data:
            steps.build_step = BuildStep(_enable(data["build"], "build"))
        if "flake-check" in data:
            steps.flake_check_step = FlakeCheckStep(
                _enable(data["flake-check"], "flake-check")
            )
        if "custom" in data:
            custom = _mapping(data["custom"], "custom")
            steps.custom_steps = dict(
                sorted((k, CustomStep.from_json(v)) for k, v in custom.items())
            )
        return steps


@dataclass
class StepsArgs:
    """Command-line arguments for all steps."""

    build_step_args: BuildStepArgs = field(default_factory=BuildStepArgs)

    def to_cli_args(self) -> List[str]:
        """These arguments in their command-line form."""
        return self.build_step_args.to_cli_args()


@dataclass
class SubflakeConfig:
    """A subflake look-alike; its inputs may need overriding to evaluate."""

    skip: bool = False
    dir: str = "."
    override_inputs: Dict[str, FlakeUrl] = field(default_factory=dict)
    systems: Optional[List[System]] = None
    steps: Steps = field(default_factory=Steps)

    def __post_init__(self) -> None:
        self.override_inputs = dict(sorted(self.override_inputs.items()))

    @classmethod
    def from_json(cls, data: Any) -> "SubflakeConfig":
        """Parse one subflake entry; only ``dir`` is required."""
        what = "subflake"
        data = _mapping(data, what)
        overrides = _mapping(data.get("overrideInputs", {}), f"{what}.overrideInputs")
        return cls(
            skip=_bool(data.get("skip", False), f"{what}.skip"),
            dir=_str(_required(data, "dir", what), f"{what}.dir"),
            override_inputs={
                k: FlakeUrl(_str(v, f"{what}.overrideInputs")) for k, v in overrides.items()
            },
            systems=_systems(data.get("systems"), f"{what}.systems"),
            steps=Steps.from_json(data["steps"]) if "steps" in data else Steps(),
        )

    def can_run_on(self, systems: Iterable[System]) -> bool:
        """Whether CI for this subflake may run on any of ``systems``."""
        return _whitelisted(self.systems, systems)


@dataclass
class SubflakesConfig:
    """CI configuration of every subflake, by name in sorted order."""

    subflakes: Dict[str, SubflakeConfig] = field(
        default_factory=lambda: {"ROOT": SubflakeConfig()}
    )

    def __post_init__(self) -> None:
        self.subflakes = dict(sorted(self.subflakes.items()))

    @classmethod
    def from_json(cls, data: Any) -> "SubflakesConfig":
        """Parse an object mapping subflake names to their configuration."""
        data = _mapping(data, "subflakes")
        return cls({k: SubflakeConfig.from_json(v) for k, v in data.items()})


def subflake_extra_args(
    subflake: SubflakeConfig, build_step_args: BuildStepArgs
) -> List[str]:
    """The extra nix arguments used when building ``subflake``."""
    args: List[str] = []
    for name, url in sorted(subflake.override_inputs.items()):
        args += ["--override-input", name, url.url]
    args.extend(build_step_args.extra_nix_build_args)
    return args