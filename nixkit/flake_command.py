"""Flake-related nix commands: run, develop, build, lock, check, eval and copy."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .command import Arg, DecodeError, NixCmd, ProcessFailedError
from .flake_url import FlakeUrl
from .store import StoreURI

PathArg = Union[str, "os.PathLike[str]"]

_MISSING_ATTRIBUTE = "does not provide attribute"


def _json_error(message: str) -> DecodeError:
    return DecodeError(f"Failed to decode command stdout (json error): {message}")


def _loads(stdout: bytes) -> Any:
    try:
        return json.loads(stdout)
    except ValueError as err:
        raise _json_error(str(err)) from err


@dataclass
class FlakeOptions:
    """Nix command-line options used when working with a flake."""

    override_inputs: Dict[str, FlakeUrl] = field(default_factory=dict)
    no_write_lock_file: bool = False
    refresh: bool = False
    # Not enabled by default, since accepting a flake's nixConfig is not secure.
    accept_flake_config: Optional[bool] = None
    current_dir: Optional[PathArg] = None

    def to_args(self) -> List[str]:
        """The options as nix arguments; overrides come in name order."""
        args: List[str] = []
        for name, url in sorted(self.override_inputs.items(), key=lambda kv: kv[0]):
            args += ["--override-input", name, str(url)]
        if self.no_write_lock_file:
            args.append("--no-write-lock-file")
        if self.refresh:
            args.append("--refresh")
        if self.accept_flake_config is True:
            args.append("--accept-flake-config")
        elif self.accept_flake_config is False:
            args.append("--no-accept-flake-config")
        return args


@dataclass(frozen=True)
class OutPath:
    """A path built by nix, as reported by ``nix build --json``."""

    drv_path: str
    outputs: Dict[str, str]

    @classmethod
    def from_json(cls, data: Any) -> "OutPath":
        """Build from one entry of the ``nix build --json`` output."""
        if not isinstance(data, Mapping):
            raise _json_error(f"expected an object, got {data!r}")
        drv_path = data.get("drvPath")
        outputs = data.get("outputs")
        if not isinstance(drv_path, str):
            raise _json_error("missing or invalid field 'drvPath'")
        if not isinstance(outputs, Mapping) or not all(
            isinstance(v, str) for v in outputs.values()
        ):
            raise _json_error("missing or invalid field 'outputs'")
        return cls(drv_path, dict(outputs))

    def first_output(self) -> Optional[str]:
        """The first build output, if any."""
        return next(iter(self.outputs.values()), None)


@dataclass(frozen=True)
class NixCopyOptions:
    """Options for ``nix copy``."""

    from_: Optional[StoreURI] = None
    to: Optional[StoreURI] = None
    no_check_sigs: bool = False

    def to_args(self) -> List[str]:
        """The options as nix arguments."""
        args: List[str] = []
        if self.from_ is not None:
            args += ["--from", str(self.from_)]
        if self.to is not None:
            args += ["--to", str(self.to)]
        if self.no_check_sigs:
            args.append("--no-check-sigs")
        return args


def run(nixcmd: NixCmd, opts: FlakeOptions, url: FlakeUrl, args: Sequence[str]) -> None:
    """Run ``nix run`` on the given flake app."""
    nixcmd.run_with(
        ["run", *opts.to_args(), str(url), "--", *args], cwd=opts.current_dir
    )


def develop(
    nixcmd: NixCmd, opts: FlakeOptions, url: FlakeUrl, command: Sequence[str]
) -> None:
    """Run a command inside the given flake devshell with ``nix develop -c``."""
    if not command:
        raise ValueError("develop needs a non-empty command")
    nixcmd.run_with(
        [*opts.to_args(), "develop", str(url), "-c", *command], cwd=opts.current_dir
    )


def build(cmd: NixCmd, opts: FlakeOptions, url: FlakeUrl) -> List[OutPath]:
    """Run ``nix build --no-link --json`` and return the built paths."""
    stdout = cmd.run_with_returning_stdout(
        [*opts.to_args(), "build", "--no-link", "--json", str(url)],
        cwd=opts.current_dir,
    )
    data = _loads(stdout)
    if not isinstance(data, list):
        raise _json_error(f"expected a list, got {data!r}")
    return [OutPath.from_json(item) for item in data]


def lock(cmd: NixCmd, opts: FlakeOptions, args: Sequence[str], url: FlakeUrl) -> None:
    """Run ``nix flake lock``."""
    cmd.run_with(
        ["flake", "lock", str(url), *opts.to_args(), *args], cwd=opts.current_dir
    )


def check(cmd: NixCmd, opts: FlakeOptions, url: FlakeUrl) -> None:
    """Run ``nix flake check``."""
    cmd.run_with(["flake", "check", str(url), *opts.to_args()], cwd=opts.current_dir)


def _nix_eval(
    nixcmd: NixCmd, opts: FlakeOptions, url: FlakeUrl, capture_stderr: bool
) -> Any:
    stdout = nixcmd.run_with(
        # Double --quiet keeps nix from logging about --override-input use.
        ["eval", "--json", *opts.to_args(), str(url), "--quiet", "--quiet"],
        cwd=opts.current_dir,
        capture_stdout=True,
        capture_stderr=capture_stderr,
    )
    return _loads(stdout)


def nix_eval(nixcmd: NixCmd, opts: FlakeOptions, url: FlakeUrl) -> Any:
    """Run ``nix eval <url> --json`` and return the parsed JSON."""
    return _nix_eval(nixcmd, opts, url, capture_stderr=False)


def nix_eval_maybe(cmd: NixCmd, opts: FlakeOptions, url: FlakeUrl) -> Optional[Any]:
    """Like :func:`nix_eval`, but return ``None`` if the attribute is missing."""
    try:
        return _nix_eval(cmd, opts, url, capture_stderr=True)
    except ProcessFailedError as err:
        if _MISSING_ATTRIBUTE in err.stderr:
            return None
        raise


def nix_copy(cmd: NixCmd, options: NixCopyOptions, paths: Iterable[Arg]) -> None:
    """Copy store paths between stores with ``nix copy``.

    Keep ``paths`` within the operating system's argument size limit.
    """
    cmd.run_with(["copy", "-v", *options.to_args(), *paths])