"""Running the ``nix`` command with its global options."""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
Arg = Union[str, "os.PathLike[str]"]


class NixCmdError(Exception):
    """Running a nix command, or interpreting its output, failed."""


class CommandError(NixCmdError):
    """Running a command failed."""


class SpawnError(CommandError):
    """The child process could not be started."""

    def __init__(self, cause: OSError) -> None:
        super().__init__(f"Child process error: {cause}")
        self.cause = cause


class ProcessFailedError(CommandError):
    """The child process exited unsuccessfully."""

    def __init__(self, stderr: str, exit_code: Optional[int]) -> None:
        super().__init__(
            f"Process exited unsuccessfully. exit_code={exit_code!r} stderr={stderr}"
        )
        self.stderr = stderr
        self.exit_code = exit_code


class DecodeError(NixCmdError):
    """The output of a command could not be decoded or parsed."""


def to_cli(args: Iterable[Arg]) -> str:
    """Render a command line as a string a user can copy into a shell."""
    return shlex.join(os.fspath(a) for a in args)


def trace_cmd(args: Iterable[Arg]) -> None:
    """Log a user-copyable form of the given command line."""
    trace_cmd_with("❄️ ", args)


def trace_cmd_with(icon: str, args: Iterable[Arg]) -> None:
    """Like :func:`trace_cmd`, with a custom icon."""
    logger.info("%s %s", icon, to_cli(args))


def _lossy(data: Optional[bytes]) -> str:
    return (data or b"").decode("utf-8", errors="replace")


_global_lock = threading.Lock()
_global_cmd: Optional["NixCmd"] = None


@dataclass
class NixCmd:
    """Global options passed to every ``nix`` invocation."""

    extra_experimental_features: List[str] = field(default_factory=list)
    extra_access_tokens: List[str] = field(default_factory=list)
    refresh: bool = False

    @classmethod
    def get(cls) -> "NixCmd":
        """Return the shared instance, with flakes enabled if nix.conf lacks them."""
        global _global_cmd
        from .config import NixConfig, NixConfigError

        with _global_lock:
            if _global_cmd is None:
                try:
                    cfg = NixConfig.get()
                except NixConfigError as err:
                    raise RuntimeError(
                        f"Unable to get Nix config. Is your nix.conf valid?\n{err}"
                    ) from err
                cmd = cls()
                if not cfg.is_flakes_enabled():
                    cmd.with_flakes()
                _global_cmd = cmd
            return _global_cmd

    def with_flakes(self) -> None:
        """Enable the nix-command and flakes experimental features."""
        self.extra_experimental_features.extend(["nix-command", "flakes"])

    def with_nix_command(self) -> None:
        """Enable the nix-command experimental feature."""
        self.extra_experimental_features.append("nix-command")

    def args(self) -> List[str]:
        """The global options as command-line arguments."""
        args: List[str] = []
        if self.extra_experimental_features:
            args += ["--extra-experimental-features", " ".join(self.extra_experimental_features)]
        if self.extra_access_tokens:
            args += ["--extra-access-tokens", " ".join(self.extra_access_tokens)]
        if self.refresh:
            args.append("--refresh")
        return args

    def command(self, *args: Arg) -> List[str]:
        """The full argument vector for running nix with the given arguments."""
        return ["nix", *self.args(), *(os.fspath(a) for a in args)]

    def run_with(
        self,
        args: Iterable[Arg] = (),
        cwd: Optional[Arg] = None,
        capture_stdout: bool = False,
        capture_stderr: bool = False,
    ) -> bytes:
        """Run nix with the given arguments and return captured stdout.

        Streams that are not captured are inherited from this process; stdout
        is then returned empty.
        """
        argv = self.command(*args)
        trace_cmd(argv)
        try:
            out = subprocess.run(
                argv,
                cwd=cwd,
                stdout=subprocess.PIPE if capture_stdout else None,
                stderr=subprocess.PIPE if capture_stderr else None,
                check=False,
            )
        except OSError as err:
            raise SpawnError(err) from err
        if out.returncode == 0:
            return out.stdout or b""
        exit_code = out.returncode if out.returncode >= 0 else None
        raise ProcessFailedError(_lossy(out.stderr), exit_code)

    def run_with_returning_stdout(
        self, args: Iterable[Arg] = (), cwd: Optional[Arg] = None
    ) -> bytes:
        """Run nix capturing both stdout and stderr; return stdout."""
        return self.run_with(args, cwd=cwd, capture_stdout=True, capture_stderr=True)

    def run_with_args_expecting_json(self, args: Iterable[Arg]) -> Any:
        """Run nix and parse its stdout as JSON."""
        stdout = self.run_with_returning_stdout(args)
        try:
            return json.loads(stdout)
        except ValueError as err:
            raise DecodeError(f"Failed to decode command stdout (json error): {err}") from err

    def run_with_args_expecting_fromstr(
        self, args: Iterable[Arg], parse: Callable[[str], T]
    ) -> T:
        """Run nix and parse its trimmed stdout with ``parse``."""
        stdout = self.run_with_returning_stdout(args)
        text = _lossy(stdout).strip()
        try:
            return parse(text)
        except (ValueError, TypeError) as err:
            raise DecodeError(
                "Failed to decode command stdout (from_str error): "
                f"Failed to parse string: {err}"
            ) from err