"""Running the lockfile, flake-check and custom CI steps."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import stat
import tempfile
from typing import Iterable, Iterator, Mapping

from ..command import NixCmd
from ..flake_command import FlakeOptions, check, develop, lock, run
from ..flake_url import FlakeUrl
from ..system import System
from .config import CustomStep, CustomStepKind, FlakeCheckStep, LockfileStep, SubflakeConfig

logger = logging.getLogger(__name__)

_WRITE_BITS = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH


def nix_flake_lock_check(nixcmd: NixCmd, url: FlakeUrl) -> None:
    """Fail unless the flake's ``flake.lock`` is in sync."""
    lock(nixcmd, FlakeOptions(), ["--no-update-lock-file"], url)


def run_lockfile_step(
    step: LockfileStep, nixcmd: NixCmd, url: FlakeUrl, subflake: SubflakeConfig
) -> None:
    """Check the subflake's lock file; subflakes overriding inputs are skipped."""
    if subflake.override_inputs:
        return
    logger.info("🫀 Checking that %s/flake.lock is up-to-date", subflake.dir)
    nix_flake_lock_check(nixcmd, url.sub_flake_url(subflake.dir))


def run_flake_check_step(
    step: FlakeCheckStep, nixcmd: NixCmd, url: FlakeUrl, subflake: SubflakeConfig
) -> None:
    """Run ``nix flake check`` on the subflake."""
    logger.info("🩺 Running flake check on: %s", subflake.dir)
    opts = FlakeOptions(override_inputs=dict(subflake.override_inputs))
    check(nixcmd, opts, url.sub_flake_url(subflake.dir))


def _is_read_only(path: str) -> bool:
    return not os.stat(path).st_mode & _WRITE_BITS


def _make_user_writable(root: str) -> None:
    for dirpath, _dirnames, filenames in os.walk(root):
        for path in [dirpath, *(os.path.join(dirpath, f) for f in filenames)]:
            if not os.path.islink(path):
                os.chmod(path, os.stat(path).st_mode | stat.S_IWUSR)


@contextlib.contextmanager
def writeable_flake_dir(url: FlakeUrl) -> Iterator[str]:
    """Yield a writeable local directory holding the flake at ``url``.

    A read-only flake (such as a store path) is copied into a temporary
    directory, removed again on exit; ``nix run`` and ``nix develop`` need
    a mutable flake directory.
    """
    local_path = url.as_local_path()
    if local_path is None:
        raise ValueError(f"Flake {url} is not a local path")
    if not _is_read_only(local_path):
        yield local_path
        return
    with tempfile.TemporaryDirectory(prefix="om-ci-") as temp_dir:
        target = os.path.join(temp_dir, "flake")
        shutil.copytree(local_path, target, symlinks=True)
        _make_user_writable(target)
        yield target


def run_custom_step(
    step: CustomStep, nixcmd: NixCmd, url: FlakeUrl, subflake: SubflakeConfig
) -> None:
    """Run a custom step from within the subflake's directory."""
    with writeable_flake_dir(url) as flake_path:
        path = os.path.join(flake_path, subflake.dir)
        logger.info("Running custom step under: %s", path)
        pwd_flake = FlakeUrl.from_path(".")
        opts = FlakeOptions(
            override_inputs=dict(subflake.override_inputs),
            current_dir=path,
            no_write_lock_file=False,
        )
        target = pwd_flake.with_attr(step.name.get_name())
        if step.kind is CustomStepKind.APP:
            run(nixcmd, opts, target, list(step.args))
        else:
            develop(nixcmd, opts, target, list(step.command))


def run_custom_steps(
    steps: Mapping[str, CustomStep],
    nixcmd: NixCmd,
    systems: Iterable[System],
    url: FlakeUrl,
    subflake: SubflakeConfig,
) -> None:
    """Run every custom step allowed on ``systems``, in name order."""
    systems = list(systems)
    for name, step in sorted(steps.items(), key=lambda kv: kv[0]):
        if step.can_run_on(systems):
            logger.info("🏗  Running custom step: %s", name)
            run_custom_step(step, nixcmd, url, subflake)
        else:
            logger.info(
                "🏗  Skipping custom step %s because it's not whitelisted for the "
                "current system: %s",
                name,
                [str(s) for s in systems],
            )