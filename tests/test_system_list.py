import json
import subprocess
from unittest import mock

import pytest

from nixkit.command import DecodeError, NixCmd
from nixkit.flake_url import FlakeUrl
from nixkit.system import System
from nixkit.system_list import SystemsList, SystemsListFlakeRef, nix_systems

KNOWN = {
    "x86_64-linux": "github:nix-systems/x86_64-linux",
    "aarch64-darwin": "github:nix-systems/aarch64-darwin",
}


@pytest.fixture
def known_systems(monkeypatch):
    monkeypatch.setenv("NIX_SYSTEMS", json.dumps(KNOWN))


def _done(stdout):
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr=b"")


def test_nix_systems_unset(monkeypatch):
    monkeypatch.delenv("NIX_SYSTEMS", raising=False)
    assert nix_systems() == {}


def test_nix_systems_from_env(known_systems):
    assert nix_systems() == {k: FlakeUrl(v) for k, v in KNOWN.items()}


def test_nix_systems_invalid(monkeypatch):
    monkeypatch.setenv("NIX_SYSTEMS", "{not json")
    with pytest.raises(ValueError):
        nix_systems()


def test_from_known_system(known_systems):
    ref = SystemsListFlakeRef.from_known_system(System.parse("x86_64-linux"))
    assert ref == SystemsListFlakeRef(FlakeUrl(KNOWN["x86_64-linux"]))
    assert SystemsListFlakeRef.from_known_system(System.parse("riscv64-linux")) is None


def test_parse_known_and_unknown(known_systems):
    assert SystemsListFlakeRef.parse("aarch64-darwin").url == FlakeUrl(KNOWN["aarch64-darwin"])
    assert SystemsListFlakeRef.parse("github:owner/systems") == SystemsListFlakeRef(
        FlakeUrl("github:owner/systems")
    )


def test_from_flake_known_needs_no_nix(known_systems):
    ref = SystemsListFlakeRef(FlakeUrl(KNOWN["x86_64-linux"]))
    with mock.patch("subprocess.run") as run_mock:
        result = SystemsList.from_flake(NixCmd(), ref)
    run_mock.assert_not_called()
    assert result.systems == [System.parse("x86_64-linux")]


def test_from_flake_remote(known_systems):
    ref = SystemsListFlakeRef(FlakeUrl("github:owner/systems"))
    outputs = [_done(b'"/nix/store/abc-source"'), _done(b'["x86_64-linux", "aarch64-darwin"]')]
    with mock.patch("subprocess.run", side_effect=outputs) as run_mock:
        result = SystemsList.from_flake(NixCmd(), ref)
    assert result.systems == [System.parse("x86_64-linux"), System.parse("aarch64-darwin")]
    first, second = (c.args[0] for c in run_mock.call_args_list)
    assert first == [
        "nix", "eval", "--impure", "--json", "--expr", 'builtins.getFlake "github:owner/systems"',
    ]
    assert second[-1] == "import /nix/store/abc-source"


def test_from_flake_remote_bad_output(known_systems):
    ref = SystemsListFlakeRef(FlakeUrl("github:owner/systems"))
    outputs = [_done(b'"/nix/store/abc-source"'), _done(b'{"x": 1}')]
    with mock.patch("subprocess.run", side_effect=outputs):
        with pytest.raises(DecodeError):
            SystemsList.from_flake(NixCmd(), ref)