import pytest

from nixkit.ci.config import (
    BuildStepArgs,
    BuildStepResult,
    CustomStep,
    CustomStepKind,
    DevourFlakeOutput,
    Steps,
    StepsArgs,
    SubflakeConfig,
    SubflakesConfig,
    subflake_extra_args,
)
from nixkit.flake_url import FlakeAttr, FlakeUrl
from nixkit.store import StorePath
from nixkit.system import System


def test_subflake_minimal_defaults():
    cfg = SubflakeConfig.from_json({"dir": "."})
    assert cfg.skip is False
    assert cfg.override_inputs == {}
    assert cfg.systems is None
    assert cfg.steps.lockfile_step.enable is True
    assert cfg.steps.build_step.enable is True
    assert cfg.steps.flake_check_step.enable is False
    assert cfg.steps.custom_steps == {}


def test_subflake_requires_dir():
    with pytest.raises(ValueError):
        SubflakeConfig.from_json({"skip": True})


def test_subflake_rejects_non_bool_skip():
    with pytest.raises(ValueError):
        SubflakeConfig.from_json({"dir": ".", "skip": "yes"})


def test_subflake_full():
    cfg = SubflakeConfig.from_json(
        {
            "dir": "dev",
            "skip": True,
            "overrideInputs": {"zeta": "github:a/z", "alpha": "github:a/a"},
            "systems": ["x86_64-linux"],
        }
    )
    assert cfg.dir == "dev"
    assert cfg.skip is True
    assert list(cfg.override_inputs) == ["alpha", "zeta"]
    assert cfg.override_inputs["alpha"] == FlakeUrl("github:a/a")
    assert cfg.systems == [System.parse("x86_64-linux")]


def test_subflake_can_run_on():
    any_system = SubflakeConfig()
    assert any_system.can_run_on([System.parse("aarch64-darwin")])
    restricted = SubflakeConfig(systems=[System.parse("x86_64-linux")])
    assert restricted.can_run_on([System.parse("aarch64-darwin"), System.parse("x86_64-linux")])
    assert not restricted.can_run_on([System.parse("aarch64-darwin")])
    assert not restricted.can_run_on([])


def test_subflakes_default_is_root():
    cfg = SubflakesConfig()
    assert list(cfg.subflakes) == ["ROOT"]
    assert cfg.subflakes["ROOT"].dir == "."


def test_subflakes_sorted_by_name():
    cfg = SubflakesConfig.from_json({"b": {"dir": "b"}, "a": {"dir": "a"}})
    assert list(cfg.subflakes) == ["a", "b"]
    assert cfg.subflakes["b"].dir == "b"


def test_steps_from_json():
    steps = Steps.from_json(
        {
            "lockfile": {"enable": False},
            "flake-check": {"enable": True},
            "custom": {
                "z": {"type": "app"},
                "a": {"type": "devshell", "command": ["just", "test"]},
            },
        }
    )
    assert steps.lockfile_step.enable is False
    assert steps.build_step.enable is True
    assert steps.flake_check_step.enable is True
    assert list(steps.custom_steps) == ["a", "z"]


def test_steps_enable_is_required():
    with pytest.raises(ValueError):
        Steps.from_json({"lockfile": {}})


def test_custom_app_defaults():
    step = CustomStep.from_json({"type": "app"})
    assert step.kind is CustomStepKind.APP
    assert step.name == FlakeAttr()
    assert step.name.get_name() == "default"
    assert step.args == []
    assert step.systems is None


def test_custom_devshell():
    step = CustomStep.from_json(
        {"type": "devshell", "name": "ci", "command": ["just", "test"], "systems": ["x86_64-linux"]}
    )
    assert step.kind is CustomStepKind.DEVSHELL
    assert step.name.get_name() == "ci"
    assert step.command == ["just", "test"]
    assert step.can_run_on([System.parse("x86_64-linux")])
    assert not step.can_run_on([System.parse("aarch64-linux")])


@pytest.mark.parametrize(
    "data",
    [
        {"type": "devshell", "command": []},
        {"type": "devshell"},
        {"type": "script"},
        {"name": "x"},
        {"type": "app", "args": "not-a-list"},
    ],
)
def test_custom_step_errors(data):
    with pytest.raises(ValueError):
        CustomStep.from_json(data)


def test_devour_output_sorted_and_deduplicated():
    out = DevourFlakeOutput.from_json(
        {
            "outPaths": ["/nix/store/b", "/nix/store/a", "/nix/store/b", "/nix/store/x.drv"],
            "byName": {"hello": "/nix/store/a"},
        }
    )
    assert out.out_paths == sorted(set(out.out_paths))
    assert {str(p) for p in out.out_paths} == {"/nix/store/a", "/nix/store/b", "/nix/store/x.drv"}
    assert len(out.out_paths) == 3
    assert out.by_name == {"hello": StorePath("/nix/store/a")}


def test_devour_output_requires_fields():
    with pytest.raises(ValueError):
        DevourFlakeOutput.from_json({"outPaths": []})


def test_build_step_result_to_json():
    output = DevourFlakeOutput([StorePath("/nix/store/a")], {"a": StorePath("/nix/store/a")})
    res = BuildStepResult(output)
    assert res.to_json() == {"outPaths": ["/nix/store/a"], "byName": {"a": "/nix/store/a"}}
    res.all_deps = [StorePath("/nix/store/dep")]
    assert res.to_json()["allDeps"] == ["/nix/store/dep"]


def test_build_step_result_round_trip():
    data = {"outPaths": ["/nix/store/a"], "byName": {"a": "/nix/store/a"}}
    res = BuildStepResult(DevourFlakeOutput.from_json(data))
    assert res.to_json() == data


def test_build_step_args_cli():
    assert BuildStepArgs().to_cli_args() == ["--", "--refresh", "-j", "auto"]
    args = BuildStepArgs(include_all_dependencies=True, extra_nix_build_args=[])
    assert args.to_cli_args() == ["--include-all-dependencies"]


def test_steps_args_cli_matches_build_args():
    build_args = BuildStepArgs(include_all_dependencies=True)
    assert StepsArgs(build_args).to_cli_args() == build_args.to_cli_args()


def test_subflake_extra_args():
    sub = SubflakeConfig(
        override_inputs={"zeta": FlakeUrl("github:a/z"), "alpha": FlakeUrl("github:a/a")}
    )
    args = subflake_extra_args(sub, BuildStepArgs(extra_nix_build_args=["-L"]))
    assert args == [
        "--override-input", "alpha", "github:a/a",
        "--override-input", "zeta", "github:a/z",
        "-L",
    ]