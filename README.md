# nixkit

nixkit lets Python code talk to Nix. It builds `nix` command lines, runs
them, and turns their output into plain Python objects: versions,
configuration, flake URLs, store paths and store URIs, flake outputs and
the machine Nix runs on. The `nixkit.ci` package holds the pieces of a
flake CI runner: subflake and step configuration, the lockfile,
flake-check and custom steps, GitHub Actions matrices and pull request
references.

Anything that calls Nix needs the `nix` executable on `PATH`. Parsing and
the pure helpers work without it.

## Versions and requirements

```python
from nixkit.version import NixVersion
from nixkit.version_spec import NixVersionReq

version = NixVersion.parse("nix (Nix) 2.13.0")
requirement = NixVersionReq.parse("!=2.9, >2.8")

requirement.matches(version)                    # True
requirement.matches(NixVersion.parse("2.9.0"))  # False
```

`NixVersion.get()` asks the installed Nix once and reuses the answer.
Unparseable input raises `BadNixVersion` or `BadNixVersionSpec`.

## Flake URLs

```python
from nixkit.flake_url import FlakeUrl

url = FlakeUrl.parse("github:example/project#checks")
base, attr = url.split_attr()
attr.as_list()                   # ["checks"]
url.with_attr("default")         # github:example/project#default
base.sub_flake_url("dev")        # github:example/project?dir=dev

FlakeUrl.parse("./foo?q=bar").as_local_path()  # "./foo"
```

## Systems and stores

```python
from nixkit.system import System
from nixkit.store import StorePath, StoreURI

System.parse("aarch64-darwin").human_readable()   # "macOS (ARM)"

store = StoreURI.parse("ssh://builder@build.example.com?copy-inputs=true")
str(store)               # "ssh://builder@build.example.com"
store.opts.copy_inputs   # True
```

Only `ssh://` store URIs are accepted; anything else raises
`StoreURIParseError`.

## Running Nix

```python
from nixkit.command import NixCmd, ProcessFailedError
from nixkit.config import NixConfig
from nixkit.flake_command import FlakeOptions, build
from nixkit.flake_url import FlakeUrl

cmd = NixCmd.get()                 # flakes switched on when nix.conf lacks them
config = NixConfig.get()
config.is_flakes_enabled()

try:
    out_paths = build(cmd, FlakeOptions(), FlakeUrl.parse("."))
except ProcessFailedError as err:
    print(err.exit_code, err.stderr)
```

`nixkit.flake_command` also has `run`, `develop`, `lock`, `check`,
`nix_eval`, `nix_eval_maybe` (which returns `None` when the attribute is
missing) and `nix_copy`.

Failures are raised as exceptions: `SpawnError` when a process could not
start, `ProcessFailedError` when it exited unsuccessfully (both are
`CommandError`s), and `DecodeError` when the output cannot be decoded. All
of them are `NixCmdError`s.

## Flake outputs and system lists

`nixkit.schema.Flake.from_nix` and `FlakeSchemas.from_nix` inspect a
flake's outputs into a `FlakeOutputs` tree. They read the flakes to use
from the `INSPECT_FLAKE` and `DEFAULT_FLAKE_SCHEMAS` environment
variables. `nixkit.system_list` maps system names to systems-list flakes
through the `NIX_SYSTEMS` environment variable, a JSON object; when it is
unset, no system is known.

## Environment information

`nixkit.info.NixInfo.get()` gathers the Nix version, its configuration and
the environment (user, groups, operating system, disk, memory and the
installer used) in one object. `nixkit.env` and `nixkit.detsys_installer`
hold the detection pieces.

## CI building blocks

```python
from nixkit.ci.config import SubflakesConfig
from nixkit.ci.matrix import GitHubMatrix
from nixkit.ci.flake_ref import FlakeRef
from nixkit.system import System

subflakes = SubflakesConfig.from_json({"ROOT": {"dir": "."}})
matrix = GitHubMatrix.from_subflakes([System.parse("x86_64-linux")], subflakes)
matrix.to_json()   # {"include": [{"system": "x86_64-linux", "subflake": "ROOT"}]}

ref = FlakeRef.parse("https://github.com/example/project/pull/19")
ref.to_flake_url()   # asks the GitHub API for the branch of the pull request
```

`nixkit.ci.steps` runs the lockfile step, the flake-check step and custom
steps (`run_custom_steps` runs each one allowed on the given systems, in
name order). Custom steps need a local flake path; a read-only one is
copied into a temporary directory first.

## What nixkit does not do

- There is no command-line program; everything is a Python API.
- There is no wrapper for `nix-store`: querying derivers and requisites,
  adding files to the store or registering garbage-collector roots are not
  provided.
- The build step exists as configuration, arguments and result types
  (`BuildStep`, `BuildStepArgs`, `BuildStepResult`), but nixkit does not
  run it, nor does it run all steps of a subflake together or run CI on a
  remote machine.

## Tests

The test suite uses pytest; install the `test` extra to get it.