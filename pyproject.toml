[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nixkit"
version = "0.1.0"
description = "Drive the Nix command line from Python: flakes, store paths, versions, system info and CI configuration"
requires-python = ">=3.10"
keywords = ["nix", "flakes", "nix-store", "ci", "build"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Typing :: Typed",
]
dependencies = [
    "requests",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["nixkit"]

[tool.pytest.ini_options]
addopts = "-ra"
