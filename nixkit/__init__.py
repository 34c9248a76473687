"""Work with Nix from Python: commands, flakes, store paths and system information."""

__version__ = "0.1.0"