"""The GitHub Actions matrix of systems and subflakes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from ..system import System
from .config import SubflakesConfig


@dataclass(frozen=True)
class GitHubMatrixRow:
    """One matrix entry: a subflake to build on a system."""

    system: System
    subflake: str

    def to_json(self) -> Dict[str, str]:
        """A JSON-ready dict for this row."""
        return {"system": str(self.system), "subflake": self.subflake}


@dataclass
class GitHubMatrix:
    """A GitHub Actions matrix configuration."""

    include: List[GitHubMatrixRow] = field(default_factory=list)

    @classmethod
    def from_subflakes(
        cls, systems: Iterable[System], subflakes: SubflakesConfig
    ) -> "GitHubMatrix":
        """One row per system and subflake that may run on that system."""
        include = [
            GitHubMatrixRow(system, name)
            for system in systems
            for name, subflake in sorted(subflakes.subflakes.items())
            if subflake.can_run_on([system])
        ]
        return cls(include)

    def to_json(self) -> Dict[str, Any]:
        """A JSON-ready dict in the form GitHub Actions expects."""
        return {"include": [row.to_json() for row in self.include]}