"""A reference to a flake: a GitHub pull request or a flake URL."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..flake_url import FlakeUrl
from .pull_request import PullRequest, PullRequestRef


@dataclass(frozen=True)
class FlakeRef:
    """A GitHub pull request URL or any flake URL Nix accepts."""

    target: Union[PullRequestRef, FlakeUrl]

    @classmethod
    def parse(cls, s: str) -> "FlakeRef":
        """A pull request if ``s`` is a GitHub PR URL, else a flake URL."""
        pr = PullRequestRef.from_web_url(s)
        return cls(pr if pr is not None else FlakeUrl(s))

    def to_flake_url(self) -> FlakeUrl:
        """A flake URL Nix recognises; pull requests are looked up on GitHub."""
        if isinstance(self.target, PullRequestRef):
            return PullRequest.get(self.target).flake_url()
        return self.target

    def __str__(self) -> str:
        return str(self.target)