"""GitHub pull requests, enough to find the branch a PR URL refers to."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote, urlsplit

import requests

from ..flake_url import FlakeUrl

_USER_AGENT = "github.com/juspay/omnix"
_PR_NUMBER_RE = re.compile(r"\+?[0-9]+")
_U64_MAX = 2**64 - 1
_TIMEOUT = 30


@dataclass(frozen=True)
class PullRequestRef:
    """A reference to a GitHub pull request."""

    owner: str
    repo: str
    pr: int

    @classmethod
    def from_web_url(cls, url: str) -> Optional["PullRequestRef"]:
        """Parse ``https://github.com/<owner>/<repo>/pull/<n>``; ``None`` otherwise."""
        try:
            parts = urlsplit(url)
            host = parts.hostname
        except ValueError:
            return None
        if parts.scheme.lower() != "https" or host != "github.com":
            return None
        if not parts.path.startswith("/"):
            return None
        segments = parts.path[1:].split("/")
        if len(segments) != 4 or segments[2] != "pull":
            return None
        owner, repo, _, number = segments
        if not _PR_NUMBER_RE.fullmatch(number):
            return None
        pr = int(number)
        if pr > _U64_MAX:
            return None
        return cls(owner, repo, pr)

    def api_url(self) -> str:
        """The GitHub API URL of this pull request."""
        return f"https://api.github.com/repos/{self.owner}/{self.repo}/pulls/{self.pr}"

    def __str__(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/pull/{self.pr}"


def _field(data: Any, key: str, what: str) -> Any:
    if not isinstance(data, Mapping) or key not in data:
        raise ValueError(f"{what}: missing field {key!r}")
    return data[key]


def _str_field(data: Any, key: str, what: str) -> str:
    value = _field(data, key, what)
    if not isinstance(value, str):
        raise ValueError(f"{what}.{key}: expected a string, got {value!r}")
    return value


@dataclass(frozen=True)
class PullRequest:
    """The parts of a GitHub pull request API response used here."""

    url: str
    head_ref: str
    head_repo_full_name: str

    @classmethod
    def from_json(cls, data: Any) -> "PullRequest":
        """Build from the JSON of the pull request API."""
        head = _field(data, "head", "pull request")
        repo = _field(head, "repo", "head")
        return cls(
            url=_str_field(data, "url", "pull request"),
            head_ref=_str_field(head, "ref", "head"),
            head_repo_full_name=_str_field(repo, "full_name", "repo"),
        )

    @classmethod
    def get(cls, ref: PullRequestRef) -> "PullRequest":
        """Fetch the pull request from the GitHub API."""
        url = ref.api_url()
        try:
            # The GitHub API requires a user agent.
            resp = requests.get(url, headers={"User-Agent": _USER_AGENT}, timeout=_TIMEOUT)
        except requests.RequestException as err:
            raise RuntimeError(f"cannot create request: {url}") from err
        if not 200 <= resp.status_code < 300:
            raise RuntimeError(f"cannot make request: {resp.status_code}")
        try:
            return cls.from_json(resp.json())
        except ValueError as err:
            raise RuntimeError(f"cannot parse response: {url}") from err

    def flake_url(self) -> FlakeUrl:
        """A flake URL for the branch of this pull request.

        The ``github:`` syntax cannot carry special characters in a branch
        name, so a ``git+https`` URL with an encoded ``ref`` is used.
        """
        return FlakeUrl(
            f"git+https://github.com/{self.head_repo_full_name}"
            f"?ref={quote(self.head_ref, safe='')}"
        )