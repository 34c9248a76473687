"""Flake URLs and the attribute part that may follow ``#``."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class FlakeAttr:
    """The optional attribute of a flake URL, e.g. ``foo`` in ``.#foo``."""

    name: Optional[str] = None

    def get_name(self) -> str:
        """The attribute name, or ``default`` when none is set."""
        return "default" if self.name is None else self.name

    def is_none(self) -> bool:
        """Whether no explicit attribute is set."""
        return self.name is None

    def as_list(self) -> List[str]:
        """The attribute split on ``.`` into nested names."""
        return [] if self.name is None else self.name.split(".")


@dataclass(frozen=True, order=True)
class FlakeUrl:
    """A flake URL, kept as the string Nix accepts."""

    url: str

    @classmethod
    def parse(cls, s: str) -> "FlakeUrl":
        """Parse a flake URL; surrounding whitespace is dropped."""
        s = s.strip()
        if not s:
            raise ValueError("Empty string is not a valid Flake URL")
        return cls(s)

    @classmethod
    def from_path(cls, path: Union[str, "os.PathLike[str]"]) -> "FlakeUrl":
        """A flake URL for a local path (without ``path:``, to avoid a store copy)."""
        return cls(os.fspath(path))

    def as_local_path(self) -> Optional[str]:
        """The local path, if this URL uses the path-like syntax."""
        s = self.url[len("path:"):] if self.url.startswith("path:") else self.url
        if not s.startswith((".", "/")):
            return None
        return s.split("?", 1)[0].split("#", 1)[0]

    def split_attr(self) -> Tuple["FlakeUrl", FlakeAttr]:
        """Split into the URL without its attribute, and the attribute."""
        url, sep, attr = self.url.partition("#")
        if not sep:
            return self, FlakeAttr()
        return FlakeUrl(url), FlakeAttr(attr)

    def get_attr(self) -> FlakeAttr:
        """The attribute of this URL."""
        return self.split_attr()[1]

    def without_attr(self) -> "FlakeUrl":
        """This URL with its attribute removed."""
        return self.split_attr()[0]

    def with_attr(self, attr: str) -> "FlakeUrl":
        """This URL with its attribute replaced by ``attr``."""
        return FlakeUrl(f"{self.without_attr().url}#{attr}")

    def sub_flake_url(self, dir: str) -> "FlakeUrl":
        """The URL of the flake in subdirectory ``dir``."""
        if dir == ".":
            return self
        path = self.as_local_path()
        if path is not None:
            return FlakeUrl.from_path(os.path.join(path, dir))
        sep = "&" if "?" in self.url else "?"
        return FlakeUrl(f"{self.url}{sep}dir={dir}")

    def __str__(self) -> str:
        return self.url

    def __fspath__(self) -> str:
        return self.url