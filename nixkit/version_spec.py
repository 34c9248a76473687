"""Version requirements such as ``>=2.8, <2.14`` for Nix versions."""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .version import NixVersion

_SPEC_RE = re.compile(r"(?P<op>>=|<=|>|<|!=)(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?")
_U32_MAX = 2**32 - 1


class BadNixVersionSpec(ValueError):
    """A version requirement could not be parsed."""


class SpecOp(Enum):
    """Comparison operator of a version spec."""

    GT = ">"
    GTEQ = ">="
    LT = "<"
    LTEQ = "<="
    NEQ = "!="


_COMPARE = {
    SpecOp.GT: operator.gt,
    SpecOp.GTEQ: operator.ge,
    SpecOp.LT: operator.lt,
    SpecOp.LTEQ: operator.le,
    SpecOp.NEQ: operator.ne,
}


def _u32(text: str) -> int:
    value = int(text)
    if value > _U32_MAX:
        raise BadNixVersionSpec("Parse error(int): Invalid version spec format")
    return value


@dataclass(frozen=True)
class NixVersionSpec:
    """A single comparison against a Nix version."""

    op: SpecOp
    version: NixVersion

    @classmethod
    def parse(cls, s: str) -> "NixVersionSpec":
        """Parse a spec like ``>=2.8``; missing minor and patch default to 0."""
        match = _SPEC_RE.fullmatch(s)
        if match is None:
            raise BadNixVersionSpec("Parse error(regex): Invalid version spec format")
        version = NixVersion(
            _u32(match["major"]),
            _u32(match["minor"] or "0"),
            _u32(match["patch"] or "0"),
        )
        return cls(SpecOp(match["op"]), version)

    def matches(self, version: NixVersion) -> bool:
        """Whether ``version`` satisfies this spec."""
        return _COMPARE[self.op](version, self.version)

    def __str__(self) -> str:
        return f"{self.op.value}{self.version}"


@dataclass(frozen=True)
class NixVersionReq:
    """A comma-separated list of version specs, all of which must hold."""

    specs: Tuple[NixVersionSpec, ...]

    @classmethod
    def parse(cls, s: str) -> "NixVersionReq":
        """Parse a requirement like ``>=2.8, <2.14``."""
        return cls(tuple(NixVersionSpec.parse(part.strip()) for part in s.split(",")))

    def matches(self, version: NixVersion) -> bool:
        """Whether ``version`` satisfies every spec."""
        return all(spec.matches(version) for spec in self.specs)

    def __str__(self) -> str:
        return ", ".join(str(spec) for spec in self.specs)