"""Semantic version parsing and ordering."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

_VERSION = re.compile(
    r"v?([0-9]+)(\.[0-9]+)?(\.[0-9]+)?"
    r"(?:-([0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+([0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
)


class InvalidVersionError(ValueError):
    """Raised when text is not a semantic version."""


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A semantic version; build metadata does not take part in ordering."""

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: str = ""
    metadata: str = ""
    original: str = ""

    def _precedence(self) -> tuple:
        if not self.prerelease:
            pre: tuple = (1,)
        else:
            pre = (
                0,
                tuple(
                    (0, int(part), "") if part.isdigit() else (1, 0, part)
                    for part in self.prerelease.split(".")
                ),
            )
        return (self.major, self.minor, self.patch, pre)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._precedence() == other._precedence()

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._precedence() < other._precedence()

    def __hash__(self) -> int:
        return hash(self._precedence())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.metadata:
            text += f"+{self.metadata}"
        return text


def parse_version(text: str) -> Version:
    """Parse ``text`` as a semantic version, allowing a leading "v" and missing parts."""
    match = _VERSION.fullmatch(text)
    if match is None:
        raise InvalidVersionError(f"invalid semantic version: {text!r}")
    major, minor, patch, prerelease, metadata = match.groups()
    return Version(
        major=int(major),
        minor=int(minor[1:]) if minor else 0,
        patch=int(patch[1:]) if patch else 0,
        prerelease=prerelease or "",
        metadata=metadata or "",
        original=text,
    )