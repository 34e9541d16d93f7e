"""Capsule release versions and project compatibility."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

_RELEASE = "0.10.0"
_COMMIT_ID_ENV = "CAPSULE_COMMIT_ID"
_UINT_RE = re.compile(r"\+?[0-9]+")


def _parse_uint(text: str, maximum: int) -> int:
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not _UINT_RE.fullmatch(text):
        raise ValueError(f"invalid digit found in string: {text!r}")
    value = int(text)
    if value > maximum:
        raise ValueError(f"number too large to fit in target type: {text}")
    return value


@dataclass(frozen=True)
class Version:
    """A capsule version: ``major.minor.patch[-pre] [commit]``."""

    major: int
    minor: int
    patch: int
    pre: str = ""
    commit_id: str = ""

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string, raising ValueError when malformed."""
        items = text.split()
        if not items or len(items) > 2:
            raise ValueError(f"unexpected parts after split whitespaces: {len(items)}")
        commit_id = items[1] if len(items) == 2 else ""

        items = items[0].split("-")
        if len(items) > 2:
            raise ValueError(f"unexpected parts after split '-': {len(items)}")
        pre = items[1] if len(items) == 2 else ""

        numbers = items[0].split(".")
        if len(numbers) > 3:
            raise ValueError(f"unexpected parts after split '.': {len(numbers)}")
        if len(numbers) < 3:
            raise ValueError(f"missing version parts in {items[0]!r}")
        major = _parse_uint(numbers[0], 0xFF)
        minor = _parse_uint(numbers[1], 0xFF)
        patch = _parse_uint(numbers[2], 0xFFFF)
        return cls(major, minor, patch, pre, commit_id)

    @classmethod
    def current(cls) -> Version:
        """The version of this tool."""
        base = cls.parse(_RELEASE)
        commit_id = os.environ.get(_COMMIT_ID_ENV, "").strip()
        return cls(base.major, base.minor, base.patch, base.pre, commit_id)

    def is_compatible(self, other: Version) -> bool:
        """Versions are compatible when major and minor numbers match."""
        return self.major == other.major and self.minor == other.minor

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            version += f"-{self.pre}"
        return f"{version} {self.commit_id}".strip()