"""A password that stays out of logs and reprs."""

from __future__ import annotations


class Password:
    """Holds a password; its repr never shows the value."""

    __slots__ = ("_inner",)

    def __init__(self, inner: str) -> None:
        self._inner = inner

    def take(self) -> str:
        """The password itself."""
        return self._inner

    def __repr__(self) -> str:
        return "Password(..)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Password):
            return NotImplemented
        return self._inner == other._inner

    def __hash__(self) -> int:
        return hash(self._inner)