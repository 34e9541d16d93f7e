"""Capacities in shannons, read and shown as decimal CKB."""

from __future__ import annotations

import re
from dataclasses import dataclass

ONE_CKB = 100_000_000
_U64_MAX = 2**64 - 1
_U32_MAX = 2**32 - 1
_UINT_RE = re.compile(r"\+?[0-9]+")
_SUFFIX = "(CKB)"


def _parse_uint(text: str, maximum: int) -> int:
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not _UINT_RE.fullmatch(text):
        raise ValueError("invalid digit found in string")
    value = int(text)
    if value > maximum:
        raise ValueError("number too large to fit in target type")
    return value


@dataclass(frozen=True, order=True)
class HumanCapacity:
    """An amount of shannons; 100,000,000 shannons make one CKB."""

    shannons: int

    def __post_init__(self) -> None:
        if not 0 <= self.shannons <= _U64_MAX:
            raise ValueError(f"capacity out of range: {self.shannons}")

    @classmethod
    def parse(cls, text: str) -> HumanCapacity:
        """Parse ``"12.345"`` or ``"12.345 (CKB)"``."""
        while text.endswith(_SUFFIX):
            text = text[: -len(_SUFFIX)]
        parts = text.strip().split(".")
        capacity = ONE_CKB * _parse_uint(parts[0], _U64_MAX)
        if len(parts) > 1:
            shannon_str = parts[1].strip()
            if len(shannon_str) > 8:
                raise ValueError(f"decimal part too long: {len(shannon_str)} {shannon_str}")
            shannon = _parse_uint(shannon_str, _U32_MAX) * 10 ** (8 - len(shannon_str))
            capacity += shannon
        if capacity > _U64_MAX:
            raise ValueError("capacity overflow")
        return cls(capacity)

    def _plain(self) -> str:
        ckb_part, shannon_part = divmod(self.shannons, ONE_CKB)
        digits = f"{shannon_part:08d}"
        suffix_zero = 7
        for i in range(8):
            if shannon_part % 10 ** (i + 1) > 0:
                suffix_zero = i
                break
        return f"{ckb_part}.{digits[: 8 - suffix_zero]}"

    def __str__(self) -> str:
        return self._plain()

    def __format__(self, format_spec: str) -> str:
        """``"#"`` adds the ``(CKB)`` unit."""
        if format_spec.startswith("#"):
            return format(f"{self._plain()} {_SUFFIX}", format_spec[1:])
        return format(self._plain(), format_spec)

    def __int__(self) -> int:
        return self.shannons