"""Live cells and the JSON records ckb-cli reports them in."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .human_capacity import HumanCapacity

_H256_RE = re.compile(r"0x[0-9a-fA-F]{64}")
_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1


def _field(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError("expected an object")
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return data[key]


def _h256(value: Any, key: str) -> bytes:
    if not isinstance(value, str) or not _H256_RE.fullmatch(value):
        raise ValueError(f"invalid 32-byte hash for `{key}`: {value!r}")
    return bytes.fromhex(value[2:])


def _uint(value: Any, key: str, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= maximum:
        raise ValueError(f"invalid integer for `{key}`: {value!r}")
    return value


def _typed(value: Any, key: str, kind: type) -> Any:
    if not isinstance(value, kind):
        raise ValueError(f"invalid type for field `{key}`")
    return value


@dataclass(frozen=True)
class OutPoint:
    tx_hash: bytes
    index: int


@dataclass(frozen=True)
class CellInput:
    previous_output: OutPoint
    since: int = 0


@dataclass(frozen=True)
class LiveCell:
    tx_hash: bytes
    index: int
    capacity: int
    mature: bool

    def out_point(self) -> OutPoint:
        return OutPoint(self.tx_hash, self.index)

    def input(self) -> CellInput:
        return CellInput(self.out_point(), 0)


@dataclass(frozen=True)
class CellIndex:
    """Where a cell sits in its block: transaction and output index."""

    tx_index: int
    output_index: int


@dataclass(frozen=True)
class LiveCellInfo:
    tx_hash: bytes
    output_index: int
    data_bytes: int
    lock_hash: bytes
    type_hashes: tuple[bytes, bytes] | None
    capacity: str
    number: int
    index: CellIndex
    mature: bool

    @classmethod
    def from_dict(cls, data: dict) -> LiveCellInfo:
        type_hashes = _field(data, "type_hashes")
        if type_hashes is not None:
            if not isinstance(type_hashes, list) or len(type_hashes) != 2:
                raise ValueError("`type_hashes` must be a pair of hashes")
            type_hashes = (
                _h256(type_hashes[0], "type_hashes"),
                _h256(type_hashes[1], "type_hashes"),
            )
        index = _field(data, "index")
        return cls(
            tx_hash=_h256(_field(data, "tx_hash"), "tx_hash"),
            output_index=_uint(_field(data, "output_index"), "output_index", _U32_MAX),
            data_bytes=_uint(_field(data, "data_bytes"), "data_bytes", _U64_MAX),
            lock_hash=_h256(_field(data, "lock_hash"), "lock_hash"),
            type_hashes=type_hashes,
            capacity=_typed(_field(data, "capacity"), "capacity", str),
            number=_uint(_field(data, "number"), "number", _U64_MAX),
            index=CellIndex(
                tx_index=_uint(_field(index, "tx_index"), "tx_index", _U32_MAX),
                output_index=_uint(_field(index, "output_index"), "output_index", _U32_MAX),
            ),
            mature=_typed(_field(data, "mature"), "mature", bool),
        )

    def capacity_shannons(self) -> int:
        return HumanCapacity.parse(self.capacity).shannons

    def to_live_cell(self) -> LiveCell:
        return LiveCell(
            tx_hash=self.tx_hash,
            index=self.index.output_index,
            capacity=self.capacity_shannons(),
            mature=self.mature,
        )


@dataclass(frozen=True)
class LiveCellInfoVec:
    live_cells: tuple[LiveCellInfo, ...]
    current_capacity: str
    current_count: int
    total_capacity: str
    total_count: int

    @classmethod
    def from_dict(cls, data: dict) -> LiveCellInfoVec:
        cells = _typed(_field(data, "live_cells"), "live_cells", list)
        return cls(
            live_cells=tuple(LiveCellInfo.from_dict(cell) for cell in cells),
            current_capacity=_typed(_field(data, "current_capacity"), "current_capacity", str),
            current_count=_uint(_field(data, "current_count"), "current_count", _U64_MAX),
            total_capacity=_typed(_field(data, "total_capacity"), "total_capacity", str),
            total_count=_uint(_field(data, "total_count"), "total_count", _U64_MAX),
        )


@dataclass(frozen=True)
class SignatureOutput:
    signature: str
    recoverable: bool

    @classmethod
    def from_dict(cls, data: dict) -> SignatureOutput:
        return cls(
            signature=_typed(_field(data, "signature"), "signature", str),
            recoverable=_typed(_field(data, "recoverable"), "recoverable", bool),
        )