"""Project and deployment configuration, and edits to config documents."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.items import AoT, Array, Table

_H256_RE = re.compile(r"0x[0-9a-fA-F]{64}")
_BYTES_RE = re.compile(r"0x(?:[0-9a-fA-F]{2})*")
_U32_MAX = 2**32 - 1


class TemplateType(enum.Enum):
    """Contract template languages."""

    RUST = "Rust"
    C = "C"
    C_SHARED_LIB = "CSharedLib"

    @classmethod
    def parse(cls, text: str) -> TemplateType:
        """Parse a command line template name such as ``c-sharedlib``."""
        names = {"rust": cls.RUST, "c": cls.C, "c-sharedlib": cls.C_SHARED_LIB}
        try:
            return names[text.lower()]
        except KeyError:
            raise ValueError(f"Unexpected template type '{text}'") from None


class ScriptHashType(enum.Enum):
    DATA = "data"
    TYPE = "type"
    DATA1 = "data1"


def _require(data: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, kind) or isinstance(value, bool) and kind is int:
        raise ValueError(f"invalid type for field `{key}`")
    return value


def _parse_h256(text: Any) -> bytes:
    if not isinstance(text, str) or not _H256_RE.fullmatch(text):
        raise ValueError(f"invalid 32-byte hash: {text!r}")
    return bytes.fromhex(text[2:])


def _parse_hex_bytes(text: Any) -> bytes:
    if not isinstance(text, str) or not _BYTES_RE.fullmatch(text):
        raise ValueError(f"invalid hex bytes: {text!r}")
    return bytes.fromhex(text[2:])


def _parse_u32(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ValueError(f"invalid u32 for `{name}`: {value!r}")
    return value


@dataclass(frozen=True)
class Script:
    code_hash: bytes
    hash_type: ScriptHashType
    args: bytes

    @classmethod
    def from_dict(cls, data: dict) -> Script:
        try:
            hash_type = ScriptHashType(_require(data, "hash_type", str))
        except ValueError as err:
            raise ValueError(f"invalid script hash_type: {err}") from None
        return cls(
            code_hash=_parse_h256(_require(data, "code_hash", str)),
            hash_type=hash_type,
            args=_parse_hex_bytes(_require(data, "args", str)),
        )


@dataclass(frozen=True)
class Contract:
    name: str
    template_type: TemplateType


@dataclass
class RustConfig:
    workspace_dir: Path | None = None
    toolchain: str | None = None
    docker_image: str | None = None


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"invalid type for field `{key}`")
    return value


@dataclass
class Config:
    """Contents of ``capsule.toml``."""

    deployment: Path
    version: str = ""
    contracts: list[Contract] = field(default_factory=list)
    rust: RustConfig = field(default_factory=RustConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        deployment = Path(_require(data, "deployment", str))
        version = data.get("version", "")
        if not isinstance(version, str):
            raise ValueError("invalid type for field `version`")
        contracts = []
        for item in data.get("contracts", []):
            if not isinstance(item, dict):
                raise ValueError("invalid contract entry")
            name = _require(item, "name", str)
            try:
                template_type = TemplateType(_require(item, "template_type", str))
            except ValueError as err:
                raise ValueError(f"invalid template_type for contract {name!r}: {err}") from None
            contracts.append(Contract(name, template_type))
        rust_data = data.get("rust", {})
        if not isinstance(rust_data, dict):
            raise ValueError("invalid type for field `rust`")
        workspace_dir = _optional_str(rust_data, "workspace_dir")
        rust = RustConfig(
            workspace_dir=Path(workspace_dir) if workspace_dir is not None else None,
            toolchain=_optional_str(rust_data, "toolchain"),
            docker_image=_optional_str(rust_data, "docker_image"),
        )
        return cls(deployment=deployment, version=version, contracts=contracts, rust=rust)


@dataclass(frozen=True)
class OutPointLocation:
    tx_hash: bytes
    index: int


@dataclass(frozen=True)
class FileLocation:
    file: str


@dataclass(frozen=True)
class Cell:
    name: str
    location: OutPointLocation | FileLocation
    enable_type_id: bool


@dataclass(frozen=True)
class DepGroup:
    name: str
    cells: list[str]


def _location_from_dict(data: Any) -> OutPointLocation | FileLocation:
    if isinstance(data, dict):
        if "tx_hash" in data and "index" in data:
            try:
                return OutPointLocation(
                    _parse_h256(data["tx_hash"]), _parse_u32(data["index"], "index")
                )
            except ValueError:
                pass
        if isinstance(data.get("file"), str):
            return FileLocation(data["file"])
    raise ValueError("data did not match any variant of cell location")


def _cell_from_dict(data: Any) -> Cell:
    if not isinstance(data, dict):
        raise ValueError("invalid cell entry")
    return Cell(
        name=_require(data, "name", str),
        location=_location_from_dict(_require(data, "location", dict)),
        enable_type_id=_require(data, "enable_type_id", bool),
    )


def _dep_group_from_dict(data: Any) -> DepGroup:
    if not isinstance(data, dict):
        raise ValueError("invalid dep group entry")
    cells = _require(data, "cells", list)
    if not all(isinstance(name, str) for name in cells):
        raise ValueError("dep group cells must be names")
    return DepGroup(name=_require(data, "name", str), cells=list(cells))


@dataclass
class Deployment:
    """Contents of ``deployment.toml``."""

    lock: Script
    cells: list[Cell]
    dep_groups: list[DepGroup] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Deployment:
        return cls(
            lock=Script.from_dict(_require(data, "lock", dict)),
            cells=[_cell_from_dict(item) for item in _require(data, "cells", list)],
            dep_groups=[_dep_group_from_dict(item) for item in data.get("dep_groups", [])],
        )


def append_contract(doc: tomlkit.TOMLDocument, name: str, template_type: TemplateType) -> None:
    """Append a ``[[contracts]]`` entry to a capsule.toml document."""
    contract = tomlkit.table()
    contract["name"] = name
    contract["template_type"] = template_type.value
    if "contracts" not in doc:
        contracts = tomlkit.aot()
        contracts.append(contract)
        doc["contracts"] = contracts
        return
    contracts = doc["contracts"]
    if not isinstance(contracts, AoT):
        raise ValueError("no 'contracts' section")
    contracts.append(contract)


def append_cargo_workspace_member(doc: tomlkit.TOMLDocument, name: str) -> None:
    """Add a member to the ``[workspace]`` of a Cargo.toml document."""
    workspace = doc.get("workspace")
    if not isinstance(workspace, Table):
        raise ValueError("no 'workspace' section")
    members = workspace.get("members")
    if not isinstance(members, Array):
        raise ValueError("no 'members' section")
    members.append(name)