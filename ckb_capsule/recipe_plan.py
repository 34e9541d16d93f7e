"""Deployment recipes, their JSON snapshots and the human-readable plan."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

import yaml

from .human_capacity import HumanCapacity

_H256_RE = re.compile(r"0x[0-9a-fA-F]{64}")
_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1


def _hex(value: bytes) -> str:
    return "0x" + value.hex()


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


def _str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"invalid type for field `{key}`")
    return value


def _human(shannons: int) -> str:
    return format(HumanCapacity(shannons), "#")


@dataclass(frozen=True)
class CellRecipe:
    name: str
    tx_hash: bytes
    index: int
    occupied_capacity: int
    data_hash: bytes
    type_id: bytes | None

    def _to_dict(self) -> dict:
        return {
            "name": self.name,
            "tx_hash": _hex(self.tx_hash),
            "index": self.index,
            "occupied_capacity": self.occupied_capacity,
            "data_hash": _hex(self.data_hash),
            "type_id": None if self.type_id is None else _hex(self.type_id),
        }

    @classmethod
    def _from_dict(cls, data: Any) -> CellRecipe:
        type_id = _field(data, "type_id")
        return cls(
            name=_str(_field(data, "name"), "name"),
            tx_hash=_h256(_field(data, "tx_hash"), "tx_hash"),
            index=_uint(_field(data, "index"), "index", _U32_MAX),
            occupied_capacity=_uint(
                _field(data, "occupied_capacity"), "occupied_capacity", _U64_MAX
            ),
            data_hash=_h256(_field(data, "data_hash"), "data_hash"),
            type_id=None if type_id is None else _h256(type_id, "type_id"),
        )


@dataclass(frozen=True)
class DepGroupRecipe:
    name: str
    tx_hash: bytes
    index: int
    occupied_capacity: int

    def _to_dict(self) -> dict:
        return {
            "name": self.name,
            "tx_hash": _hex(self.tx_hash),
            "index": self.index,
            "occupied_capacity": self.occupied_capacity,
        }

    @classmethod
    def _from_dict(cls, data: Any) -> DepGroupRecipe:
        return cls(
            name=_str(_field(data, "name"), "name"),
            tx_hash=_h256(_field(data, "tx_hash"), "tx_hash"),
            index=_uint(_field(data, "index"), "index", _U32_MAX),
            occupied_capacity=_uint(
                _field(data, "occupied_capacity"), "occupied_capacity", _U64_MAX
            ),
        )


@dataclass(frozen=True)
class DeploymentRecipe:
    """The transactions a deployment creates, in order."""

    cell_recipes: tuple[CellRecipe, ...]
    dep_group_recipes: tuple[DepGroupRecipe, ...]

    def to_json(self) -> str:
        return json.dumps(
            {
                "cell_recipes": [r._to_dict() for r in self.cell_recipes],
                "dep_group_recipes": [r._to_dict() for r in self.dep_group_recipes],
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> DeploymentRecipe:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as err:
            raise ValueError(f"invalid recipe JSON: {err}") from err
        cells = _field(data, "cell_recipes")
        groups = _field(data, "dep_group_recipes")
        if not isinstance(cells, list) or not isinstance(groups, list):
            raise ValueError("recipe lists must be arrays")
        return cls(
            cell_recipes=tuple(CellRecipe._from_dict(item) for item in cells),
            dep_group_recipes=tuple(DepGroupRecipe._from_dict(item) for item in groups),
        )


@dataclass(frozen=True)
class CellPlan:
    name: str
    index: int
    tx_hash: bytes
    occupied_capacity: str
    data_hash: bytes
    type_id: bytes | None

    @classmethod
    def from_recipe(cls, recipe: CellRecipe) -> CellPlan:
        return cls(
            name=recipe.name,
            index=recipe.index,
            tx_hash=recipe.tx_hash,
            occupied_capacity=_human(recipe.occupied_capacity),
            data_hash=recipe.data_hash,
            type_id=recipe.type_id,
        )

    def _to_dict(self) -> dict:
        return {
            "name": self.name,
            "index": self.index,
            "tx_hash": _hex(self.tx_hash),
            "occupied_capacity": self.occupied_capacity,
            "data_hash": _hex(self.data_hash),
            "type_id": None if self.type_id is None else _hex(self.type_id),
        }


@dataclass(frozen=True)
class DepGroupPlan:
    name: str
    tx_hash: bytes
    index: int
    occupied_capacity: str

    @classmethod
    def from_recipe(cls, recipe: DepGroupRecipe) -> DepGroupPlan:
        return cls(
            name=recipe.name,
            tx_hash=recipe.tx_hash,
            index=recipe.index,
            occupied_capacity=_human(recipe.occupied_capacity),
        )

    def _to_dict(self) -> dict:
        return {
            "name": self.name,
            "tx_hash": _hex(self.tx_hash),
            "index": self.index,
            "occupied_capacity": self.occupied_capacity,
        }


@dataclass(frozen=True)
class RecipePlan:
    cells: tuple[CellPlan, ...]
    dep_groups: tuple[DepGroupPlan, ...]

    @classmethod
    def from_recipe(cls, recipe: DeploymentRecipe) -> RecipePlan:
        return cls(
            cells=tuple(CellPlan.from_recipe(r) for r in recipe.cell_recipes),
            dep_groups=tuple(DepGroupPlan.from_recipe(r) for r in recipe.dep_group_recipes),
        )

    def _to_dict(self) -> dict:
        return {
            "cells": [cell._to_dict() for cell in self.cells],
            "dep_groups": [group._to_dict() for group in self.dep_groups],
        }


@dataclass(frozen=True)
class Plan:
    """Capacities and recipe shown to the user before deploying."""

    migrated_capacity: str
    new_occupied_capacity: str
    txs_fee_capacity: str
    total_occupied_capacity: str
    recipe: RecipePlan

    @classmethod
    def create(
        cls,
        migrated_capacity: int,
        new_occupied_capacity: int,
        total_occupied_capacity: int,
        txs_fee_capacity: int,
        recipe: DeploymentRecipe,
    ) -> Plan:
        return cls(
            migrated_capacity=_human(migrated_capacity),
            new_occupied_capacity=_human(new_occupied_capacity),
            txs_fee_capacity=_human(txs_fee_capacity),
            total_occupied_capacity=_human(total_occupied_capacity),
            recipe=RecipePlan.from_recipe(recipe),
        )

    def to_yaml(self) -> str:
        data = {
            "migrated_capacity": self.migrated_capacity,
            "new_occupied_capacity": self.new_occupied_capacity,
            "txs_fee_capacity": self.txs_fee_capacity,
            "total_occupied_capacity": self.total_occupied_capacity,
            "recipe": self.recipe._to_dict(),
        }
        return yaml.safe_dump(data, sort_keys=False, explicit_start=True)