import json
import subprocess
from unittest import mock

import pytest

from ckb_capsule.address import Address, AddressPayload, CodeHashIndex, NetworkType
from ckb_capsule.collector import BLOCKS_IN_BATCH, LIMIT, Collector, handle_cmd
from ckb_capsule.human_capacity import HumanCapacity
from ckb_capsule.live_cell import LiveCell

ADDRESS = Address(NetworkType.TESTNET, AddressPayload.new_short(CodeHashIndex.SIGHASH, bytes(20)))


def _cell(n, capacity="100.0", data_bytes=0, type_hashes=None):
    return {
        "tx_hash": "0x" + bytes([n]).hex() * 32,
        "output_index": 0,
        "data_bytes": data_bytes,
        "lock_hash": "0x" + "22" * 32,
        "type_hashes": type_hashes,
        "capacity": capacity,
        "number": 1,
        "index": {"tx_index": 0, "output_index": 0},
        "mature": True,
    }


def _cells_output(cells):
    return json.dumps(
        {
            "live_cells": cells,
            "current_capacity": "0.0",
            "current_count": len(cells),
            "total_capacity": "0.0",
            "total_count": len(cells),
        }
    ).encode()


def _fake_cli(tip, cells, calls):
    def run(args, **kwargs):
        calls.append(args)
        if "get_tip_block_number" in args:
            return subprocess.CompletedProcess(args, 0, str(tip).encode(), b"")
        start = int(args[args.index("--from") + 1])
        batch = cells if start == 0 else []
        return subprocess.CompletedProcess(args, 0, _cells_output(batch), b"")

    return run


def test_handle_cmd_success():
    result = subprocess.CompletedProcess(["x"], 0, b"out", b"")
    assert handle_cmd(result) == b"out"


def test_handle_cmd_failure():
    result = subprocess.CompletedProcess(["x"], 3, b"", b"bad")
    with pytest.raises(RuntimeError, match="exit code: 3"):
        handle_cmd(result)


def test_lock_cell():
    collector = Collector("http://localhost:8114", "ckb-cli")
    cell = LiveCell(bytes(32), 1, 10, True)
    assert not collector.is_live_cell_locked(cell)
    collector.lock_cell(cell.out_point())
    assert collector.is_live_cell_locked(cell)


def test_get_tip_block_number():
    calls = []
    collector = Collector("http://localhost:8114", "ckb-cli")
    with mock.patch("subprocess.run", side_effect=_fake_cli(12345, [], calls)):
        assert collector.get_tip_block_number() == 12345
    assert calls[0][:3] == ["ckb-cli", "--url", "http://localhost:8114"]
    assert "get_tip_block_number" in calls[0]


def test_get_live_cells_args_and_parse():
    calls = []
    collector = Collector("http://localhost:8114", "ckb-cli")
    with mock.patch("subprocess.run", side_effect=_fake_cli(0, [_cell(1)], calls)):
        cells = collector.get_live_cells_by_lock_hash(ADDRESS, 0, BLOCKS_IN_BATCH, LIMIT)
    assert [c.tx_hash for c in cells] == [bytes([1]) * 32]
    args = calls[0]
    assert args[args.index("--address") + 1] == str(ADDRESS)
    assert args[args.index("--to") + 1] == str(BLOCKS_IN_BATCH)
    assert args[args.index("--limit") + 1] == str(LIMIT)


def test_collect_stops_when_enough():
    cells = [_cell(1), _cell(2), _cell(3)]
    target = HumanCapacity.parse("150.0").shannons
    collector = Collector("http://localhost:8114", "ckb-cli")
    with mock.patch("subprocess.run", side_effect=_fake_cli(10, cells, [])):
        found = collector.collect_live_cells(ADDRESS, target)
    assert len(found) == 2
    assert sum(c.capacity for c in found) > target


def test_collect_skips_data_typed_and_locked_cells():
    cells = [
        _cell(1, data_bytes=4),
        _cell(2, type_hashes=["0x" + "33" * 32, "0x" + "44" * 32]),
        _cell(3),
        _cell(4),
    ]
    collector = Collector("http://localhost:8114", "ckb-cli")
    locked = LiveCell(bytes([3]) * 32, 0, 0, True)
    collector.lock_cell(locked.out_point())
    with mock.patch("subprocess.run", side_effect=_fake_cli(10, cells, [])):
        found = collector.collect_live_cells(ADDRESS, 1)
    assert {c.tx_hash for c in found} == {bytes([4]) * 32}


def test_collect_not_enough_raises():
    collector = Collector("http://localhost:8114", "ckb-cli")
    with mock.patch("subprocess.run", side_effect=_fake_cli(0, [_cell(1)], [])):
        with pytest.raises(RuntimeError, match="can't find enough live cells"):
            collector.collect_live_cells(ADDRESS, HumanCapacity.parse("1000.0").shannons)