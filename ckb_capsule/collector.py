"""Collecting spendable live cells through ckb-cli."""

from __future__ import annotations

import json
import logging
import subprocess
import sys

from .address import Address
from .human_capacity import HumanCapacity
from .live_cell import LiveCell, LiveCellInfo, LiveCellInfoVec, OutPoint

logger = logging.getLogger(__name__)

BLOCKS_IN_BATCH = 1_000_000
LIMIT = 50_000


def handle_cmd(result: subprocess.CompletedProcess) -> bytes:
    """The stdout of a finished command, or RuntimeError if it failed."""
    if result.returncode == 0:
        return result.stdout
    print(f"run command err: {result.returncode}", file=sys.stderr)
    stderr = result.stderr or b""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    print(f"error output: \n{stderr}", file=sys.stderr)
    raise RuntimeError(f"exit code: {result.returncode}")


class Collector:
    """Finds live cells of an address, skipping cells already in use."""

    def __init__(self, api_uri: str, ckb_cli_bin: str) -> None:
        self.api_uri = api_uri
        self.ckb_cli_bin = ckb_cli_bin
        self.locked_cells: set[OutPoint] = set()

    def lock_cell(self, out_point: OutPoint) -> None:
        self.locked_cells.add(out_point)

    def is_live_cell_locked(self, live_cell: LiveCell) -> bool:
        return live_cell.out_point() in self.locked_cells

    def _run_cli(self, args: list[str]) -> bytes:
        result = subprocess.run(
            [self.ckb_cli_bin, "--url", self.api_uri, *args],
            capture_output=True,
            check=False,
        )
        output = handle_cmd(result)
        logger.debug("parse ckb-cli output: %s", output.decode("utf-8", errors="replace"))
        return output

    def get_tip_block_number(self) -> int:
        output = self._run_cli(
            ["rpc", "--wait-for-sync", "get_tip_block_number", "--output-format", "json"]
        )
        number = json.loads(output)
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise ValueError(f"invalid tip block number: {number!r}")
        return number

    def get_live_cells_by_lock_hash(
        self, address: Address, start: int, end: int, limit: int
    ) -> list[LiveCellInfo]:
        output = self._run_cli(
            [
                "wallet",
                "--wait-for-sync",
                "get-live-cells",
                "--address",
                address.display_with_network(address.network),
                "--from",
                str(start),
                "--to",
                str(end),
                "--limit",
                str(limit),
                "--output-format",
                "json",
            ]
        )
        return list(LiveCellInfoVec.from_dict(json.loads(output)).live_cells)

    def collect_live_cells(self, address: Address, capacity: int) -> set[LiveCell]:
        """Unlocked plain cells whose capacity adds up to more than ``capacity``."""
        tip_number = self.get_tip_block_number()
        logger.debug(
            "collect live cells: target %s address %s tip_number %s",
            capacity, address, tip_number,
        )
        live_cells: set[LiveCell] = set()
        collected = 0
        batch = 0
        while collected <= capacity:
            start = batch * BLOCKS_IN_BATCH
            if start > tip_number:
                raise RuntimeError(
                    f"can't find enough live cells, found {HumanCapacity(collected)} "
                    f"expected {HumanCapacity(capacity)}"
                )
            end = (batch + 1) * BLOCKS_IN_BATCH
            batch += 1
            cells = self.get_live_cells_by_lock_hash(address, start, end, LIMIT)
            logger.debug("get cells: from %s to %s cells %s", start, end, len(cells))
            for info in cells:
                if info.data_bytes != 0 or info.type_hashes is not None:
                    continue
                cell = info.to_live_cell()
                if self.is_live_cell_locked(cell) or cell in live_cells:
                    continue
                live_cells.add(cell)
                collected += cell.capacity
                if collected > capacity:
                    break
        return live_cells