"""A small JSON-RPC client for a CKB node."""

from __future__ import annotations

import itertools
import json
import re
import threading
from typing import Any
from urllib.parse import urlparse

import requests

from .live_cell import OutPoint

HTTP_TIMEOUT = 30
_H256_RE = re.compile(r"0x[0-9a-fA-F]{64}")


class IdGenerator:
    """Thread-safe source of request ids, starting at 1."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            return next(self._counter)


class RpcError(Exception):
    """An error object returned by the node."""

    def __init__(self, error: Any) -> None:
        super().__init__(error)
        self.error = error

    def __str__(self) -> str:
        return json.dumps(self.error)


def _h256_hex(value: bytes) -> str:
    if len(value) != 32:
        raise ValueError(f"expected a 32-byte hash, got {len(value)} bytes")
    return "0x" + bytes(value).hex()


def _parse_h256(value: Any) -> bytes:
    if not isinstance(value, str) or not _H256_RE.fullmatch(value):
        raise ValueError(f"invalid 32-byte hash: {value!r}")
    return bytes.fromhex(value[2:])


def _out_point_json(out_point: OutPoint) -> dict:
    return {"tx_hash": _h256_hex(out_point.tx_hash), "index": hex(out_point.index)}


class RpcClient:
    """Calls the node's JSON-RPC methods over HTTP."""

    def __init__(self, uri: str, session: requests.Session | None = None) -> None:
        parsed = urlparse(uri)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f'ckb uri, e.g. "http://127.0.0.1:8114": {uri!r}')
        self.url = uri
        self.session = session if session is not None else requests.Session()
        self.id_generator = IdGenerator()

    def build_request(self, method: str, params: list | None) -> dict:
        """The request body for ``method``; no params are sent as null."""
        return {
            "id": self.id_generator.next(),
            "jsonrpc": "2.0",
            "method": method,
            "params": params if params else None,
        }

    def call(self, method: str, params: list | None = None) -> Any:
        """Call ``method`` and return its result, raising RpcError on failure."""
        body = self.build_request(method, params)
        response = self.session.post(self.url, json=body, timeout=HTTP_TIMEOUT)
        output = response.json()
        if not isinstance(output, dict):
            raise ValueError("invalid JSON-RPC response")
        if "error" in output:
            raise RpcError(output["error"])
        if "result" in output:
            return output["result"]
        raise ValueError("invalid JSON-RPC response: neither result nor error")

    def get_transaction(self, tx_hash: bytes) -> dict | None:
        """The transaction with status, or None when the node does not know it."""
        result = self.call("get_transaction", [_h256_hex(tx_hash)])
        if result is None or result.get("transaction") is None:
            return None
        return result

    def send_transaction(self, tx: dict) -> bytes:
        """Submit a transaction and return its hash."""
        result = self.call("send_transaction", [tx, "passthrough"])
        return _parse_h256(result)

    def get_live_cell(self, out_point: OutPoint, with_data: bool) -> dict:
        return self.call("get_live_cell", [_out_point_json(out_point), with_data])

    def get_block_by_number(self, number: int) -> dict | None:
        if number < 0:
            raise ValueError(f"invalid block number: {number}")
        return self.call("get_block_by_number", [hex(number)])