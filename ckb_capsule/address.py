"""CKB addresses: bech32 encoding of lock script payloads."""

from __future__ import annotations

import enum
import hashlib
from collections.abc import Iterable
from dataclasses import dataclass

from .config import Script, ScriptHashType

PREFIX_MAINNET = "ckb"
PREFIX_TESTNET = "ckt"

NETWORK_MAINNET = "ckb"
NETWORK_TESTNET = "ckb_testnet"
NETWORK_STAGING = "ckb_staging"
NETWORK_DEV = "ckb_dev"

SIGHASH_TYPE_HASH = bytes.fromhex(
    "9bd7e06f3ecf4be0f2fcd2188b23f1b9fcc88e5d4b65a8637b17723bbda3cce8"
)
MULTISIG_TYPE_HASH = bytes.fromhex(
    "5c5069eb0857efc65e1bca0c07df34c31663b3622fd3876c876320fc9634e2a8"
)

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_CHECKSUM_LEN = 6


def blake2b_256(data: bytes) -> bytes:
    """The 32-byte blake2b hash with CKB's personalization."""
    return hashlib.blake2b(data, digest_size=32, person=b"ckb-default-hash").digest()


def convert_bits(data: Iterable[int], from_bits: int, to_bits: int, pad: bool) -> bytes:
    """Regroup a sequence of ``from_bits``-wide values into ``to_bits``-wide ones."""
    if not (1 <= from_bits <= 8 and 1 <= to_bits <= 8):
        raise ValueError("bit widths must be between 1 and 8")
    acc = 0
    bits = 0
    maxv = (1 << to_bits) - 1
    result = []
    for value in data:
        if value < 0 or value >> from_bits:
            raise ValueError(f"invalid data range: {value}")
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            result.append((acc >> bits) & maxv)
        acc &= (1 << bits) - 1
    if pad:
        if bits:
            result.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or (acc << (to_bits - bits)) & maxv:
        raise ValueError("invalid padding")
    return bytes(result)


def _polymod(values: Iterable[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = (checksum & 0x1FFFFFF) << 5 ^ value
        for i, generator in enumerate(_GENERATOR):
            if (top >> i) & 1:
                checksum ^= generator
    return checksum


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _check_hrp(hrp: str) -> None:
    if not hrp:
        raise ValueError("invalid length")
    if any(not 33 <= ord(c) <= 126 for c in hrp):
        raise ValueError("invalid character in human-readable part")


def bech32_encode(hrp: str, data: Iterable[int]) -> str:
    """Encode 5-bit ``data`` under ``hrp`` with a bech32 checksum."""
    _check_hrp(hrp)
    if hrp.lower() != hrp and hrp.upper() != hrp:
        raise ValueError("mixed case")
    hrp = hrp.lower()
    values = list(data)
    if any(not 0 <= v < 32 for v in values):
        raise ValueError("invalid data value")
    polymod = _polymod(_hrp_expand(hrp) + values + [0] * _CHECKSUM_LEN) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(_CHECKSUM_LEN)]
    return hrp + "1" + "".join(_CHARSET[v] for v in values + checksum)


def bech32_decode(text: str) -> tuple[str, bytes]:
    """Decode a bech32 string into its hrp and 5-bit data, checksum removed."""
    if len(text) < 8:
        raise ValueError("invalid length")
    if text.lower() != text and text.upper() != text:
        raise ValueError("mixed case")
    text = text.lower()
    separator = text.rfind("1")
    if separator < 0:
        raise ValueError("missing separator")
    hrp, payload = text[:separator], text[separator + 1:]
    _check_hrp(hrp)
    if len(payload) < _CHECKSUM_LEN:
        raise ValueError("invalid length")
    try:
        values = [_CHARSET.index(c) for c in payload]
    except ValueError:
        raise ValueError("invalid character in data part") from None
    if _polymod(_hrp_expand(hrp) + values) != 1:
        raise ValueError("invalid checksum")
    return hrp, bytes(values[:-_CHECKSUM_LEN])


class NetworkType(enum.Enum):
    MAINNET = NETWORK_MAINNET
    TESTNET = NETWORK_TESTNET
    STAGING = NETWORK_STAGING
    DEV = NETWORK_DEV

    @classmethod
    def from_prefix(cls, value: str) -> NetworkType | None:
        return {PREFIX_MAINNET: cls.MAINNET, PREFIX_TESTNET: cls.TESTNET}.get(value)

    def to_prefix(self) -> str:
        return PREFIX_MAINNET if self is NetworkType.MAINNET else PREFIX_TESTNET

    def __str__(self) -> str:
        return self.value


class AddressType(enum.IntEnum):
    SHORT = 0x01
    FULL_DATA = 0x02
    FULL_TYPE = 0x04


class CodeHashIndex(enum.IntEnum):
    SIGHASH = 0x00
    MULTISIG = 0x01

    @property
    def code_hash(self) -> bytes:
        return SIGHASH_TYPE_HASH if self is CodeHashIndex.SIGHASH else MULTISIG_TYPE_HASH


@dataclass(frozen=True)
class AddressPayload:
    """A lock script as carried by an address; short when ``index`` is set."""

    hash_type: ScriptHashType
    code_hash: bytes
    args: bytes
    index: CodeHashIndex | None = None

    def __post_init__(self) -> None:
        if len(self.code_hash) != 32:
            raise ValueError(f"code hash must be 32 bytes, got {len(self.code_hash)}")
        if self.index is not None:
            if len(self.args) != 20:
                raise ValueError(f"short payload hash must be 20 bytes, got {len(self.args)}")
            if self.hash_type is not ScriptHashType.TYPE or self.code_hash != self.index.code_hash:
                raise ValueError("short payload does not match its code hash index")

    @classmethod
    def new_short(cls, index: CodeHashIndex, hash: bytes) -> AddressPayload:
        return cls(ScriptHashType.TYPE, index.code_hash, bytes(hash), index)

    @classmethod
    def new_full(cls, hash_type: ScriptHashType, code_hash: bytes, args: bytes) -> AddressPayload:
        return cls(hash_type, bytes(code_hash), bytes(args))

    @classmethod
    def new_full_data(cls, code_hash: bytes, args: bytes) -> AddressPayload:
        return cls.new_full(ScriptHashType.DATA, code_hash, args)

    @classmethod
    def new_full_type(cls, code_hash: bytes, args: bytes) -> AddressPayload:
        return cls.new_full(ScriptHashType.TYPE, code_hash, args)

    @classmethod
    def from_pubkey(cls, pubkey: bytes) -> AddressPayload:
        """Sighash payload of a compressed secp256k1 public key."""
        if len(pubkey) != 33 or pubkey[0] not in (0x02, 0x03):
            raise ValueError("expected a 33-byte compressed public key")
        return cls.from_pubkey_hash(blake2b_256(bytes(pubkey))[:20])

    @classmethod
    def from_pubkey_hash(cls, hash: bytes) -> AddressPayload:
        return cls.new_short(CodeHashIndex.SIGHASH, hash)

    @classmethod
    def from_script(cls, script: Script) -> AddressPayload:
        """The shortest payload that describes ``script``."""
        if script.hash_type is ScriptHashType.TYPE and len(script.args) == 20:
            for index in CodeHashIndex:
                if script.code_hash == index.code_hash:
                    return cls.new_short(index, script.args)
        return cls.new_full(script.hash_type, script.code_hash, script.args)

    def to_script(self) -> Script:
        return Script(code_hash=self.code_hash, hash_type=self.hash_type, args=self.args)

    def address_type(self) -> AddressType:
        if self.index is not None:
            return AddressType.SHORT
        if self.hash_type is ScriptHashType.TYPE:
            return AddressType.FULL_TYPE
        return AddressType.FULL_DATA

    def script_hash_type(self) -> ScriptHashType:
        return self.hash_type

    def script_code_hash(self) -> bytes:
        return self.code_hash

    def script_args(self) -> bytes:
        return self.args

    def to_bytes(self) -> bytes:
        if self.index is not None:
            return bytes([self.index]) + self.args
        return self.code_hash + self.args


@dataclass(frozen=True)
class Address:
    network: NetworkType
    payload: AddressPayload

    @classmethod
    def parse(cls, text: str) -> Address:
        """Parse a bech32 address, raising ValueError when malformed."""
        hrp, data5 = bech32_decode(text)
        network = NetworkType.from_prefix(hrp)
        if network is None:
            raise ValueError(f"Invalid hrp: {hrp}")
        data = convert_bits(data5, 5, 8, False)
        if not data:
            raise ValueError("Invalid input data length 0")
        try:
            ty = AddressType(data[0])
        except ValueError:
            raise ValueError(f"Invalid address type value: {data[0]}") from None
        if ty is AddressType.SHORT:
            if len(data) != 22:
                raise ValueError(f"Invalid input data length {len(data)}")
            try:
                index = CodeHashIndex(data[1])
            except ValueError:
                raise ValueError(f"Invalid code hash index value: {data[1]}") from None
            return cls(network, AddressPayload.new_short(index, data[2:22]))
        if len(data) < 33:
            raise ValueError(f"Insufficient data length: {len(data)}")
        hash_type = ScriptHashType.DATA if ty is AddressType.FULL_DATA else ScriptHashType.TYPE
        return cls(network, AddressPayload.new_full(hash_type, data[1:33], data[33:]))

    def display_with_network(self, network: NetworkType) -> str:
        data = bytes([self.payload.address_type()]) + self.payload.to_bytes()
        return bech32_encode(network.to_prefix(), convert_bits(data, 8, 5, True))

    def __str__(self) -> str:
        return self.display_with_network(self.network)