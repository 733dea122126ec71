"""Utility functions for the yield-sensitive DLMM program module."""

import json
import re
import struct
from typing import Union

import base58
from Crypto.Hash import SHA256
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .constants import (
    ACCOUNT_NAMESPACE,
    DISCRIMINATOR_SIZE,
    INSTRUCTION_NAMESPACE,
)


def sha256(data: bytes) -> bytes:
    """Compute the SHA-256 digest of data."""
    return SHA256.new(data).digest()


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator: sha256("global:<snake_name>")[:8].

    The discriminator is always derived from the snake_case name, whatever
    casing the interface description exposes.
    """
    return sha256(f"{INSTRUCTION_NAMESPACE}:{to_snake_case(name)}".encode("utf-8"))[
        :DISCRIMINATOR_SIZE
    ]


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: sha256("account:<TypeName>")[:8]."""
    return sha256(f"{ACCOUNT_NAMESPACE}:{name}".encode("utf-8"))[:DISCRIMINATOR_SIZE]


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case.

    "initializePool" -> "initialize_pool", "callerAtaA" -> "caller_ata_a"
    """
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def to_camel_case(name: str) -> str:
    """Convert snake_case to camelCase.

    "initialize_pool" -> "initializePool", "caller_ata_a" -> "callerAtaA"
    """
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def encode_u8(value: int) -> bytes:
    """Encode an unsigned 8-bit integer.

    Raises:
        ValueError: If value is out of range [0, 255]
    """
    if not 0 <= value <= 255:
        raise ValueError(f"u8 value out of range: {value} (must be 0-255)")
    return struct.pack("<B", value)


def encode_u64(value: int) -> bytes:
    """Encode an unsigned 64-bit integer (little-endian).

    Raises:
        ValueError: If value is out of range [0, 2^64-1]
    """
    if not 0 <= value <= 18446744073709551615:
        raise ValueError(f"u64 value out of range: {value} (must be 0-18446744073709551615)")
    return struct.pack("<Q", value)


def pubkey_to_bytes(pubkey: Union[Pubkey, bytes]) -> bytes:
    """Convert a Pubkey to bytes."""
    if isinstance(pubkey, bytes):
        return pubkey
    return bytes(pubkey)


def load_keypair(text: str) -> Keypair:
    """Load a keypair from a JSON byte array or a base58-encoded secret key."""
    stripped = text.strip()
    if stripped.startswith("["):
        return Keypair.from_bytes(bytes(json.loads(stripped)))
    secret = base58.b58decode(stripped)
    if len(secret) != 64:
        raise ValueError(f"Invalid secret key length: {len(secret)} (expected 64)")
    return Keypair.from_bytes(secret)
