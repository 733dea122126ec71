"""PDA (Program Derived Address) derivation functions for the yield-sensitive DLMM."""

from functools import lru_cache
from typing import Sequence, Tuple

from solders.pubkey import Pubkey

from .constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    MAX_SEED_LEN,
    MAX_SEEDS,
    PDA_MARKER,
    PROGRAM_ID,
    SEED_METRICS,
    SEED_NAMESPACE,
    SEED_ORDERBOOK,
    SEED_POOL,
    SEED_POSITION,
    SEED_TREASURY,
    SEED_VAULT,
    TOKEN_PROGRAM_ID,
)
from .errors import AddressDerivationExhausted
from .types import PoolAddresses
from .utils import encode_u64, sha256


def _is_on_curve(candidate: bytes) -> bool:
    return Pubkey.from_bytes(candidate).is_on_curve()


def _validate_seeds(seeds: Sequence[bytes]) -> None:
    # The bump occupies the last seed slot
    if len(seeds) >= MAX_SEEDS:
        raise ValueError(f"Too many seeds: {len(seeds)} (maximum: {MAX_SEEDS - 1})")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(
                f"Seed too long: {len(seed)} bytes (maximum: {MAX_SEED_LEN})"
            )


def _candidate(seeds: Sequence[bytes], program_id: Pubkey) -> bytes:
    return sha256(b"".join(seeds) + bytes(program_id) + PDA_MARKER)


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    """Hash seeds (bump included) into a program address.

    Raises:
        ValueError: If the seeds are malformed or the result lies on the curve
    """
    seeds = [bytes(s) for s in seeds]
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"Too many seeds: {len(seeds)} (maximum: {MAX_SEEDS})")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(
                f"Seed too long: {len(seed)} bytes (maximum: {MAX_SEED_LEN})"
            )
    candidate = _candidate(seeds, program_id)
    if _is_on_curve(candidate):
        raise ValueError("Derived address lies on the ed25519 curve")
    return Pubkey.from_bytes(candidate)


def find_program_address(
    seeds: Sequence[bytes], program_id: Pubkey = PROGRAM_ID
) -> Tuple[Pubkey, int]:
    """Find the canonical program address and bump for seeds.

    Tries bumps 255 down to 0 and returns the first off-curve result.
    Results are memoized per (seeds, program_id).

    Raises:
        ValueError: If a seed exceeds 32 bytes or there are more than 15 seeds
        AddressDerivationExhausted: If no bump yields an off-curve address
    """
    return _find_program_address(tuple(bytes(s) for s in seeds), program_id)


@lru_cache(maxsize=1024)
def _find_program_address(
    seeds: Tuple[bytes, ...], program_id: Pubkey
) -> Tuple[Pubkey, int]:
    _validate_seeds(seeds)
    for bump in range(255, -1, -1):
        candidate = _candidate(seeds + (bytes([bump]),), program_id)
        if not _is_on_curve(candidate):
            return Pubkey.from_bytes(candidate), bump
    raise AddressDerivationExhausted(seeds, program_id)


def clear_derivation_cache() -> None:
    """Drop memoized derivations."""
    _find_program_address.cache_clear()


# ============================================================================
# ROLE HELPERS
# ============================================================================


def get_pool_pda(
    mint_a: Pubkey,
    mint_b: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive the pool PDA for a mint pair.

    Seeds: ["v3", "pool", mint_a, mint_b]
    """
    return find_program_address(
        [SEED_NAMESPACE, SEED_POOL, bytes(mint_a), bytes(mint_b)],
        program_id,
    )


def get_vault_pda(
    pool: Pubkey,
    mint: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive the vault token account PDA for one side of a pool.

    Seeds: ["v3", "vault", pool, mint]
    """
    return find_program_address(
        [SEED_NAMESPACE, SEED_VAULT, bytes(pool), bytes(mint)],
        program_id,
    )


def get_treasury_pda(
    pool: Pubkey,
    mint: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive the treasury token account PDA for one side of a pool.

    Seeds: ["v3", "treasury", pool, mint]
    """
    return find_program_address(
        [SEED_NAMESPACE, SEED_TREASURY, bytes(pool), bytes(mint)],
        program_id,
    )


def get_orderbook_pda(
    pool: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive the orderbook PDA for a pool.

    Seeds: ["v3", "orderbook", pool]
    """
    return find_program_address(
        [SEED_NAMESPACE, SEED_ORDERBOOK, bytes(pool)],
        program_id,
    )


def get_position_pda(
    pool: Pubkey,
    owner: Pubkey,
    receipt_nonce: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive the position (liquidity receipt) PDA.

    Seeds: ["v3", "pos", pool, owner, receipt_nonce (u64 LE)]
    """
    return find_program_address(
        [SEED_NAMESPACE, SEED_POSITION, bytes(pool), bytes(owner), encode_u64(receipt_nonce)],
        program_id,
    )


def get_metrics_pda(
    pool: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive the metrics ring PDA for a pool.

    Seeds: ["v3", "metrics", pool]
    """
    return find_program_address(
        [SEED_NAMESPACE, SEED_METRICS, bytes(pool)],
        program_id,
    )


def get_pool_addresses(
    mint_a: Pubkey,
    mint_b: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> PoolAddresses:
    """Derive every pool-scoped address for a mint pair."""
    pool, _ = get_pool_pda(mint_a, mint_b, program_id)
    return PoolAddresses(
        pool=pool,
        vault_a=get_vault_pda(pool, mint_a, program_id)[0],
        vault_b=get_vault_pda(pool, mint_b, program_id)[0],
        treasury_a=get_treasury_pda(pool, mint_a, program_id)[0],
        treasury_b=get_treasury_pda(pool, mint_b, program_id)[0],
        orderbook=get_orderbook_pda(pool, program_id)[0],
    )


def get_associated_token_address(
    owner: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Pubkey:
    """Derive the associated token account (holding account) for owner and mint.

    Seeds: [owner, token_program, mint] under the associated token program
    """
    address, _ = find_program_address(
        [bytes(owner), bytes(token_program_id), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address
