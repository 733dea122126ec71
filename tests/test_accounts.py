"""Tests for account deserialization and the Borsh codec."""

import dataclasses
import hashlib
import struct

import pytest
from solders.pubkey import Pubkey

from yield_dlmm_sdk.program import (
    POOL_VERSION,
    InvalidAccountDataError,
    InvalidDiscriminatorError,
    OrderBook,
    PriceLevel,
    Side,
    deserialize_orderbook,
    deserialize_pool,
    deserialize_position,
    serialize_account,
)
from yield_dlmm_sdk.program.accounts import (
    POOL_DISCRIMINATOR,
    POOL_LAYOUT,
    POSITION_DISCRIMINATOR,
)
from yield_dlmm_sdk.program.codec import Option, Vec, decode, encode
from yield_dlmm_sdk.program.types import BookEvent


def build_position_data(
    pool: Pubkey,
    owner: Pubkey,
    band_idx: int,
    shares: int,
    receipt_nonce: int,
    approved: Pubkey = None,
) -> bytes:
    """Build Position account data for testing."""
    data = bytearray()
    data.extend(POSITION_DISCRIMINATOR)
    data.append(254)  # bump
    data.extend(bytes(pool))
    data.extend(bytes(owner))
    data.append(band_idx)
    data.extend(struct.pack("<Q", shares))
    data.extend((5).to_bytes(16, "little"))
    data.extend((6).to_bytes(16, "little"))
    data.extend(struct.pack("<Q", receipt_nonce))
    data.extend(struct.pack("<Q", 1000))  # min_unlock_slot
    if approved is None:
        data.append(0)
    else:
        data.append(1)
        data.extend(bytes(approved))
    return bytes(data)


class TestDiscriminators:
    def test_account_discriminator(self):
        assert POOL_DISCRIMINATOR == hashlib.sha256(b"account:Pool").digest()[:8]
        assert POSITION_DISCRIMINATOR == hashlib.sha256(b"account:Position").digest()[:8]


class TestDeserializePosition:
    def test_valid_position(self):
        pool, owner = Pubkey.new_unique(), Pubkey.new_unique()
        data = build_position_data(pool, owner, band_idx=3, shares=1500, receipt_nonce=9)

        position = deserialize_position(data)

        assert position.bump == 254
        assert position.pool == pool
        assert position.owner == owner
        assert position.band_idx == 3
        assert position.shares == 1500
        assert position.last_fee_growth_a_1e18 == 5
        assert position.last_fee_growth_b_1e18 == 6
        assert position.receipt_nonce == 9
        assert position.min_unlock_slot == 1000
        assert position.approved is None

    def test_approved_delegate(self):
        delegate = Pubkey.new_unique()
        data = build_position_data(
            Pubkey.new_unique(), Pubkey.new_unique(), 0, 1, 0, approved=delegate
        )

        assert deserialize_position(data).approved == delegate

    def test_trailing_bytes_ignored(self):
        data = build_position_data(Pubkey.new_unique(), Pubkey.new_unique(), 0, 1, 0)

        assert deserialize_position(data + bytes(64)).shares == 1

    def test_invalid_discriminator(self):
        data = build_position_data(Pubkey.new_unique(), Pubkey.new_unique(), 0, 1, 0)
        data = bytes(8) + data[8:]

        with pytest.raises(InvalidDiscriminatorError):
            deserialize_position(data)

    def test_data_too_short(self):
        with pytest.raises(InvalidAccountDataError):
            deserialize_position(POSITION_DISCRIMINATOR[:4])

    def test_truncated_body(self):
        data = build_position_data(Pubkey.new_unique(), Pubkey.new_unique(), 0, 1, 0)

        with pytest.raises(InvalidAccountDataError, match="Position"):
            deserialize_position(data[:60])


class TestDeserializePool:
    def _pool(self, **overrides):
        zero, _ = decode(POOL_LAYOUT, bytes(4096))
        return dataclasses.replace(zero, **overrides)

    def test_zeroed_pool_decodes(self):
        pool = deserialize_pool(POOL_DISCRIMINATOR + bytes(4096))

        assert pool.version == 0
        assert pool.oracle_signer is None
        assert pool.g_pending is None
        assert pool.bands == []
        assert len(pool.admins) == 8

    def test_field_values(self):
        mint_a, mint_b = Pubkey.new_unique(), Pubkey.new_unique()
        state = self._pool(
            version=POOL_VERSION,
            mint_a=mint_a,
            mint_b=mint_b,
            spot_price_1e6=1_250_000,
            n_bands=8,
            is_paused=True,
            best_ask_1e6=2**64 - 1,
        )

        pool = deserialize_pool(serialize_account("Pool", state) + bytes(128))

        assert pool.version == 3
        assert pool.mint_a == mint_a
        assert pool.mint_b == mint_b
        assert pool.spot_price_1e6 == 1_250_000
        assert pool.n_bands == 8
        assert pool.is_paused is True
        assert pool.best_ask_1e6 == 2**64 - 1

    def test_wrong_account_type(self):
        data = build_position_data(Pubkey.new_unique(), Pubkey.new_unique(), 0, 1, 0)

        with pytest.raises(InvalidDiscriminatorError):
            deserialize_pool(data)


class TestDeserializeOrderbook:
    def test_levels_and_events(self):
        pool, owner = Pubkey.new_unique(), Pubkey.new_unique()
        book = OrderBook(
            bump=250,
            pool=pool,
            tick_1e6=100,
            best_bid_band=2,
            best_ask_band=-1,
            next_order_id=7,
            bids=[PriceLevel(band_idx=2, total_qty=500, head=0, tail=1)],
            asks=[],
            event_q_head=1,
            event_q=[
                BookEvent(kind="Fill", order_id=3, qty=10, price_1e6=1_000_000, side=Side.ASK),
                BookEvent(kind="Out", order_id=4, reason=2),
                BookEvent(
                    kind="Place",
                    order_id=6,
                    side=Side.BID,
                    band_idx=-3,
                    owner=owner,
                    qty=25,
                    client_id=77,
                    tif_expiry=0,
                    reduce_only=True,
                ),
            ],
            max_levels=32,
            max_queue_per_level=64,
        )

        decoded = deserialize_orderbook(serialize_account("OrderBook", book))

        assert decoded == book
        assert decoded.event_q[0].side is Side.ASK
        assert decoded.event_q[1].qty == 0
        assert decoded.event_q[2].band_idx == -3


class TestCodec:
    def test_option(self):
        assert encode(Option("u64"), None) == b"\x00"
        assert encode(Option("u64"), 5) == b"\x01" + struct.pack("<Q", 5)

    def test_vec_prefix(self):
        assert encode(Vec("u16"), [1, 2]) == struct.pack("<IHH", 2, 1, 2)

    def test_out_of_range(self):
        with pytest.raises(ValueError, match="u8 value out of range"):
            encode("u8", 256)

    def test_invalid_option_tag(self):
        with pytest.raises(ValueError, match="Invalid option tag"):
            decode(Option("u8"), b"\x02\x00")

    def test_decode_returns_offset(self):
        value, offset = decode("u128", (2**100).to_bytes(16, "little") + b"\xff")

        assert value == 2**100
        assert offset == 16
