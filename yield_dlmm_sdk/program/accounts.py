"""Account deserialization for the yield-sensitive DLMM program.

Account data is `sha256("account:<Name>")[:8]` followed by the Borsh
encoding of the account struct. Bytes past the decoded struct (reserved
space, allocation padding) are ignored.
"""

from typing import Any, Callable, Dict

from .codec import Array, DataEnum, Option, Struct, UnitEnum, Vec, decode, encode, struct_of
from .constants import DISCRIMINATOR_SIZE, MAX_ADMINS
from .errors import InvalidAccountDataError, InvalidDiscriminatorError
from .types import (
    Band,
    BookEvent,
    GovProposal,
    OrderBook,
    Pool,
    Position,
    PriceLevel,
    RouteMode,
    SettableParams,
    Side,
    StpMode,
)
from .utils import account_discriminator

# ============================================================================
# LAYOUTS
# ============================================================================

SETTABLE_PARAMS_LAYOUT = struct_of(
    SettableParams,
    {
        "n_bands": Option("u8"),
        "base_width_bps": Option("u16"),
        "min_width_bps": Option("u16"),
        "max_width_bps": Option("u16"),
        "width_slope_per_kbps": Option("u16"),
        "bias_per_kbps": Option("u16"),
        "decay_per_band_bps": Option("u16"),
        "alpha_y_bps": Option("u16"),
        "alpha_spot_bps": Option("u16"),
        "alpha_twap_bps": Option("u16"),
        "alpha_vol_bps": Option("u16"),
        "max_twap_dev_bps": Option("u16"),
        "fee_base_bps": Option("u16"),
        "fee_k_per_bps": Option("u16"),
        "fee_max_bps": Option("u16"),
        "hyst_center_bps": Option("u16"),
        "hyst_width_bps": Option("u16"),
        "hyst_required_n": Option("u8"),
        "deposit_ratio_min_bps": Option("u16"),
        "deposit_ratio_max_bps": Option("u16"),
        "inactive_floor_a": Option("u64"),
        "inactive_floor_b": Option("u64"),
        "bounty_rate_microunits": Option("u64"),
        "bounty_max": Option("u64"),
        "stale_slots_for_boost": Option("u64"),
        "bounty_boost_bps": Option("u16"),
        "min_cu_price": Option("u64"),
        "max_center_move_bps": Option("u16"),
        "max_width_change_bps": Option("u16"),
        "max_weight_shift_bps": Option("u16"),
        "min_update_interval_slots": Option("u32"),
        "maker_rebate_max_bps": Option("u16"),
        "taker_min_bps": Option("u16"),
        "stp_mode": Option(UnitEnum(StpMode)),
        "route_mode": Option(UnitEnum(RouteMode)),
    },
)

GOV_PROPOSAL_LAYOUT = struct_of(
    GovProposal,
    {
        "new": SETTABLE_PARAMS_LAYOUT,
        "queued_at": "u64",
        "earliest_exec": "u64",
        "deadline": "u64",
        "executed": "bool",
    },
)

BAND_LAYOUT = struct_of(
    Band,
    {
        "lower_price_1e6": "u64",
        "upper_price_1e6": "u64",
        "weight_bps": "u16",
        "fee_growth_a_1e18": "u128",
        "fee_growth_b_1e18": "u128",
        "reserves_a": "u64",
        "reserves_b": "u64",
        "total_shares": "u64",
        "util_a": "u64",
        "util_b": "u64",
        "is_active": "bool",
    },
)

_POOL_FIELD_TYPES: Dict[str, Any] = {
    "version": "u8",
    "bump": "u8",
    "admin_threshold": "u8",
    "admins": Array("pubkey", MAX_ADMINS),
    "oracle_signer": Option("pubkey"),
    "n_bands": "u8",
    "hyst_required_n": "u8",
    "hyst_ctr_center": "u8",
    "hyst_ctr_width": "u8",
    "needs_update": "bool",
    "g_pending": Option(GOV_PROPOSAL_LAYOUT),
    "proposed_mint_a": Option("pubkey"),
    "proposed_mint_b": Option("pubkey"),
    "stp_mode": "u8",
    "route_mode": "u8",
    "bands": Vec(BAND_LAYOUT),
}
for _name in (
    "risk_admin", "ops_admin", "fee_admin", "mint_a", "mint_b", "vault_a",
    "vault_b", "treasury_a", "treasury_b", "updater",
):
    _POOL_FIELD_TYPES[_name] = "pubkey"
for _name in (
    "spot_price_1e6", "ema_spot_1e6", "twap_center_1e6", "last_update_slot",
    "inactive_floor_a", "inactive_floor_b", "bounty_rate_microunits",
    "bounty_max", "stale_slots_for_boost", "min_cu_price",
    "last_center_price_1e6", "post_only_until_slot", "best_bid_1e6",
    "best_ask_1e6",
):
    _POOL_FIELD_TYPES[_name] = "u64"
for _name in ("min_update_interval_slots", "total_weight_bps"):
    _POOL_FIELD_TYPES[_name] = "u32"
for _name in ("is_paused", "pause_bands", "pause_deposits", "pause_withdraws", "pause_orderbook"):
    _POOL_FIELD_TYPES[_name] = "bool"


def _pool_layout() -> Struct:
    # Remaining Pool fields are all u16
    types = dict(_POOL_FIELD_TYPES)
    for name in Pool.__dataclass_fields__:
        types.setdefault(name, "u16")
    return struct_of(Pool, types)


POOL_LAYOUT = _pool_layout()

POSITION_LAYOUT = struct_of(
    Position,
    {
        "bump": "u8",
        "pool": "pubkey",
        "owner": "pubkey",
        "band_idx": "u8",
        "shares": "u64",
        "last_fee_growth_a_1e18": "u128",
        "last_fee_growth_b_1e18": "u128",
        "receipt_nonce": "u64",
        "min_unlock_slot": "u64",
        "approved": Option("pubkey"),
    },
)

PRICE_LEVEL_LAYOUT = struct_of(
    PriceLevel,
    {"band_idx": "i16", "total_qty": "u64", "head": "u32", "tail": "u32"},
)

BOOK_EVENT_LAYOUT = DataEnum(
    variants=(
        (
            "Fill",
            Struct(
                (
                    ("order_id", "u64"),
                    ("qty", "u64"),
                    ("price_1e6", "u64"),
                    ("side", UnitEnum(Side)),
                )
            ),
        ),
        ("Out", Struct((("order_id", "u64"), ("reason", "u8")))),
        (
            "Place",
            Struct(
                (
                    ("order_id", "u64"),
                    ("side", UnitEnum(Side)),
                    ("band_idx", "i16"),
                    ("owner", "pubkey"),
                    ("qty", "u64"),
                    ("client_id", "u64"),
                    ("tif_expiry", "u64"),
                    ("reduce_only", "bool"),
                )
            ),
        ),
    ),
    factory=lambda kind, values: BookEvent(kind=kind, **values),
)

ORDERBOOK_LAYOUT = struct_of(
    OrderBook,
    {
        "bump": "u8",
        "pool": "pubkey",
        "tick_1e6": "u64",
        "best_bid_band": "i16",
        "best_ask_band": "i16",
        "next_order_id": "u64",
        "bids": Vec(PRICE_LEVEL_LAYOUT),
        "asks": Vec(PRICE_LEVEL_LAYOUT),
        "event_q_head": "u16",
        "event_q": Vec(BOOK_EVENT_LAYOUT),
        "max_levels": "u16",
        "max_queue_per_level": "u16",
    },
)

# Anchor account type name -> layout
ACCOUNT_LAYOUTS: Dict[str, Struct] = {
    "Pool": POOL_LAYOUT,
    "Position": POSITION_LAYOUT,
    "OrderBook": ORDERBOOK_LAYOUT,
}

POOL_DISCRIMINATOR = account_discriminator("Pool")
POSITION_DISCRIMINATOR = account_discriminator("Position")
ORDERBOOK_DISCRIMINATOR = account_discriminator("OrderBook")


# ============================================================================
# DESERIALIZATION
# ============================================================================


def _validate_discriminator(data: bytes, expected: bytes, name: str) -> None:
    """Validate account discriminator."""
    if len(data) < DISCRIMINATOR_SIZE:
        raise InvalidAccountDataError(f"{name} data too short: {len(data)} bytes")
    actual = data[:DISCRIMINATOR_SIZE]
    if actual != expected:
        raise InvalidDiscriminatorError(expected, actual)


def _deserialize(data: bytes, name: str) -> Any:
    _validate_discriminator(data, account_discriminator(name), name)
    try:
        value, _ = decode(ACCOUNT_LAYOUTS[name], data, DISCRIMINATOR_SIZE)
    except ValueError as e:
        raise InvalidAccountDataError(f"{name}: {e}") from e
    return value


def deserialize_pool(data: bytes) -> Pool:
    """Deserialize a Pool account.

    Layout:
    - [0..8]: discriminator ("account:Pool")
    - [8..]: Borsh-encoded Pool, followed by 128 reserved bytes
    """
    return _deserialize(data, "Pool")


def deserialize_position(data: bytes) -> Position:
    """Deserialize a Position (liquidity receipt) account."""
    return _deserialize(data, "Position")


def deserialize_orderbook(data: bytes) -> OrderBook:
    """Deserialize an OrderBook account."""
    return _deserialize(data, "OrderBook")


def serialize_account(name: str, value: Any) -> bytes:
    """Encode an account value with its discriminator (inverse of deserialize_*)."""
    return account_discriminator(name) + encode(ACCOUNT_LAYOUTS[name], value)


# Typed account-fetch registry keyed by snake_case account name
ACCOUNT_DECODERS: Dict[str, Callable[[bytes], Any]] = {
    "pool": deserialize_pool,
    "position": deserialize_position,
    "order_book": deserialize_orderbook,
}
