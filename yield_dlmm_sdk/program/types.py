"""Type definitions for the yield-sensitive DLMM program module."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional

from solders.pubkey import Pubkey

from .constants import LAMPORTS_PER_SOL, MAX_ADMINS


class Side(IntEnum):
    """Side of an order in the orderbook."""

    BID = 0
    ASK = 1


class StpMode(IntEnum):
    """Self-trade prevention mode."""

    NONE = 0
    DECREMENT_AND_CANCEL = 1
    CANCEL_NEWEST = 2
    CANCEL_OLDEST = 3


class RouteMode(IntEnum):
    """Whether taker flow hits the book or the bands first."""

    BOOK_FIRST = 0
    DLMM_FIRST = 1


class TifKind(IntEnum):
    """Time-in-force kind for resting orders."""

    IOC = 0  # Immediate-or-cancel
    GTC = 1  # Good-til-cancelled
    GTT = 2  # Good-til-slot (uses gtt_expiry_slot)


class NamingConvention(Enum):
    """Casing used by an interface description for methods and account roles."""

    SNAKE = "snake"  # Anchor >= 0.30 IDL: initialize_pool / vault_a
    CAMEL = "camel"  # Legacy Anchor IDL: initializePool / vaultA


# ============================================================================
# Argument types
# ============================================================================


@dataclass
class TifParam:
    """Time-in-force argument for place_order."""

    kind: TifKind = TifKind.GTC
    gtt_expiry_slot: int = 0

    @classmethod
    def ioc(cls) -> "TifParam":
        return cls(kind=TifKind.IOC)

    @classmethod
    def gtc(cls) -> "TifParam":
        return cls(kind=TifKind.GTC)

    @classmethod
    def good_til_slot(cls, slot: int) -> "TifParam":
        return cls(kind=TifKind.GTT, gtt_expiry_slot=slot)


@dataclass
class InitPoolParams:
    """Parameters for initialize_pool (InitParamsV3 on-chain).

    Defaults describe a small single-admin pool; `admins` is padded to
    MAX_ADMINS with the default pubkey.
    """

    admins: List[Pubkey]
    admin_threshold: int = 1
    risk_admin: Pubkey = field(default_factory=Pubkey.default)
    ops_admin: Pubkey = field(default_factory=Pubkey.default)
    fee_admin: Pubkey = field(default_factory=Pubkey.default)

    updater: Pubkey = field(default_factory=Pubkey.default)
    oracle_signer: Optional[Pubkey] = None

    n_bands: int = 8
    base_width_bps: int = 100
    min_width_bps: int = 20
    max_width_bps: int = 1_000
    width_slope_per_kbps: int = 0
    bias_per_kbps: int = 0
    decay_per_band_bps: int = 1_000

    alpha_y_bps: int = 2_000
    alpha_spot_bps: int = 2_000
    alpha_twap_bps: int = 1_000
    alpha_vol_bps: int = 1_000
    max_twap_dev_bps: int = 500

    fee_base_bps: int = 5
    fee_k_per_bps: int = 0
    fee_max_bps: int = 100

    initial_y_a_bps: int = 0
    initial_y_b_bps: int = 0
    initial_spot_price_1e6: int = 1_000_000

    hyst_center_bps: int = 0
    hyst_width_bps: int = 0
    hyst_required_n: int = 1

    deposit_ratio_min_bps: int = 0
    deposit_ratio_max_bps: int = 65_535

    inactive_floor_a: int = 0
    inactive_floor_b: int = 0

    bounty_rate_microunits: int = 0
    bounty_max: int = 0
    stale_slots_for_boost: int = 0
    bounty_boost_bps: int = 0
    min_cu_price: int = 0

    max_center_move_bps: int = 10_000
    max_width_change_bps: int = 10_000
    max_weight_shift_bps: int = 10_000
    min_update_interval_slots: int = 0

    maker_rebate_max_bps: int = 0
    taker_min_bps: int = 0
    stp_mode: StpMode = StpMode.NONE
    route_mode: RouteMode = RouteMode.BOOK_FIRST

    def __post_init__(self):
        if len(self.admins) > MAX_ADMINS:
            raise ValueError(
                f"Too many admins: {len(self.admins)} (maximum: {MAX_ADMINS})"
            )
        self.admins = list(self.admins) + [Pubkey.default()] * (
            MAX_ADMINS - len(self.admins)
        )


# ============================================================================
# Account data
# ============================================================================


@dataclass
class SettableParams:
    """Pending parameter changes carried by a governance proposal."""

    n_bands: Optional[int]
    base_width_bps: Optional[int]
    min_width_bps: Optional[int]
    max_width_bps: Optional[int]
    width_slope_per_kbps: Optional[int]
    bias_per_kbps: Optional[int]
    decay_per_band_bps: Optional[int]
    alpha_y_bps: Optional[int]
    alpha_spot_bps: Optional[int]
    alpha_twap_bps: Optional[int]
    alpha_vol_bps: Optional[int]
    max_twap_dev_bps: Optional[int]
    fee_base_bps: Optional[int]
    fee_k_per_bps: Optional[int]
    fee_max_bps: Optional[int]
    hyst_center_bps: Optional[int]
    hyst_width_bps: Optional[int]
    hyst_required_n: Optional[int]
    deposit_ratio_min_bps: Optional[int]
    deposit_ratio_max_bps: Optional[int]
    inactive_floor_a: Optional[int]
    inactive_floor_b: Optional[int]
    bounty_rate_microunits: Optional[int]
    bounty_max: Optional[int]
    stale_slots_for_boost: Optional[int]
    bounty_boost_bps: Optional[int]
    min_cu_price: Optional[int]
    max_center_move_bps: Optional[int]
    max_width_change_bps: Optional[int]
    max_weight_shift_bps: Optional[int]
    min_update_interval_slots: Optional[int]
    maker_rebate_max_bps: Optional[int]
    taker_min_bps: Optional[int]
    stp_mode: Optional[StpMode]
    route_mode: Optional[RouteMode]


@dataclass
class GovProposal:
    """Timelocked governance proposal."""

    new: SettableParams
    queued_at: int
    earliest_exec: int
    deadline: int
    executed: bool


@dataclass
class Band:
    """One liquidity band of a pool."""

    lower_price_1e6: int
    upper_price_1e6: int
    weight_bps: int
    fee_growth_a_1e18: int
    fee_growth_b_1e18: int
    reserves_a: int
    reserves_b: int
    total_shares: int
    util_a: int
    util_b: int
    is_active: bool


@dataclass
class Pool:
    """Pool account data."""

    version: int
    bump: int

    admin_threshold: int
    admins: List[Pubkey]

    risk_admin: Pubkey
    ops_admin: Pubkey
    fee_admin: Pubkey

    mint_a: Pubkey
    mint_b: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    treasury_a: Pubkey
    treasury_b: Pubkey

    updater: Pubkey
    oracle_signer: Optional[Pubkey]

    base_width_bps: int
    min_width_bps: int
    max_width_bps: int
    width_slope_per_kbps: int
    bias_per_kbps: int
    decay_per_band_bps: int
    n_bands: int

    y_a_bps: int
    y_b_bps: int
    spot_price_1e6: int
    ema_y_a_bps: int
    ema_y_b_bps: int
    ema_spot_1e6: int
    alpha_y_bps: int
    alpha_spot_bps: int
    alpha_twap_bps: int
    alpha_vol_bps: int
    twap_center_1e6: int
    max_twap_dev_bps: int
    vol_ema_bps: int

    fee_base_bps: int
    fee_k_per_bps: int
    fee_max_bps: int
    fee_current_bps: int
    maker_rebate_max_bps: int
    taker_min_bps: int

    max_center_move_bps: int
    max_width_change_bps: int
    max_weight_shift_bps: int
    min_update_interval_slots: int
    last_update_slot: int

    hyst_center_bps: int
    hyst_width_bps: int
    hyst_required_n: int
    hyst_ctr_center: int
    hyst_ctr_width: int

    deposit_ratio_min_bps: int
    deposit_ratio_max_bps: int

    inactive_floor_a: int
    inactive_floor_b: int

    bounty_rate_microunits: int
    bounty_max: int
    stale_slots_for_boost: int
    bounty_boost_bps: int
    needs_update: bool
    min_cu_price: int

    last_width_bps: int
    last_center_price_1e6: int
    total_weight_bps: int

    is_paused: bool
    pause_bands: bool
    pause_deposits: bool
    pause_withdraws: bool
    pause_orderbook: bool
    post_only_until_slot: int

    g_pending: Optional[GovProposal]

    proposed_mint_a: Optional[Pubkey]
    proposed_mint_b: Optional[Pubkey]

    stp_mode: int
    route_mode: int
    best_bid_1e6: int
    best_ask_1e6: int
    book_depth_bps: int

    bands: List[Band]


@dataclass
class Position:
    """Liquidity position (receipt) account data."""

    bump: int
    pool: Pubkey
    owner: Pubkey
    band_idx: int
    shares: int
    last_fee_growth_a_1e18: int
    last_fee_growth_b_1e18: int
    receipt_nonce: int
    min_unlock_slot: int
    approved: Optional[Pubkey]


@dataclass
class PriceLevel:
    """Aggregate queue state for one band on one side of the book."""

    band_idx: int
    total_qty: int
    head: int
    tail: int


@dataclass
class BookEvent:
    """Orderbook event queue entry.

    `kind` is one of "Fill", "Out", "Place"; fields not carried by the
    variant are left at their defaults.
    """

    kind: str
    order_id: int = 0
    qty: int = 0
    price_1e6: int = 0
    side: Side = Side.BID
    reason: int = 0
    band_idx: int = 0
    owner: Optional[Pubkey] = None
    client_id: int = 0
    tif_expiry: int = 0
    reduce_only: bool = False


@dataclass
class OrderBook:
    """Orderbook account data."""

    bump: int
    pool: Pubkey
    tick_1e6: int
    best_bid_band: int
    best_ask_band: int
    next_order_id: int
    bids: List[PriceLevel]
    asks: List[PriceLevel]
    event_q_head: int
    event_q: List[BookEvent]
    max_levels: int
    max_queue_per_level: int


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class PoolAddresses:
    """Every pool-scoped program address for a mint pair."""

    pool: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    treasury_a: Pubkey
    treasury_b: Pubkey
    orderbook: Pubkey


@dataclass(frozen=True)
class AddressOnly:
    """Returned by view operations when no typed account decoder is available."""

    pda: Pubkey


@dataclass(frozen=True)
class IdentityBalance:
    """Signer address and its lamport balance."""

    address: Pubkey
    lamports: int

    @property
    def sol(self) -> float:
        return self.lamports / LAMPORTS_PER_SOL
