"""Entry point definitions and instruction builders for the yield-sensitive DLMM.

Each entry point is described by its ordered account roles and its Borsh
argument layout. Instruction data is the Anchor discriminator
(`sha256("global:<snake_name>")[:8]`) followed by the encoded arguments.
Optional accounts set to None are passed as the program id.
"""

from dataclasses import dataclass, replace
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence, Tuple

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .codec import Array, Option, Struct, UnitEnum, encode, struct_of
from .constants import MAX_ADMINS, PROGRAM_ID, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from .errors import AccountMappingError
from .pda import (
    get_associated_token_address,
    get_pool_addresses,
    get_position_pda,
)
from .types import InitPoolParams, RouteMode, Side, StpMode, TifKind, TifParam
from .utils import instruction_discriminator, to_snake_case

AccountMapping = Mapping[str, Optional[Pubkey]]


@dataclass(frozen=True)
class AccountSpec:
    """One account role of an entry point."""

    name: str
    writable: bool = False
    signer: bool = False
    optional: bool = False


@dataclass(frozen=True)
class EntryPoint:
    """A named program entry point as exposed by an interface description.

    `name` and account role names are in the exposing interface's casing;
    `snake_name` is always the canonical snake_case name used for the
    discriminator.
    """

    name: str
    snake_name: str
    accounts: Tuple[AccountSpec, ...]
    args: Struct

    @property
    def discriminator(self) -> bytes:
        return instruction_discriminator(self.snake_name)

    def missing_roles(self, mapping: AccountMapping) -> List[str]:
        """Required roles the mapping does not provide."""
        return [
            spec.name
            for spec in self.accounts
            if not spec.optional and mapping.get(spec.name) is None
        ]

    def encode_args(self, args: Sequence[Any]) -> bytes:
        names = [name for name, _ in self.args.fields]
        if len(args) != len(names):
            raise ValueError(
                f"{self.name} expects {len(names)} argument(s) ({', '.join(names)}), "
                f"got {len(args)}"
            )
        return self.discriminator + encode(self.args, dict(zip(names, args)))

    def build(
        self,
        program_id: Pubkey,
        args: Sequence[Any],
        mapping: AccountMapping,
        signer_keys: Collection[Pubkey] = (),
    ) -> Instruction:
        """Build the instruction for this entry point.

        Accounts whose address is in signer_keys are marked as signers even
        when the role does not require it (e.g. an optional oracle signer).

        Raises:
            AccountMappingError: If a required role is missing from mapping
            ValueError: If args do not match the argument layout
        """
        missing = self.missing_roles(mapping)
        if missing:
            raise AccountMappingError(self.name, missing)

        metas = []
        for spec in self.accounts:
            address = mapping.get(spec.name)
            if address is None:
                metas.append(AccountMeta(pubkey=program_id, is_signer=False, is_writable=False))
            else:
                metas.append(
                    AccountMeta(
                        pubkey=address,
                        is_signer=spec.signer or address in signer_keys,
                        is_writable=spec.writable,
                    )
                )

        return Instruction(
            program_id=program_id, accounts=metas, data=self.encode_args(args)
        )

    def renamed(self, name: str, account_names: Mapping[str, str]) -> "EntryPoint":
        """Copy with a different exposed name and account role names."""
        return replace(
            self,
            name=name,
            accounts=tuple(
                replace(spec, name=account_names.get(spec.name, spec.name))
                for spec in self.accounts
            ),
        )


# ============================================================================
# ARGUMENT LAYOUTS
# ============================================================================

TIF_PARAM_LAYOUT = struct_of(TifParam, {"kind": UnitEnum(TifKind), "gtt_expiry_slot": "u64"})

_INIT_PARAMS_TYPES: Dict[str, Any] = {
    "admins": Array("pubkey", MAX_ADMINS),
    "admin_threshold": "u8",
    "risk_admin": "pubkey",
    "ops_admin": "pubkey",
    "fee_admin": "pubkey",
    "updater": "pubkey",
    "oracle_signer": Option("pubkey"),
    "n_bands": "u8",
    "initial_spot_price_1e6": "u64",
    "hyst_required_n": "u8",
    "inactive_floor_a": "u64",
    "inactive_floor_b": "u64",
    "bounty_rate_microunits": "u64",
    "bounty_max": "u64",
    "stale_slots_for_boost": "u64",
    "min_cu_price": "u64",
    "min_update_interval_slots": "u32",
    "stp_mode": UnitEnum(StpMode),
    "route_mode": UnitEnum(RouteMode),
}
for _name in InitPoolParams.__dataclass_fields__:
    _INIT_PARAMS_TYPES.setdefault(_name, "u16")

INIT_POOL_PARAMS_LAYOUT = struct_of(InitPoolParams, _INIT_PARAMS_TYPES)


def _args(*fields: Tuple[str, Any]) -> Struct:
    return Struct(tuple(fields))


def _acc(name: str, *flags: str) -> AccountSpec:
    return AccountSpec(
        name=name,
        writable="w" in flags,
        signer="s" in flags,
        optional="opt" in flags,
    )


# ============================================================================
# CANONICAL ENTRY POINTS (snake_case)
# ============================================================================

_CANONICAL = [
    EntryPoint(
        name="initialize_pool",
        snake_name="initialize_pool",
        accounts=(
            _acc("payer", "w", "s"),
            _acc("mint_a"),
            _acc("mint_b"),
            _acc("pool", "w"),
            _acc("vault_a", "w"),
            _acc("vault_b", "w"),
            _acc("treasury_a", "w"),
            _acc("treasury_b", "w"),
            _acc("token_program"),
            _acc("system_program"),
        ),
        args=_args(("p", INIT_POOL_PARAMS_LAYOUT)),
    ),
    EntryPoint(
        name="post_yields_and_update",
        snake_name="post_yields_and_update",
        accounts=(
            _acc("caller", "w", "s"),
            _acc("oracle_signer_opt", "opt"),
            _acc("pool", "w"),
            _acc("treasury_a", "w"),
            _acc("treasury_b", "w"),
            _acc("caller_ata_a", "w"),
            _acc("caller_ata_b", "w"),
            _acc("mint_a", "w"),
            _acc("mint_b", "w"),
            _acc("vault_a", "w"),
            _acc("vault_b", "w"),
            _acc("metrics", "w", "opt"),
            _acc("token_program"),
        ),
        args=_args(
            ("y_a_bps_raw", "u16"),
            ("y_b_bps_raw", "u16"),
            ("spot_price_1e6_raw", "u64"),
            ("cu_price_micro_lamports", "u64"),
        ),
    ),
    EntryPoint(
        name="add_liquidity",
        snake_name="add_liquidity",
        accounts=(
            _acc("user", "w", "s"),
            _acc("pool", "w"),
            _acc("vault_a", "w"),
            _acc("vault_b", "w"),
            _acc("user_ata_a", "w"),
            _acc("user_ata_b", "w"),
            _acc("position", "w"),
            _acc("token_program"),
            _acc("system_program"),
            _acc("mint_a"),
            _acc("mint_b"),
        ),
        args=_args(
            ("band_idx", "u8"),
            ("amount_a", "u64"),
            ("amount_b", "u64"),
            ("receipt_nonce", "u64"),
            ("min_unlock_after_slots", "u64"),
        ),
    ),
    EntryPoint(
        name="remove_liquidity",
        snake_name="remove_liquidity",
        accounts=(
            _acc("user", "w", "s"),
            _acc("pool", "w"),
            _acc("vault_a", "w"),
            _acc("vault_b", "w"),
            _acc("user_ata_a", "w"),
            _acc("user_ata_b", "w"),
            _acc("position", "w"),
            _acc("token_program"),
            _acc("mint_a"),
            _acc("mint_b"),
        ),
        args=_args(("shares_to_burn", "u64"), ("close_position", "bool")),
    ),
    EntryPoint(
        name="collect_fees",
        snake_name="collect_fees",
        accounts=(
            _acc("user", "w", "s"),
            _acc("pool", "w"),
            _acc("position", "w"),
            _acc("treasury_a", "w"),
            _acc("treasury_b", "w"),
            _acc("user_ata_a", "w"),
            _acc("user_ata_b", "w"),
            _acc("token_program"),
        ),
        args=_args(),
    ),
    EntryPoint(
        name="init_orderbook",
        snake_name="init_orderbook",
        accounts=(
            _acc("payer", "w", "s"),
            _acc("pool"),
            _acc("orderbook", "w"),
            _acc("system_program"),
        ),
        args=_args(("tick_1e6", "u64"), ("max_levels", "u16")),
    ),
    EntryPoint(
        name="place_order",
        snake_name="place_order",
        accounts=(
            _acc("user", "w", "s"),
            _acc("pool", "w"),
            _acc("orderbook", "w"),
        ),
        args=_args(
            ("side", UnitEnum(Side)),
            ("qty", "u64"),
            ("limit_price_opt_1e6", Option("u64")),
            ("tif", TIF_PARAM_LAYOUT),
            ("post_only", "bool"),
            ("reduce_only", "bool"),
            ("client_id", "u64"),
        ),
    ),
    EntryPoint(
        name="cancel_order",
        snake_name="cancel_order",
        accounts=(
            _acc("user", "w", "s"),
            _acc("pool", "w"),
            _acc("orderbook", "w"),
        ),
        args=_args(("side", UnitEnum(Side)), ("order_id", "u64")),
    ),
]

ENTRY_POINTS: Dict[str, EntryPoint] = {ep.snake_name: ep for ep in _CANONICAL}


def canonical_entry_point(name: str) -> Optional[EntryPoint]:
    """Look up a canonical entry point by name in either casing."""
    return ENTRY_POINTS.get(to_snake_case(name))


# ============================================================================
# ACCOUNT MAPPINGS (snake_case roles)
# ============================================================================


def initialize_pool_accounts(
    payer: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Dict[str, Optional[Pubkey]]:
    """Account mapping for initialize_pool."""
    addrs = get_pool_addresses(mint_a, mint_b, program_id)
    return {
        "payer": payer,
        "mint_a": mint_a,
        "mint_b": mint_b,
        "pool": addrs.pool,
        "vault_a": addrs.vault_a,
        "vault_b": addrs.vault_b,
        "treasury_a": addrs.treasury_a,
        "treasury_b": addrs.treasury_b,
        "token_program": TOKEN_PROGRAM_ID,
        "system_program": SYSTEM_PROGRAM_ID,
    }


def post_yields_accounts(
    caller: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    oracle_signer: Optional[Pubkey] = None,
    metrics: Optional[Pubkey] = None,
    program_id: Pubkey = PROGRAM_ID,
) -> Dict[str, Optional[Pubkey]]:
    """Account mapping for post_yields_and_update.

    The caller's holding accounts receive the update bounty. Pass
    get_metrics_pda(pool) as metrics to record the update in the metrics ring.
    """
    addrs = get_pool_addresses(mint_a, mint_b, program_id)
    return {
        "caller": caller,
        "oracle_signer_opt": oracle_signer,
        "pool": addrs.pool,
        "treasury_a": addrs.treasury_a,
        "treasury_b": addrs.treasury_b,
        "caller_ata_a": get_associated_token_address(caller, mint_a),
        "caller_ata_b": get_associated_token_address(caller, mint_b),
        "mint_a": mint_a,
        "mint_b": mint_b,
        "vault_a": addrs.vault_a,
        "vault_b": addrs.vault_b,
        "metrics": metrics,
        "token_program": TOKEN_PROGRAM_ID,
    }


def liquidity_accounts(
    user: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    receipt_nonce: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Dict[str, Optional[Pubkey]]:
    """Account mapping for add_liquidity, remove_liquidity and collect_fees.

    Carries the union of the roles those entry points use.
    """
    addrs = get_pool_addresses(mint_a, mint_b, program_id)
    position, _ = get_position_pda(addrs.pool, user, receipt_nonce, program_id)
    return {
        "user": user,
        "pool": addrs.pool,
        "vault_a": addrs.vault_a,
        "vault_b": addrs.vault_b,
        "treasury_a": addrs.treasury_a,
        "treasury_b": addrs.treasury_b,
        "user_ata_a": get_associated_token_address(user, mint_a),
        "user_ata_b": get_associated_token_address(user, mint_b),
        "position": position,
        "token_program": TOKEN_PROGRAM_ID,
        "system_program": SYSTEM_PROGRAM_ID,
        "mint_a": mint_a,
        "mint_b": mint_b,
    }


def orderbook_accounts(
    user: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Dict[str, Optional[Pubkey]]:
    """Account mapping for init_orderbook."""
    addrs = get_pool_addresses(mint_a, mint_b, program_id)
    return {
        "payer": user,
        "pool": addrs.pool,
        "orderbook": addrs.orderbook,
        "system_program": SYSTEM_PROGRAM_ID,
    }


def order_accounts(
    user: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Dict[str, Optional[Pubkey]]:
    """Account mapping for place_order and cancel_order."""
    addrs = get_pool_addresses(mint_a, mint_b, program_id)
    return {"user": user, "pool": addrs.pool, "orderbook": addrs.orderbook}


# ============================================================================
# INSTRUCTION BUILDERS
# ============================================================================


def build_initialize_pool_instruction(
    payer: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    params: InitPoolParams,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the initialize_pool instruction.

    Accounts:
    0. payer (signer, writable)
    1. mint_a
    2. mint_b
    3. pool (writable)
    4-7. vault_a, vault_b, treasury_a, treasury_b (writable)
    8. token_program
    9. system_program

    Data: [discriminator (8), InitParamsV3]
    """
    return ENTRY_POINTS["initialize_pool"].build(
        program_id, [params], initialize_pool_accounts(payer, mint_a, mint_b, program_id)
    )


def build_post_yields_and_update_instruction(
    caller: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    y_a_bps: int,
    y_b_bps: int,
    spot_price_1e6: int,
    cu_price_micro_lamports: int,
    oracle_signer: Optional[Pubkey] = None,
    metrics: Optional[Pubkey] = None,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the post_yields_and_update instruction.

    Data: [discriminator (8), y_a_bps (u16), y_b_bps (u16),
           spot_price_1e6 (u64), cu_price_micro_lamports (u64)]
    """
    return ENTRY_POINTS["post_yields_and_update"].build(
        program_id,
        [y_a_bps, y_b_bps, spot_price_1e6, cu_price_micro_lamports],
        post_yields_accounts(caller, mint_a, mint_b, oracle_signer, metrics, program_id),
    )


def build_add_liquidity_instruction(
    user: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    band_idx: int,
    amount_a: int,
    amount_b: int,
    receipt_nonce: int,
    min_unlock_after_slots: int = 0,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the add_liquidity instruction.

    Data: [discriminator (8), band_idx (u8), amount_a (u64), amount_b (u64),
           receipt_nonce (u64), min_unlock_after_slots (u64)]
    """
    return ENTRY_POINTS["add_liquidity"].build(
        program_id,
        [band_idx, amount_a, amount_b, receipt_nonce, min_unlock_after_slots],
        liquidity_accounts(user, mint_a, mint_b, receipt_nonce, program_id),
    )


def build_place_order_instruction(
    user: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    side: Side,
    qty: int,
    limit_price_1e6: Optional[int],
    tif: TifParam,
    post_only: bool = False,
    reduce_only: bool = False,
    client_id: int = 0,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the place_order instruction.

    Data: [discriminator (8), side (u8), qty (u64), Option<limit_price (u64)>,
           tif (u8 kind, u64 expiry), post_only, reduce_only, client_id (u64)]
    """
    return ENTRY_POINTS["place_order"].build(
        program_id,
        [side, qty, limit_price_1e6, tif, post_only, reduce_only, client_id],
        order_accounts(user, mint_a, mint_b, program_id),
    )
