"""On-chain program interaction module for the yield-sensitive DLMM.

This module provides address derivation, holding account provisioning,
the program handle and the invocation negotiator.
"""

from .accounts import (
    ACCOUNT_DECODERS,
    deserialize_orderbook,
    deserialize_pool,
    deserialize_position,
    serialize_account,
)
from .constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    POOL_VERSION,
    PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from .errors import (
    AccountMappingError,
    AccountNotFoundError,
    AccountProvisioningError,
    AddressDerivationExhausted,
    ConfigError,
    ConfirmationTimeoutError,
    DlmmError,
    InvalidAccountDataError,
    InvalidDiscriminatorError,
    InvocationCancelledError,
    InvocationExhausted,
    LedgerReadError,
    RuntimeResolutionError,
    TransactionFailedError,
)
from .instructions import (
    ENTRY_POINTS,
    AccountSpec,
    EntryPoint,
    build_add_liquidity_instruction,
    build_initialize_pool_instruction,
    build_place_order_instruction,
    build_post_yields_and_update_instruction,
)
from .interface import (
    ProgramHandle,
    ProgramInterface,
    mapping_variants,
    method_variants,
)
from .negotiator import AttemptOutcome, InvocationAttempt, InvocationResult, invoke
from .pda import (
    clear_derivation_cache,
    create_program_address,
    find_program_address,
    get_associated_token_address,
    get_metrics_pda,
    get_orderbook_pda,
    get_pool_addresses,
    get_pool_pda,
    get_position_pda,
    get_treasury_pda,
    get_vault_pda,
)
from .tokens import ensure_holding_account
from .transactions import confirm_transaction, send_and_confirm
from .types import (
    AddressOnly,
    Band,
    BookEvent,
    GovProposal,
    IdentityBalance,
    InitPoolParams,
    NamingConvention,
    OrderBook,
    Pool,
    PoolAddresses,
    Position,
    PriceLevel,
    RouteMode,
    SettableParams,
    Side,
    StpMode,
    TifKind,
    TifParam,
)

__all__ = [
    # Constants
    "PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "SYSTEM_PROGRAM_ID",
    "POOL_VERSION",
    # Account Deserialization
    "ACCOUNT_DECODERS",
    "deserialize_pool",
    "deserialize_position",
    "deserialize_orderbook",
    "serialize_account",
    # PDA Functions
    "find_program_address",
    "create_program_address",
    "clear_derivation_cache",
    "get_pool_pda",
    "get_vault_pda",
    "get_treasury_pda",
    "get_orderbook_pda",
    "get_position_pda",
    "get_metrics_pda",
    "get_pool_addresses",
    "get_associated_token_address",
    # Holding Accounts
    "ensure_holding_account",
    # Transactions
    "send_and_confirm",
    "confirm_transaction",
    # Interface & Negotiation
    "AccountSpec",
    "EntryPoint",
    "ENTRY_POINTS",
    "ProgramInterface",
    "ProgramHandle",
    "method_variants",
    "mapping_variants",
    "invoke",
    "AttemptOutcome",
    "InvocationAttempt",
    "InvocationResult",
    # Instruction Builders
    "build_initialize_pool_instruction",
    "build_post_yields_and_update_instruction",
    "build_add_liquidity_instruction",
    "build_place_order_instruction",
    # Types
    "NamingConvention",
    "Side",
    "StpMode",
    "RouteMode",
    "TifKind",
    "TifParam",
    "InitPoolParams",
    "SettableParams",
    "GovProposal",
    "Band",
    "Pool",
    "Position",
    "PriceLevel",
    "BookEvent",
    "OrderBook",
    "PoolAddresses",
    "AddressOnly",
    "IdentityBalance",
    # Errors
    "DlmmError",
    "RuntimeResolutionError",
    "AddressDerivationExhausted",
    "AccountProvisioningError",
    "InvocationExhausted",
    "InvocationCancelledError",
    "ConfirmationTimeoutError",
    "TransactionFailedError",
    "AccountMappingError",
    "AccountNotFoundError",
    "InvalidDiscriminatorError",
    "InvalidAccountDataError",
    "ConfigError",
    "LedgerReadError",
]
