"""Yield DLMM SDK - Python SDK for the yield-sensitive DLMM program on Solana.

This SDK provides:
- `program`: address derivation, holding accounts, program handle, negotiator
- `runtime`: runtime environment resolution
- `operations`: high-level pool, liquidity and orderbook operations

Example:
    from yield_dlmm_sdk import ClientConfig, DlmmOperations, resolve_runtime

    env = await resolve_runtime(config=ClientConfig.from_env())
    pool = await DlmmOperations(env).view_pool_state(mint_a, mint_b)
"""

__version__ = "0.1.0"

# ============================================================================
# MODULE IMPORTS
# ============================================================================

from . import operations
from . import program

# ============================================================================
# CONVENIENCE RE-EXPORTS
# ============================================================================

from .config import ClientConfig
from .operations import DlmmOperations
from .program import (
    POOL_VERSION,
    PROGRAM_ID,
    AccountMappingError,
    AccountNotFoundError,
    AccountProvisioningError,
    AddressDerivationExhausted,
    AddressOnly,
    AttemptOutcome,
    ConfigError,
    ConfirmationTimeoutError,
    DlmmError,
    IdentityBalance,
    InitPoolParams,
    InvalidAccountDataError,
    InvalidDiscriminatorError,
    InvocationAttempt,
    InvocationCancelledError,
    InvocationExhausted,
    InvocationResult,
    LedgerReadError,
    NamingConvention,
    OrderBook,
    Pool,
    Position,
    ProgramHandle,
    ProgramInterface,
    RuntimeResolutionError,
    Side,
    TifParam,
    TransactionFailedError,
    ensure_holding_account,
    find_program_address,
    get_orderbook_pda,
    get_pool_addresses,
    get_pool_pda,
    get_position_pda,
    get_treasury_pda,
    get_vault_pda,
    invoke,
)
from .retry import RetryConfig
from .runtime import RuntimeEnvironment, SignerProvisioning, resolve_runtime

__all__ = [
    # Version
    "__version__",
    # Modules
    "program",
    "operations",
    # Config & Runtime
    "ClientConfig",
    "RetryConfig",
    "RuntimeEnvironment",
    "SignerProvisioning",
    "resolve_runtime",
    # Operations
    "DlmmOperations",
    # Program
    "PROGRAM_ID",
    "POOL_VERSION",
    "ProgramHandle",
    "ProgramInterface",
    "NamingConvention",
    "invoke",
    "InvocationAttempt",
    "InvocationResult",
    "AttemptOutcome",
    "ensure_holding_account",
    "find_program_address",
    "get_pool_pda",
    "get_vault_pda",
    "get_treasury_pda",
    "get_orderbook_pda",
    "get_position_pda",
    "get_pool_addresses",
    # Types
    "InitPoolParams",
    "TifParam",
    "Side",
    "Pool",
    "Position",
    "OrderBook",
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
