"""Holding (associated token) account provisioning."""

import logging
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.instructions import create_associated_token_account

from ..retry import RetryConfig, with_retry
from .constants import TOKEN_PROGRAM_ID
from .errors import (
    AccountProvisioningError,
    ConfirmationTimeoutError,
    DlmmError,
    TransactionFailedError,
)
from .pda import get_associated_token_address
from .transactions import DEFAULT_CONFIRM_TIMEOUT_SECS, DEFAULT_POLL_INTERVAL_SECS, send_and_confirm

logger = logging.getLogger(__name__)


async def account_exists(
    connection: AsyncClient,
    address: Pubkey,
    retry_config: Optional[RetryConfig] = None,
) -> bool:
    """Check whether an account exists on-chain."""

    async def _fetch():
        response = await connection.get_account_info(address)
        return response.value is not None

    return await with_retry(_fetch, retry_config, f"get_account_info({address})")


async def ensure_holding_account(
    connection: AsyncClient,
    payer: Keypair,
    mint: Pubkey,
    owner: Optional[Pubkey] = None,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
    commitment: Commitment = Confirmed,
    timeout_secs: float = DEFAULT_CONFIRM_TIMEOUT_SECS,
    poll_interval_secs: float = DEFAULT_POLL_INTERVAL_SECS,
    retry_config: Optional[RetryConfig] = None,
) -> Pubkey:
    """Ensure owner has an associated token account for mint.

    Submits at most one create transaction, and only when the account is
    absent. If creation fails but the account exists afterwards (another
    actor created it first) the call succeeds.

    Args:
        connection: Solana RPC async client
        payer: Keypair paying for account creation
        mint: Token mint
        owner: Account owner (defaults to the payer)

    Returns:
        The associated token account address

    Raises:
        AccountProvisioningError: If creation failed and the account is still
            absent, or the ledger could not be reached
        ConfirmationTimeoutError: If creation could not be confirmed and the
            account is still absent
    """
    owner = owner or payer.pubkey()
    ata = get_associated_token_address(owner, mint, token_program_id)

    try:
        return await _provision(
            connection,
            payer,
            mint,
            owner,
            ata,
            token_program_id,
            commitment,
            timeout_secs,
            poll_interval_secs,
            retry_config,
        )
    except DlmmError:
        raise
    except Exception as e:
        raise AccountProvisioningError(ata, f"{type(e).__name__}: {e}") from e


async def _provision(
    connection: AsyncClient,
    payer: Keypair,
    mint: Pubkey,
    owner: Pubkey,
    ata: Pubkey,
    token_program_id: Pubkey,
    commitment: Commitment,
    timeout_secs: float,
    poll_interval_secs: float,
    retry_config: Optional[RetryConfig],
) -> Pubkey:
    if await account_exists(connection, ata, retry_config):
        return ata

    ix = create_associated_token_account(payer.pubkey(), owner, mint, token_program_id)
    try:
        await send_and_confirm(
            connection,
            [ix],
            payer,
            commitment=commitment,
            timeout_secs=timeout_secs,
            poll_interval_secs=poll_interval_secs,
            retry_config=retry_config,
        )
    except ConfirmationTimeoutError:
        if await account_exists(connection, ata, retry_config):
            return ata
        raise
    except TransactionFailedError as e:
        if await account_exists(connection, ata, retry_config):
            logger.info(f"Holding account {ata} was created concurrently")
            return ata
        raise AccountProvisioningError(ata, str(e)) from e

    logger.info(f"Created holding account {ata} for owner {owner}, mint {mint}")
    return ata
