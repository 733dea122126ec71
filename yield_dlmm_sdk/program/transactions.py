"""Transaction submission and confirmation."""

import asyncio
import logging
from typing import Dict, Optional, Sequence

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.signature import Signature
from solders.transaction import Transaction

from ..retry import RetryConfig, is_retryable, with_retry
from .errors import ConfirmationTimeoutError, TransactionFailedError

logger = logging.getLogger(__name__)

DEFAULT_CONFIRM_TIMEOUT_SECS = 30.0
DEFAULT_POLL_INTERVAL_SECS = 0.5

_COMMITMENT_RANK: Dict[str, int] = {"processed": 0, "confirmed": 1, "finalized": 2}


def _rank(commitment: object) -> int:
    name = str(commitment).rsplit(".", 1)[-1].lower()
    return _COMMITMENT_RANK.get(name, 1)


async def get_latest_blockhash(
    connection: AsyncClient, retry_config: Optional[RetryConfig] = None
) -> Hash:
    """Get the latest blockhash."""

    async def _fetch():
        response = await connection.get_latest_blockhash()
        return response.value.blockhash

    return await with_retry(_fetch, retry_config, "get_latest_blockhash")


def build_signed_transaction(
    instructions: Sequence[Instruction],
    payer: Keypair,
    signers: Sequence[Keypair],
    blockhash: Hash,
) -> Transaction:
    """Build and sign a transaction with payer as fee payer."""
    unique: Dict[object, Keypair] = {payer.pubkey(): payer}
    for signer in signers:
        unique.setdefault(signer.pubkey(), signer)

    message = Message.new_with_blockhash(list(instructions), payer.pubkey(), blockhash)
    tx = Transaction.new_unsigned(message)
    tx.sign(list(unique.values()), blockhash)
    return tx


async def confirm_transaction(
    connection: AsyncClient,
    signature: Signature,
    commitment: Commitment = Confirmed,
    timeout_secs: float = DEFAULT_CONFIRM_TIMEOUT_SECS,
    poll_interval_secs: float = DEFAULT_POLL_INTERVAL_SECS,
) -> Signature:
    """Poll signature status until the transaction reaches commitment.

    Raises:
        TransactionFailedError: If the transaction landed with an error
        ConfirmationTimeoutError: If no confirmation was observed in time
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_secs
    wanted = _rank(commitment)

    while True:
        try:
            response = await connection.get_signature_statuses([signature])
            status = response.value[0]
        except Exception as e:
            if not is_retryable(e):
                raise
            logger.debug(f"Status poll for {signature} failed: {e}")
            status = None

        if status is not None:
            if status.err:
                raise TransactionFailedError(str(status.err), signature)
            if status.confirmation_status is None or _rank(status.confirmation_status) >= wanted:
                return signature

        if loop.time() >= deadline:
            raise ConfirmationTimeoutError(signature, timeout_secs)
        await asyncio.sleep(poll_interval_secs)


async def send_and_confirm(
    connection: AsyncClient,
    instructions: Sequence[Instruction],
    payer: Keypair,
    signers: Sequence[Keypair] = (),
    commitment: Commitment = Confirmed,
    timeout_secs: float = DEFAULT_CONFIRM_TIMEOUT_SECS,
    poll_interval_secs: float = DEFAULT_POLL_INTERVAL_SECS,
    retry_config: Optional[RetryConfig] = None,
) -> Signature:
    """Sign, submit once, and wait for confirmation.

    A rejected submission (preflight or RPC error) is a definite failure.
    A submission whose response was lost is treated as possibly landed and
    is confirmed by signature.

    Raises:
        TransactionFailedError: If the transaction was rejected or failed on-chain
        ConfirmationTimeoutError: If the outcome could not be observed in time
    """
    blockhash = await get_latest_blockhash(connection, retry_config)
    tx = build_signed_transaction(instructions, payer, signers, blockhash)
    signature = tx.signatures[0]

    try:
        await connection.send_raw_transaction(
            bytes(tx),
            opts=TxOpts(skip_confirmation=True, preflight_commitment=commitment),
        )
    except RPCException as e:
        raise TransactionFailedError(str(e), signature) from e
    except Exception as e:
        if not is_retryable(e):
            raise
        logger.warning(f"Submission of {signature} lost its response ({e}); checking status")

    logger.debug(f"Submitted {signature}")
    return await confirm_transaction(
        connection, signature, commitment, timeout_secs, poll_interval_secs
    )
