"""Runtime environment resolution.

Resolve once per session and pass the resulting `RuntimeEnvironment` to
the operations that need it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .config import ClientConfig
from .program.constants import LAMPORTS_PER_SOL
from .program.errors import ConfigError, ConfirmationTimeoutError, RuntimeResolutionError
from .program.interface import ProgramHandle, ProgramInterface
from .program.transactions import confirm_transaction

logger = logging.getLogger(__name__)


class SignerProvisioning(Enum):
    """How the session's signer was obtained."""

    EXISTING = "existing"  # Supplied by the environment
    FUNDED = "funded"  # Ephemeral, airdrop confirmed
    UNFUNDED = "unfunded"  # Ephemeral, airdrop skipped or unconfirmed
    FAILED = "failed"  # Ephemeral, airdrop request failed


@dataclass(frozen=True)
class RuntimeEnvironment:
    """Connection, signer and program handle for one session."""

    connection: AsyncClient
    signer: Keypair
    program: ProgramHandle
    provisioning: SignerProvisioning = SignerProvisioning.EXISTING

    @property
    def signer_pubkey(self) -> Pubkey:
        return self.signer.pubkey()

    async def close(self) -> None:
        """Close the underlying connection."""
        await self.connection.close()


def _signer_from(wallet: Any) -> Optional[Keypair]:
    if isinstance(wallet, Keypair):
        return wallet
    for attr in ("keypair", "payer"):
        keypair = getattr(wallet, attr, None)
        if isinstance(keypair, Keypair):
            return keypair
    return None


def _from_console(pg: Any) -> Optional[Tuple[ProgramHandle, Optional[Keypair]]]:
    connection = getattr(pg, "connection", None)
    program = getattr(pg, "program", None)
    signer = _signer_from(getattr(pg, "wallet", None))
    if signer is None:
        provider = getattr(program, "provider", None)
        signer = _signer_from(getattr(provider, "wallet", None))

    if isinstance(program, ProgramHandle):
        if connection is not None and program.connection is not connection:
            program = ProgramHandle(
                connection=connection,
                interface=program.interface,
                program_id=program.program_id,
                signer=program.signer,
                commitment=program.commitment,
                confirm_timeout_secs=program.confirm_timeout_secs,
                poll_interval_secs=program.poll_interval_secs,
                retry_config=program.retry_config,
            )
        return program, signer or program.signer
    if connection is not None:
        return ProgramHandle(connection=connection), signer
    return None


def _from_config(config: ClientConfig) -> Tuple[ProgramHandle, Optional[Keypair]]:
    if config.idl_path:
        try:
            interface = ProgramInterface.from_idl_file(config.idl_path)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ConfigError(f"cannot load IDL from {config.idl_path}: {e}") from e
    else:
        interface = ProgramInterface.embedded()
    connection = AsyncClient(config.rpc_url, commitment=Commitment(config.commitment))
    handle = ProgramHandle(
        connection=connection,
        interface=interface,
        program_id=config.program_id,
        signer=config.keypair,
        commitment=Commitment(config.commitment),
        confirm_timeout_secs=config.confirm_timeout_secs,
        retry_config=config.retry_config,
    )
    return handle, config.keypair


async def fund_signer(
    connection: AsyncClient,
    pubkey: Pubkey,
    lamports: int = LAMPORTS_PER_SOL,
    commitment: Commitment = Confirmed,
    timeout_secs: float = 30.0,
) -> SignerProvisioning:
    """Best-effort airdrop to a freshly generated signer.

    Never raises; the outcome is reported as a SignerProvisioning value.
    """
    if lamports <= 0:
        return SignerProvisioning.UNFUNDED
    try:
        response = await connection.request_airdrop(pubkey, lamports)
        await confirm_transaction(connection, response.value, commitment, timeout_secs)
    except ConfirmationTimeoutError as e:
        logger.warning(f"Airdrop to {pubkey} not confirmed: {e}")
        return SignerProvisioning.UNFUNDED
    except Exception as e:
        logger.warning(f"Airdrop to {pubkey} failed: {e}")
        return SignerProvisioning.FAILED
    logger.info(f"Airdropped {lamports / LAMPORTS_PER_SOL:.2f} SOL to ephemeral signer {pubkey}")
    return SignerProvisioning.FUNDED


async def resolve_runtime(
    context: Optional[Mapping[str, Any]] = None,
    config: Optional[ClientConfig] = None,
) -> RuntimeEnvironment:
    """Discover a connection, signer and program handle.

    Candidates, in order:
    1. an interactive console namespace: context["pg"] exposing
       `connection`, `program` and `wallet`
    2. a pre-bound handle: context["program"] (a ProgramHandle)
    3. an environment built from config

    Without a signer, an ephemeral keypair is generated and funded by
    airdrop on a best-effort basis.

    Raises:
        RuntimeResolutionError: If no candidate is usable
        ConfigError: If the configured IDL file cannot be loaded
    """
    context = context or {}
    found = None
    source = None

    if context.get("pg") is not None:
        found = _from_console(context["pg"])
        source = "console namespace"
        if found is None:
            logger.debug("Console namespace has neither a connection nor a program handle")

    if found is None and isinstance(context.get("program"), ProgramHandle):
        program = context["program"]
        found = (program, program.signer)
        source = "pre-bound program handle"

    if found is None and config is not None:
        found = _from_config(config)
        source = f"client config ({config.rpc_url})"

    if found is None:
        raise RuntimeResolutionError(
            "no console namespace, pre-bound program handle or client config available"
        )

    handle, signer = found
    logger.info(f"Resolved runtime from {source}, program {handle.program_id}")

    if signer is not None:
        return RuntimeEnvironment(
            connection=handle.connection,
            signer=signer,
            program=handle.with_signer(signer),
            provisioning=SignerProvisioning.EXISTING,
        )

    signer = Keypair()
    logger.info(f"No signer available; generated ephemeral signer {signer.pubkey()}")
    lamports = config.airdrop_lamports if config is not None else LAMPORTS_PER_SOL
    provisioning = await fund_signer(
        handle.connection,
        signer.pubkey(),
        lamports,
        handle.commitment,
        handle.confirm_timeout_secs,
    )
    return RuntimeEnvironment(
        connection=handle.connection,
        signer=signer,
        program=handle.with_signer(signer),
        provisioning=provisioning,
    )
