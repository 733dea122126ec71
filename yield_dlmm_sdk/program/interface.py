"""Program interface descriptions and the remote program handle.

An interface description lists the entry points and account types a
deployed program exposes, in that deployment's naming convention. It is
read from an Anchor IDL (legacy camelCase or >= 0.30 snake_case) or taken
from the embedded canonical definitions.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..retry import RetryConfig, with_retry
from .accounts import ACCOUNT_DECODERS
from .constants import PROGRAM_ID
from .errors import AccountNotFoundError, InvalidAccountDataError
from .instructions import ENTRY_POINTS, AccountMapping, AccountSpec, EntryPoint
from .transactions import DEFAULT_CONFIRM_TIMEOUT_SECS, send_and_confirm
from .types import NamingConvention
from .utils import to_camel_case, to_snake_case

logger = logging.getLogger(__name__)


# ============================================================================
# NAMING VARIANTS
# ============================================================================


def convert_name(snake_name: str, convention: NamingConvention) -> str:
    """Render a snake_case name in the given convention."""
    if convention is NamingConvention.CAMEL:
        return to_camel_case(snake_name)
    return snake_name


def convert_mapping(
    snake_mapping: AccountMapping, convention: NamingConvention
) -> Dict[str, Optional[Pubkey]]:
    """Rename the roles of a snake_case account mapping."""
    return {convert_name(k, convention): v for k, v in snake_mapping.items()}


def _ordered_conventions(first: Optional[NamingConvention]) -> List[NamingConvention]:
    order = [NamingConvention.SNAKE, NamingConvention.CAMEL]
    if first is not None:
        order.remove(first)
        order.insert(0, first)
    return order


def method_variants(
    snake_name: str, preferred: Optional[NamingConvention] = None
) -> List[str]:
    """Candidate entry point names, preferred convention first, deduplicated."""
    names: List[str] = []
    for convention in _ordered_conventions(preferred):
        name = convert_name(snake_name, convention)
        if name not in names:
            names.append(name)
    return names


def mapping_variants(
    snake_mapping: AccountMapping, preferred: Optional[NamingConvention] = None
) -> List[Dict[str, Optional[Pubkey]]]:
    """Candidate account mappings, preferred convention first, deduplicated."""
    mappings: List[Dict[str, Optional[Pubkey]]] = []
    for convention in _ordered_conventions(preferred):
        mapping = convert_mapping(snake_mapping, convention)
        if mapping not in mappings:
            mappings.append(mapping)
    return mappings


# ============================================================================
# INTERFACE DESCRIPTION
# ============================================================================


def _flatten_idl_accounts(items: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    flat: List[Mapping[str, Any]] = []
    for item in items:
        if "accounts" in item:
            flat.extend(_flatten_idl_accounts(item["accounts"]))
        else:
            flat.append(item)
    return flat


def _detect_convention(idl: Mapping[str, Any]) -> NamingConvention:
    # Anchor >= 0.30 IDLs carry metadata.spec and always use snake_case
    if "spec" in idl.get("metadata", {}):
        return NamingConvention.SNAKE
    for ix in idl.get("instructions", []):
        if ix["name"] != to_snake_case(ix["name"]):
            return NamingConvention.CAMEL
        for acc in _flatten_idl_accounts(ix.get("accounts", [])):
            if acc["name"] != to_snake_case(acc["name"]):
                return NamingConvention.CAMEL
    return NamingConvention.SNAKE


@dataclass
class ProgramInterface:
    """Entry points and account decoders exposed by a deployed program."""

    convention: NamingConvention
    entry_points: Dict[str, EntryPoint]
    account_decoders: Dict[str, Callable[[bytes], Any]] = field(default_factory=dict)
    spec_version: Optional[str] = None

    @classmethod
    def embedded(
        cls, convention: NamingConvention = NamingConvention.SNAKE
    ) -> "ProgramInterface":
        """Interface built from the canonical entry point definitions."""
        entry_points = {}
        for snake_name, ep in ENTRY_POINTS.items():
            name = convert_name(snake_name, convention)
            renamed = ep.renamed(
                name, {spec.name: convert_name(spec.name, convention) for spec in ep.accounts}
            )
            entry_points[name] = renamed
        return cls(
            convention=convention,
            entry_points=entry_points,
            account_decoders=dict(ACCOUNT_DECODERS),
        )

    @classmethod
    def from_idl(cls, idl: Mapping[str, Any]) -> "ProgramInterface":
        """Build an interface from a parsed Anchor IDL.

        Account roles, their order and flags come from the IDL; argument
        layouts come from the canonical definitions. Instructions without a
        canonical definition are skipped.
        """
        convention = _detect_convention(idl)
        entry_points: Dict[str, EntryPoint] = {}

        for ix in idl.get("instructions", []):
            name = ix["name"]
            canonical = ENTRY_POINTS.get(to_snake_case(name))
            if canonical is None:
                logger.debug(f"Skipping IDL instruction without known layout: {name}")
                continue

            idl_args = ix.get("args", [])
            if len(idl_args) != len(canonical.args.fields):
                logger.warning(
                    f"IDL instruction {name} has {len(idl_args)} args, "
                    f"expected {len(canonical.args.fields)}; skipping"
                )
                continue

            accounts = tuple(
                AccountSpec(
                    name=acc["name"],
                    writable=bool(acc.get("writable", acc.get("isMut", False))),
                    signer=bool(acc.get("signer", acc.get("isSigner", False))),
                    optional=bool(acc.get("optional", acc.get("isOptional", False))),
                )
                for acc in _flatten_idl_accounts(ix.get("accounts", []))
            )
            entry_points[name] = replace(canonical, name=name, accounts=accounts)

        decoders = {}
        for account in idl.get("accounts", []):
            key = to_snake_case(account["name"])
            if key in ACCOUNT_DECODERS:
                decoders[key] = ACCOUNT_DECODERS[key]

        return cls(
            convention=convention,
            entry_points=entry_points,
            account_decoders=decoders,
            spec_version=idl.get("metadata", {}).get("spec"),
        )

    @classmethod
    def from_idl_file(cls, path: Union[str, Path]) -> "ProgramInterface":
        """Load an interface from an Anchor IDL JSON file."""
        with open(path) as f:
            return cls.from_idl(json.load(f))

    def resolve(self, name: str) -> Optional[EntryPoint]:
        """Entry point exposed under exactly this name, or None."""
        return self.entry_points.get(name)


# ============================================================================
# PROGRAM HANDLE
# ============================================================================


class ProgramHandle:
    """Remote program bound to a program id, an interface and a connection."""

    def __init__(
        self,
        connection: AsyncClient,
        interface: Optional[ProgramInterface] = None,
        program_id: Pubkey = PROGRAM_ID,
        signer: Optional[Keypair] = None,
        commitment: Commitment = Confirmed,
        confirm_timeout_secs: float = DEFAULT_CONFIRM_TIMEOUT_SECS,
        poll_interval_secs: float = 0.5,
        retry_config: Optional[RetryConfig] = None,
    ):
        """Initialize the handle.

        Args:
            connection: Solana RPC async client
            interface: Interface description (defaults to the embedded snake_case one)
            program_id: Program ID (defaults to the deployed program)
            signer: Fee payer and default signer, if already known
            commitment: Commitment level awaited for confirmations
            confirm_timeout_secs: Bound on confirmation polling
            poll_interval_secs: Delay between status polls
            retry_config: Retry policy for idempotent reads
        """
        self.connection = connection
        self.interface = interface or ProgramInterface.embedded()
        self.program_id = program_id
        self.signer = signer
        self.commitment = commitment
        self.confirm_timeout_secs = confirm_timeout_secs
        self.poll_interval_secs = poll_interval_secs
        self.retry_config = retry_config or RetryConfig.default()

    @property
    def convention(self) -> NamingConvention:
        return self.interface.convention

    @property
    def account_decoders(self) -> Dict[str, Callable[[bytes], Any]]:
        return self.interface.account_decoders

    def resolve(self, name: str) -> Optional[EntryPoint]:
        """Entry point exposed under this name, or None if absent."""
        return self.interface.resolve(name)

    def with_signer(self, signer: Keypair) -> "ProgramHandle":
        """Copy of this handle bound to a signer."""
        return ProgramHandle(
            connection=self.connection,
            interface=self.interface,
            program_id=self.program_id,
            signer=signer,
            commitment=self.commitment,
            confirm_timeout_secs=self.confirm_timeout_secs,
            poll_interval_secs=self.poll_interval_secs,
            retry_config=self.retry_config,
        )

    def preferred_methods(self, snake_name: str) -> List[str]:
        """Method candidates with the interface's own convention first."""
        return method_variants(snake_name, self.convention)

    def preferred_mappings(self, snake_mapping: AccountMapping) -> List[Dict[str, Optional[Pubkey]]]:
        """Account mapping candidates with the interface's own convention first."""
        return mapping_variants(snake_mapping, self.convention)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_account_data(self, address: Pubkey) -> Optional[bytes]:
        """Raw account data, or None if the account does not exist."""

        async def _fetch():
            response = await self.connection.get_account_info(address)
            return None if response.value is None else bytes(response.value.data)

        return await with_retry(_fetch, self.retry_config, f"get_account_info({address})")

    async def fetch(self, account_name: str, address: Pubkey) -> Any:
        """Fetch and decode an account with the registered decoder.

        Raises:
            AccountNotFoundError: If the account does not exist
            InvalidAccountDataError: If no decoder is registered for account_name
        """
        decoder = self.account_decoders.get(to_snake_case(account_name))
        if decoder is None:
            raise InvalidAccountDataError(f"no decoder registered for {account_name}")
        data = await self.get_account_data(address)
        if data is None:
            raise AccountNotFoundError(str(address))
        return decoder(data)

    async def fetch_nullable(self, account_name: str, address: Pubkey) -> Optional[Any]:
        """Like fetch, but returns None if the account does not exist."""
        try:
            return await self.fetch(account_name, address)
        except AccountNotFoundError:
            return None

    # =========================================================================
    # Submission
    # =========================================================================

    async def send(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair] = (),
    ) -> Signature:
        """Sign with the handle's signer plus signers, submit and confirm."""
        payer = self.signer or (signers[0] if signers else None)
        if payer is None:
            raise ValueError("ProgramHandle has no signer to pay for the transaction")
        return await send_and_confirm(
            self.connection,
            instructions,
            payer,
            signers,
            commitment=self.commitment,
            timeout_secs=self.confirm_timeout_secs,
            poll_interval_secs=self.poll_interval_secs,
            retry_config=self.retry_config,
        )
