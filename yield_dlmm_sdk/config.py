"""Client configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .program.constants import LAMPORTS_PER_SOL, PROGRAM_ID
from .program.errors import ConfigError
from .program.utils import load_keypair
from .retry import RetryConfig

DEFAULT_RPC_URL = "https://api.devnet.solana.com"

_COMMITMENTS = ("processed", "confirmed", "finalized")


@dataclass
class ClientConfig:
    """Configuration for building a runtime environment outside a console host."""

    rpc_url: str = DEFAULT_RPC_URL
    program_id: Pubkey = PROGRAM_ID
    keypair: Optional[Keypair] = None
    idl_path: Optional[str] = None
    commitment: str = "confirmed"
    confirm_timeout_secs: float = 30.0
    airdrop_lamports: int = LAMPORTS_PER_SOL
    retry_config: RetryConfig = field(default_factory=RetryConfig.default)

    def with_rpc_url(self, url: str) -> "ClientConfig":
        """Set RPC URL."""
        self.rpc_url = url
        return self

    def with_program_id(self, program_id: Pubkey) -> "ClientConfig":
        """Set program ID."""
        self.program_id = program_id
        return self

    def with_keypair(self, keypair: Keypair) -> "ClientConfig":
        """Set signing keypair."""
        self.keypair = keypair
        return self

    def with_idl_path(self, path: str) -> "ClientConfig":
        """Set path to the program's Anchor IDL."""
        self.idl_path = path
        return self

    def with_commitment(self, commitment: str) -> "ClientConfig":
        """Set commitment level."""
        if commitment not in _COMMITMENTS:
            raise ConfigError(f"unknown commitment {commitment!r}")
        self.commitment = commitment
        return self

    def with_confirm_timeout_secs(self, timeout: float) -> "ClientConfig":
        """Set confirmation timeout."""
        self.confirm_timeout_secs = timeout
        return self

    def with_airdrop_lamports(self, lamports: int) -> "ClientConfig":
        """Set the airdrop requested for an ephemeral signer."""
        self.airdrop_lamports = lamports
        return self

    def with_retry_config(self, config: RetryConfig) -> "ClientConfig":
        """Set retry policy for reads."""
        self.retry_config = config
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Build a config from DLMM_* environment variables.

        Recognized variables:
            DLMM_RPC_URL, DLMM_PROGRAM_ID, DLMM_KEYPAIR (path to a JSON byte
            array), DLMM_SECRET_KEY (base58), DLMM_IDL_PATH, DLMM_COMMITMENT,
            DLMM_CONFIRM_TIMEOUT_SECS, DLMM_AIRDROP_LAMPORTS

        Raises:
            ConfigError: If a variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        config = cls()

        if "DLMM_RPC_URL" in env:
            config.rpc_url = env["DLMM_RPC_URL"]

        if "DLMM_PROGRAM_ID" in env:
            try:
                config.program_id = Pubkey.from_string(env["DLMM_PROGRAM_ID"])
            except ValueError as e:
                raise ConfigError(f"DLMM_PROGRAM_ID: {e}") from e

        if "DLMM_KEYPAIR" in env:
            path = Path(env["DLMM_KEYPAIR"]).expanduser()
            try:
                config.keypair = load_keypair(path.read_text())
            except (OSError, ValueError) as e:
                raise ConfigError(f"DLMM_KEYPAIR ({path}): {e}") from e
        elif "DLMM_SECRET_KEY" in env:
            try:
                config.keypair = load_keypair(env["DLMM_SECRET_KEY"])
            except ValueError as e:
                raise ConfigError(f"DLMM_SECRET_KEY: {e}") from e

        if "DLMM_IDL_PATH" in env:
            config.idl_path = env["DLMM_IDL_PATH"]

        if "DLMM_COMMITMENT" in env:
            config.with_commitment(env["DLMM_COMMITMENT"].lower())

        try:
            if "DLMM_CONFIRM_TIMEOUT_SECS" in env:
                config.confirm_timeout_secs = float(env["DLMM_CONFIRM_TIMEOUT_SECS"])
            if "DLMM_AIRDROP_LAMPORTS" in env:
                config.airdrop_lamports = int(env["DLMM_AIRDROP_LAMPORTS"])
        except ValueError as e:
            raise ConfigError(str(e)) from e

        return config
