"""Pytest configuration and shared fixtures."""

import asyncio
import dataclasses
import os
from typing import Dict, List, Optional, Set

import httpx
import pytest
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus

from yield_dlmm_sdk.program.accounts import (
    ORDERBOOK_LAYOUT,
    POOL_LAYOUT,
    deserialize_orderbook,
    deserialize_pool,
    deserialize_position,
    serialize_account,
)
from yield_dlmm_sdk.program.codec import decode
from yield_dlmm_sdk.program.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    DEFAULT_MAX_QUEUE_PER_LEVEL,
    ORDERBOOK_SPACE,
    POOL_SPACE,
    POOL_VERSION,
    PROGRAM_ID,
)
from yield_dlmm_sdk.program.instructions import ENTRY_POINTS
from yield_dlmm_sdk.program.interface import ProgramHandle, ProgramInterface
from yield_dlmm_sdk.program.pda import clear_derivation_cache
from yield_dlmm_sdk.program.types import Position
from yield_dlmm_sdk.retry import RetryConfig
from yield_dlmm_sdk.runtime import RuntimeEnvironment, SignerProvisioning


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (run offline)")
    config.addinivalue_line("markers", "devnet: Integration tests against devnet")


def pytest_collection_modifyitems(config, items):
    """Skip devnet tests unless explicitly requested."""
    run_devnet = config.getoption("-k", default="") and "devnet" in config.getoption("-k", default="")

    for item in items:
        if "test_devnet" in str(item.fspath):
            if not run_devnet and "DEVNET_TESTS" not in os.environ:
                item.add_marker(pytest.mark.skip(reason="Devnet tests skipped by default. Set DEVNET_TESTS=1 or use -k devnet"))


# ============================================================================
# Mock RPC
# ============================================================================


class MockResponse:
    def __init__(self, value):
        self.value = value


class MockBlockhash:
    def __init__(self, blockhash):
        self.blockhash = blockhash


class MockAccount:
    def __init__(self, data: bytes):
        self.data = data


class MockStatus:
    def __init__(self, err=None, confirmation_status=TransactionConfirmationStatus.Confirmed):
        self.err = err
        self.confirmation_status = confirmation_status


_BY_DISCRIMINATOR = {ep.discriminator: ep for ep in ENTRY_POINTS.values()}


class FakeLedger:
    """In-memory stand-in for AsyncClient that executes DLMM instructions.

    Failure injection:
        reject: exceptions raised by the next send_raw_transaction calls
        lose_ack: execute the next submission but raise a transport error
        hide_status: execute submissions but never report their status
        airdrop_error: exception raised by request_airdrop
        gate: when set, submissions wait for this event before executing
        send_started: when set, signalled as each submission arrives
    """

    def __init__(self, program_id: Pubkey = PROGRAM_ID):
        self.program_id = program_id
        self.accounts: Dict[Pubkey, bytes] = {}
        self.balances: Dict[Pubkey, int] = {}
        self.statuses: Dict[Signature, MockStatus] = {}
        self.submitted: List[Transaction] = []
        self.executed: List[str] = []
        self.reject: List[Exception] = []
        self.lose_ack = False
        self.hide_status = False
        self.airdrop_error: Optional[Exception] = None
        self.airdrops: List[Pubkey] = []
        self.gate: Optional[asyncio.Event] = None
        self.send_started: Optional[asyncio.Event] = None
        self.reads: Set[Pubkey] = set()
        self.closed = False

    # =========================================================================
    # RPC surface
    # =========================================================================

    async def get_account_info(self, pubkey):
        self.reads.add(pubkey)
        data = self.accounts.get(pubkey)
        return MockResponse(None if data is None else MockAccount(data))

    async def get_latest_blockhash(self):
        return MockResponse(MockBlockhash(Hash.default()))

    async def get_balance(self, pubkey):
        return MockResponse(self.balances.get(pubkey, 0))

    async def request_airdrop(self, pubkey, lamports):
        if self.airdrop_error is not None:
            raise self.airdrop_error
        self.airdrops.append(pubkey)
        self.balances[pubkey] = self.balances.get(pubkey, 0) + lamports
        signature = Signature.new_unique()
        if not self.hide_status:
            self.statuses[signature] = MockStatus()
        return MockResponse(signature)

    async def get_signature_statuses(self, signatures):
        return MockResponse([self.statuses.get(s) for s in signatures])

    async def send_raw_transaction(self, raw, opts=None):
        tx = Transaction.from_bytes(raw)
        signature = tx.signatures[0]
        self.submitted.append(tx)
        if self.send_started is not None:
            self.send_started.set()

        if self.gate is not None:
            await self.gate.wait()
        if self.reject:
            raise self.reject.pop(0)

        self._execute(tx)
        if not self.hide_status:
            self.statuses[signature] = MockStatus()

        if self.lose_ack:
            self.lose_ack = False
            raise httpx.ConnectError("connection reset")
        return MockResponse(signature)

    async def close(self):
        self.closed = True

    # =========================================================================
    # Execution
    # =========================================================================

    def _execute(self, tx: Transaction) -> None:
        keys = tx.message.account_keys
        for ix in tx.message.instructions:
            program = keys[ix.program_id_index]
            accounts = [keys[i] for i in ix.accounts]
            data = bytes(ix.data)
            if program == ASSOCIATED_TOKEN_PROGRAM_ID:
                self._create_ata(accounts)
            elif program == self.program_id:
                self._execute_dlmm(accounts, data)
            else:
                raise RPCException(f"unsupported program {program}")

    def _create_ata(self, accounts: List[Pubkey]) -> None:
        ata = accounts[1]
        if ata in self.accounts:
            raise RPCException(f"Provided owner is not allowed: {ata} already in use")
        self.accounts[ata] = bytes(165)
        self.executed.append("create_associated_token_account")

    def _execute_dlmm(self, accounts: List[Pubkey], data: bytes) -> None:
        entry_point = _BY_DISCRIMINATOR.get(data[:8])
        if entry_point is None:
            raise RPCException("InstructionFallbackNotFound")
        args, _ = decode(entry_point.args, data, 8)
        handler = getattr(self, f"_ix_{entry_point.snake_name}", None)
        if handler is not None:
            handler(accounts, args)
        self.executed.append(entry_point.snake_name)

    def _ix_initialize_pool(self, accounts, args):
        payer, mint_a, mint_b, pool, vault_a, vault_b, treasury_a, treasury_b = accounts[:8]
        if pool in self.accounts:
            raise RPCException(f"Allocate: account {pool} already in use")
        params = args["p"]
        zero, _ = decode(POOL_LAYOUT, bytes(POOL_SPACE))
        state = dataclasses.replace(
            zero,
            version=POOL_VERSION,
            admin_threshold=params.admin_threshold,
            admins=params.admins,
            risk_admin=params.risk_admin,
            ops_admin=params.ops_admin,
            fee_admin=params.fee_admin,
            mint_a=mint_a,
            mint_b=mint_b,
            vault_a=vault_a,
            vault_b=vault_b,
            treasury_a=treasury_a,
            treasury_b=treasury_b,
            updater=params.updater,
            oracle_signer=params.oracle_signer,
            n_bands=params.n_bands,
            base_width_bps=params.base_width_bps,
            spot_price_1e6=params.initial_spot_price_1e6,
        )
        self.accounts[pool] = serialize_account("Pool", state) + bytes(128)
        for vault in (vault_a, vault_b, treasury_a, treasury_b):
            self.accounts[vault] = bytes(165)

    def _ix_add_liquidity(self, accounts, args):
        user, pool = accounts[0], accounts[1]
        position = accounts[6]
        if pool not in self.accounts:
            raise RPCException("AccountNotInitialized: pool")
        shares = max(args["amount_a"], args["amount_b"])
        if shares == 0:
            raise RPCException("ZeroAmount")
        if position in self.accounts:
            state = deserialize_position(self.accounts[position])
            state = dataclasses.replace(state, shares=state.shares + shares)
        else:
            state = Position(
                bump=255,
                pool=pool,
                owner=user,
                band_idx=args["band_idx"],
                shares=shares,
                last_fee_growth_a_1e18=0,
                last_fee_growth_b_1e18=0,
                receipt_nonce=args["receipt_nonce"],
                min_unlock_slot=args["min_unlock_after_slots"],
                approved=None,
            )
        self.accounts[position] = serialize_account("Position", state)

    def _ix_init_orderbook(self, accounts, args):
        pool, orderbook = accounts[1], accounts[2]
        if pool not in self.accounts:
            raise RPCException("AccountNotInitialized: pool")
        if orderbook in self.accounts:
            raise RPCException(f"Allocate: account {orderbook} already in use")
        zero, _ = decode(ORDERBOOK_LAYOUT, bytes(ORDERBOOK_SPACE))
        state = dataclasses.replace(
            zero,
            pool=pool,
            tick_1e6=args["tick_1e6"],
            best_bid_band=-1,
            best_ask_band=-1,
            next_order_id=1,
            max_levels=args["max_levels"],
            max_queue_per_level=DEFAULT_MAX_QUEUE_PER_LEVEL,
        )
        self.accounts[orderbook] = serialize_account("OrderBook", state)

    def _ix_place_order(self, accounts, args):
        orderbook = accounts[2]
        if orderbook not in self.accounts:
            raise RPCException("AccountNotInitialized: orderbook")
        state = deserialize_orderbook(self.accounts[orderbook])
        state = dataclasses.replace(state, next_order_id=state.next_order_id + 1)
        self.accounts[orderbook] = serialize_account("OrderBook", state)

    # =========================================================================
    # Helpers
    # =========================================================================

    def pool_state(self, pool: Pubkey):
        return deserialize_pool(self.accounts[pool])

    def count(self, name: str) -> int:
        return self.executed.count(name)


@pytest.fixture(autouse=True)
def _fresh_derivation_cache():
    clear_derivation_cache()
    yield
    clear_derivation_cache()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def signer():
    return Keypair()


@pytest.fixture
def mints():
    return Pubkey.new_unique(), Pubkey.new_unique()


def make_handle(ledger, signer=None, interface=None, timeout=0.2):
    return ProgramHandle(
        connection=ledger,
        interface=interface or ProgramInterface.embedded(),
        signer=signer,
        confirm_timeout_secs=timeout,
        poll_interval_secs=0.01,
        retry_config=RetryConfig.disabled(),
    )


@pytest.fixture
def handle(ledger, signer):
    return make_handle(ledger, signer)


@pytest.fixture
def env(ledger, signer, handle):
    ledger.balances[signer.pubkey()] = 5_000_000_000
    return RuntimeEnvironment(
        connection=ledger,
        signer=signer,
        program=handle,
        provisioning=SignerProvisioning.EXISTING,
    )
