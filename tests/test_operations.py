"""End-to-end tests for high-level operations against an in-memory ledger."""

import httpx
import pytest
from solana.rpc.core import RPCException
from solders.keypair import Keypair

from yield_dlmm_sdk import (
    AccountNotFoundError,
    AccountProvisioningError,
    AddressOnly,
    DlmmError,
    DlmmOperations,
    InitPoolParams,
    InvocationExhausted,
    LedgerReadError,
    NamingConvention,
    ProgramInterface,
    RuntimeEnvironment,
    Side,
    TifParam,
    get_pool_pda,
    get_position_pda,
    operations,
)
from yield_dlmm_sdk.program import get_associated_token_address

from conftest import make_handle


@pytest.fixture
def ops(env):
    return DlmmOperations(env)


@pytest.mark.asyncio
class TestInitializePool:
    async def test_initialize_then_view(self, ops, ledger, signer, mints):
        mint_a, mint_b = mints

        await ops.initialize_pool(mint_a, mint_b)
        pool = await ops.view_pool_state(mint_a, mint_b)

        assert pool.version == 3
        assert pool.mint_a == mint_a
        assert pool.mint_b == mint_b
        assert pool.admins[0] == signer.pubkey()
        assert pool.updater == signer.pubkey()
        assert pool.admin_threshold == 1

    async def test_custom_params(self, ops, mints):
        oracle = Keypair().pubkey()
        params = InitPoolParams(admins=[ops.signer.pubkey()], oracle_signer=oracle, n_bands=4)

        await ops.initialize_pool(*mints, params=params)
        pool = await ops.view_pool_state(*mints)

        assert pool.oracle_signer == oracle
        assert pool.n_bands == 4

    async def test_second_initialize_fails(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)

        with pytest.raises(InvocationExhausted, match="already in use"):
            await ops.initialize_pool(*mints)

        assert ledger.count("initialize_pool") == 1

    async def test_camel_deployment(self, ledger, signer, mints):
        handle = make_handle(ledger, signer, ProgramInterface.embedded(NamingConvention.CAMEL))
        env = RuntimeEnvironment(connection=ledger, signer=signer, program=handle)

        await operations.initialize_pool(env, *mints)

        assert ledger.count("initialize_pool") == 1
        assert len(ledger.submitted) == 1

    async def test_timed_out_initialize_settled_by_state(self, ops, ledger, mints):
        ledger.hide_status = True

        signature = await ops.initialize_pool(*mints)

        assert signature == ledger.submitted[0].signatures[0]


@pytest.mark.asyncio
class TestLiquidity:
    async def test_add_liquidity_mints_shares(self, ops, ledger, signer, mints):
        mint_a, mint_b = mints
        await ops.initialize_pool(mint_a, mint_b)

        await ops.add_liquidity(mint_a, mint_b, band_idx=0, amount_a=1000, amount_b=0, receipt_nonce=1)
        position = await ops.view_position(mint_a, mint_b, receipt_nonce=1)

        assert position.shares > 0
        assert position.owner == signer.pubkey()
        pool, _ = get_pool_pda(mint_a, mint_b)
        assert position.pool == pool

    async def test_add_liquidity_provisions_holding_accounts(self, ops, ledger, signer, mints):
        mint_a, mint_b = mints
        await ops.initialize_pool(mint_a, mint_b)

        await ops.add_liquidity(mint_a, mint_b, 0, 1000, 500, receipt_nonce=2)
        await ops.add_liquidity(mint_a, mint_b, 0, 10, 0, receipt_nonce=2)

        assert get_associated_token_address(signer.pubkey(), mint_a) in ledger.accounts
        assert get_associated_token_address(signer.pubkey(), mint_b) in ledger.accounts
        assert ledger.count("create_associated_token_account") == 2
        position = await ops.view_position(mint_a, mint_b, receipt_nonce=2)
        assert position.shares == 1010

    async def test_add_liquidity_without_pool(self, ops, mints):
        with pytest.raises(InvocationExhausted, match="AccountNotInitialized"):
            await ops.add_liquidity(*mints, 0, 1000, 0, receipt_nonce=1)

    async def test_add_liquidity_lost_response(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)
        await ops._ensure_holding_accounts(*mints)
        ledger.lose_ack = True

        await ops.add_liquidity(*mints, 0, 1000, 0, receipt_nonce=3)

        assert ledger.count("add_liquidity") == 1

    async def test_remove_and_collect_submit(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)
        await ops.add_liquidity(*mints, 0, 1000, 0, receipt_nonce=1)

        await ops.collect_fees(*mints, receipt_nonce=1)
        await ops.remove_liquidity(*mints, receipt_nonce=1, shares_to_burn=500)

        assert ledger.count("collect_fees") == 1
        assert ledger.count("remove_liquidity") == 1

    async def test_rejected_remove_not_resubmitted(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)
        await ops.add_liquidity(*mints, 0, 1000, 0, receipt_nonce=1)
        ledger.reject.append(RPCException("custom program error: 0x1771"))
        before = len(ledger.submitted)

        with pytest.raises(InvocationExhausted):
            await ops.remove_liquidity(*mints, receipt_nonce=1, shares_to_burn=500)

        assert len(ledger.submitted) == before + 1
        assert ledger.count("remove_liquidity") == 0

    async def test_view_missing_position(self, ops, mints):
        await ops.initialize_pool(*mints)

        with pytest.raises(AccountNotFoundError):
            await ops.view_position(*mints, receipt_nonce=99)


@pytest.mark.asyncio
class TestPostYields:
    async def test_post_yields(self, ops, ledger, signer, mints):
        await ops.initialize_pool(*mints)

        await ops.post_yields_and_update(*mints, 450, 300, 1_020_000, 0)

        assert ledger.count("post_yields_and_update") == 1
        tx = ledger.submitted[-1]
        keys = tx.message.account_keys
        ix = tx.message.instructions[0]
        assert keys[ix.accounts[1]] == ops.program_id

    async def test_oracle_signer_signs(self, ops, ledger, mints):
        oracle = Keypair()
        await ops.initialize_pool(*mints)

        await ops.post_yields_and_update(*mints, 450, 300, 1_020_000, 0, oracle_signer=oracle)

        tx = ledger.submitted[-1]
        signer_keys = tx.message.account_keys[: tx.message.header.num_required_signatures]
        assert oracle.pubkey() in signer_keys
        assert len(tx.signatures) == 2


@pytest.mark.asyncio
class TestOrderbook:
    async def test_init_and_place(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)

        await ops.init_orderbook(*mints, tick_1e6=100, max_levels=32)
        await ops.place_order(*mints, Side.BID, 10, limit_price_1e6=990_000)
        await ops.place_order(*mints, Side.ASK, 5, tif=TifParam.ioc())
        book = await ops.view_orderbook(*mints)

        assert book.tick_1e6 == 100
        assert book.max_levels == 32
        assert book.next_order_id == 3

    async def test_cancel_order_submits(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)
        await ops.init_orderbook(*mints, tick_1e6=100, max_levels=32)

        await ops.cancel_order(*mints, Side.BID, 1)

        assert ledger.count("cancel_order") == 1

    async def test_place_order_rejected(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)
        await ops.init_orderbook(*mints, tick_1e6=100, max_levels=32)
        ledger.reject.append(RPCException("custom program error: 0x1780"))
        before = len(ledger.submitted)

        with pytest.raises(InvocationExhausted) as exc_info:
            await ops.place_order(*mints, Side.BID, 10, limit_price_1e6=990_000)

        assert "0x1780" in str(exc_info.value.last_error)
        assert len(ledger.submitted) == before + 1
        assert ledger.count("place_order") == 0


@pytest.mark.asyncio
class TestViews:
    async def test_view_without_decoder_returns_address(self, ledger, signer, mints):
        interface = ProgramInterface(
            convention=NamingConvention.SNAKE,
            entry_points=ProgramInterface.embedded().entry_points,
            account_decoders={},
        )
        env = RuntimeEnvironment(
            connection=ledger, signer=signer, program=make_handle(ledger, signer, interface)
        )

        result = await operations.view_pool_state(env, *mints)

        assert result == AddressOnly(pda=get_pool_pda(*mints)[0])

    async def test_view_position_for_other_owner(self, ops, ledger, mints):
        owner = Keypair().pubkey()
        ops.env.program.interface.account_decoders.pop("position")
        pool, _ = get_pool_pda(*mints)

        result = await ops.view_position(*mints, receipt_nonce=4, owner=owner)

        assert result.pda == get_position_pda(pool, owner, 4)[0]

    async def test_identity_and_balance(self, env, signer):
        identity = await operations.show_identity_and_balance(env)

        assert identity.address == signer.pubkey()
        assert identity.lamports == 5_000_000_000
        assert identity.sol == 5.0


async def _refuse(*args, **kwargs):
    raise httpx.ConnectError("connection refused")


@pytest.mark.asyncio
class TestTransportFailures:
    async def test_add_liquidity_raises_provisioning_error(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)
        ledger.get_latest_blockhash = _refuse

        with pytest.raises(AccountProvisioningError) as exc_info:
            await ops.add_liquidity(*mints, 0, 1000, 0, receipt_nonce=1)

        assert isinstance(exc_info.value, DlmmError)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert ledger.count("add_liquidity") == 0

    async def test_view_raises_ledger_read_error(self, ops, ledger, mints):
        await ops.initialize_pool(*mints)
        ledger.get_account_info = _refuse

        with pytest.raises(LedgerReadError, match="pool"):
            await ops.view_pool_state(*mints)

    async def test_balance_raises_ledger_read_error(self, ops, ledger):
        ledger.get_balance = _refuse

        with pytest.raises(LedgerReadError, match="balance"):
            await ops.show_identity_and_balance()

    async def test_missing_account_stays_not_found(self, ops, mints):
        with pytest.raises(AccountNotFoundError):
            await ops.view_pool_state(*mints)
