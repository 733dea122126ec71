"""High-level operations against the yield-sensitive DLMM program.

Each mutating operation derives the addresses it needs, provisions the
signer's holding accounts where the entry point moves tokens, and hands
the call to the invocation negotiator with snake_case and camelCase
variants (the program interface's own convention first).

Example:
    ```python
    env = await resolve_runtime(config=ClientConfig.from_env())
    ops = DlmmOperations(env)

    await ops.initialize_pool(mint_a, mint_b)
    pool = await ops.view_pool_state(mint_a, mint_b)
    print(pool.version)
    ```
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, TypeVar, Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .program.errors import DlmmError, LedgerReadError
from .program.instructions import (
    initialize_pool_accounts,
    liquidity_accounts,
    order_accounts,
    orderbook_accounts,
    post_yields_accounts,
)
from .program.negotiator import EffectProbe, invoke
from .program.pda import get_orderbook_pda, get_pool_pda, get_position_pda
from .program.tokens import ensure_holding_account
from .program.types import (
    AddressOnly,
    IdentityBalance,
    InitPoolParams,
    OrderBook,
    Pool,
    Position,
    Side,
    TifParam,
)
from .retry import with_retry
from .runtime import RuntimeEnvironment

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DlmmOperations:
    """Domain operations bound to one runtime environment."""

    def __init__(self, env: RuntimeEnvironment):
        self.env = env
        self.program = env.program

    @property
    def signer(self) -> Keypair:
        return self.env.signer

    @property
    def program_id(self) -> Pubkey:
        return self.program.program_id

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    async def _invoke(
        self,
        snake_name: str,
        args: Sequence[Any],
        snake_mapping: Dict[str, Optional[Pubkey]],
        signers: Sequence[Keypair] = (),
        cancel_event: Optional[asyncio.Event] = None,
        effect_probe: Optional[EffectProbe] = None,
    ) -> Signature:
        result = await invoke(
            self.program,
            self.program.preferred_methods(snake_name),
            args,
            self.program.preferred_mappings(snake_mapping),
            signers=[self.signer, *signers],
            cancel_event=cancel_event,
            effect_probe=effect_probe,
        )
        return result.signature

    async def _ensure_holding_accounts(self, *mints: Pubkey) -> None:
        for mint in mints:
            await ensure_holding_account(
                self.env.connection,
                self.signer,
                mint,
                commitment=self.program.commitment,
                timeout_secs=self.program.confirm_timeout_secs,
                poll_interval_secs=self.program.poll_interval_secs,
                retry_config=self.program.retry_config,
            )

    async def _read(self, what: str, fetch: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fetch()
        except DlmmError:
            raise
        except Exception as e:
            raise LedgerReadError(what, f"{type(e).__name__}: {e}") from e

    async def _exists(self, address: Pubkey) -> bool:
        data = await self._read(str(address), lambda: self.program.get_account_data(address))
        return data is not None

    async def _position_shares(self, position: Pubkey) -> int:
        state = await self._read(
            f"position {position}", lambda: self.program.fetch_nullable("position", position)
        )
        return 0 if state is None else state.shares

    # =========================================================================
    # Mutating Operations
    # =========================================================================

    async def initialize_pool(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        params: Optional[InitPoolParams] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Create the pool, its vaults and its treasuries for a mint pair.

        Without params the signer becomes sole admin, every scoped admin and
        the updater.
        """
        me = self.signer.pubkey()
        if params is None:
            params = InitPoolParams(
                admins=[me], risk_admin=me, ops_admin=me, fee_admin=me, updater=me
            )
        pool, _ = get_pool_pda(mint_a, mint_b, self.program_id)

        async def pool_exists() -> bool:
            return await self._exists(pool)

        signature = await self._invoke(
            "initialize_pool",
            [params],
            initialize_pool_accounts(me, mint_a, mint_b, self.program_id),
            cancel_event=cancel_event,
            effect_probe=pool_exists,
        )
        logger.info(f"Initialized pool {pool}: {signature}")
        return signature

    async def post_yields_and_update(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        y_a_bps: int,
        y_b_bps: int,
        spot_price_1e6: int,
        cu_price: int,
        oracle_signer: Optional[Keypair] = None,
        metrics: Optional[Pubkey] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Post fresh yields and spot price and let the pool recenter its bands.

        The caller must be the pool's updater or an admin; the update bounty
        is paid to the caller's holding accounts, which are created if absent.
        """
        await self._ensure_holding_accounts(mint_a, mint_b)
        mapping = post_yields_accounts(
            self.signer.pubkey(),
            mint_a,
            mint_b,
            oracle_signer.pubkey() if oracle_signer else None,
            metrics,
            self.program_id,
        )
        return await self._invoke(
            "post_yields_and_update",
            [y_a_bps, y_b_bps, spot_price_1e6, cu_price],
            mapping,
            signers=[oracle_signer] if oracle_signer else (),
            cancel_event=cancel_event,
        )

    async def add_liquidity(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        band_idx: int,
        amount_a: int,
        amount_b: int,
        receipt_nonce: int,
        min_unlock_after_slots: int = 0,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Deposit into a band, minting shares on the position for receipt_nonce."""
        await self._ensure_holding_accounts(mint_a, mint_b)
        mapping = liquidity_accounts(
            self.signer.pubkey(), mint_a, mint_b, receipt_nonce, self.program_id
        )
        position = mapping["position"]
        shares_before = await self._position_shares(position)

        async def shares_grew() -> bool:
            return await self._position_shares(position) > shares_before

        return await self._invoke(
            "add_liquidity",
            [band_idx, amount_a, amount_b, receipt_nonce, min_unlock_after_slots],
            mapping,
            cancel_event=cancel_event,
            effect_probe=shares_grew,
        )

    async def remove_liquidity(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        receipt_nonce: int,
        shares_to_burn: int,
        close_position: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Burn position shares and withdraw the underlying reserves."""
        await self._ensure_holding_accounts(mint_a, mint_b)
        return await self._invoke(
            "remove_liquidity",
            [shares_to_burn, close_position],
            liquidity_accounts(self.signer.pubkey(), mint_a, mint_b, receipt_nonce, self.program_id),
            cancel_event=cancel_event,
        )

    async def collect_fees(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        receipt_nonce: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Claim fees accrued by a position."""
        await self._ensure_holding_accounts(mint_a, mint_b)
        return await self._invoke(
            "collect_fees",
            [],
            liquidity_accounts(self.signer.pubkey(), mint_a, mint_b, receipt_nonce, self.program_id),
            cancel_event=cancel_event,
        )

    async def init_orderbook(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        tick_1e6: int,
        max_levels: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Create the pool's orderbook account."""
        mapping = orderbook_accounts(self.signer.pubkey(), mint_a, mint_b, self.program_id)
        orderbook = mapping["orderbook"]

        async def orderbook_exists() -> bool:
            return await self._exists(orderbook)

        return await self._invoke(
            "init_orderbook",
            [tick_1e6, max_levels],
            mapping,
            cancel_event=cancel_event,
            effect_probe=orderbook_exists,
        )

    async def place_order(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        side: Side,
        qty: int,
        limit_price_1e6: Optional[int] = None,
        tif: Optional[TifParam] = None,
        post_only: bool = False,
        reduce_only: bool = False,
        client_id: int = 0,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Place an order on the pool's orderbook (good-til-cancelled by default)."""
        return await self._invoke(
            "place_order",
            [side, qty, limit_price_1e6, tif or TifParam.gtc(), post_only, reduce_only, client_id],
            order_accounts(self.signer.pubkey(), mint_a, mint_b, self.program_id),
            cancel_event=cancel_event,
        )

    async def cancel_order(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        side: Side,
        order_id: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Signature:
        """Cancel a resting order."""
        return await self._invoke(
            "cancel_order",
            [side, order_id],
            order_accounts(self.signer.pubkey(), mint_a, mint_b, self.program_id),
            cancel_event=cancel_event,
        )

    # =========================================================================
    # Read-only Operations
    # =========================================================================

    async def _view(self, account_name: str, address: Pubkey) -> Any:
        if account_name not in self.program.account_decoders:
            logger.warning(
                f"Program handle has no typed decoder for {account_name}; returning address only"
            )
            return AddressOnly(pda=address)
        return await self._read(
            f"{account_name} {address}", lambda: self.program.fetch(account_name, address)
        )

    async def view_pool_state(self, mint_a: Pubkey, mint_b: Pubkey) -> Union[Pool, AddressOnly]:
        """Fetch decoded pool state, or just its address without a decoder."""
        pool, _ = get_pool_pda(mint_a, mint_b, self.program_id)
        return await self._view("pool", pool)

    async def view_position(
        self,
        mint_a: Pubkey,
        mint_b: Pubkey,
        receipt_nonce: int,
        owner: Optional[Pubkey] = None,
    ) -> Union[Position, AddressOnly]:
        """Fetch a decoded position (defaults to the signer's)."""
        pool, _ = get_pool_pda(mint_a, mint_b, self.program_id)
        position, _ = get_position_pda(
            pool, owner or self.signer.pubkey(), receipt_nonce, self.program_id
        )
        return await self._view("position", position)

    async def view_orderbook(self, mint_a: Pubkey, mint_b: Pubkey) -> Union[OrderBook, AddressOnly]:
        """Fetch the decoded orderbook of a pool."""
        pool, _ = get_pool_pda(mint_a, mint_b, self.program_id)
        orderbook, _ = get_orderbook_pda(pool, self.program_id)
        return await self._view("order_book", orderbook)

    async def show_identity_and_balance(self) -> IdentityBalance:
        """Signer address and lamport balance."""
        address = self.signer.pubkey()

        async def _fetch():
            response = await self.env.connection.get_balance(address)
            return response.value

        lamports = await self._read(
            f"balance of {address}",
            lambda: with_retry(_fetch, self.program.retry_config, f"get_balance({address})"),
        )
        identity = IdentityBalance(address=address, lamports=lamports)
        logger.info(f"Address: {address} Balance: {identity.sol} SOL")
        return identity


# ============================================================================
# Module-level functions
# ============================================================================


async def initialize_pool(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.initialize_pool."""
    return await DlmmOperations(env).initialize_pool(*args, **kwargs)


async def post_yields_and_update(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.post_yields_and_update."""
    return await DlmmOperations(env).post_yields_and_update(*args, **kwargs)


async def add_liquidity(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.add_liquidity."""
    return await DlmmOperations(env).add_liquidity(*args, **kwargs)


async def remove_liquidity(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.remove_liquidity."""
    return await DlmmOperations(env).remove_liquidity(*args, **kwargs)


async def collect_fees(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.collect_fees."""
    return await DlmmOperations(env).collect_fees(*args, **kwargs)


async def init_orderbook(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.init_orderbook."""
    return await DlmmOperations(env).init_orderbook(*args, **kwargs)


async def place_order(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.place_order."""
    return await DlmmOperations(env).place_order(*args, **kwargs)


async def cancel_order(env: RuntimeEnvironment, *args, **kwargs) -> Signature:
    """See DlmmOperations.cancel_order."""
    return await DlmmOperations(env).cancel_order(*args, **kwargs)


async def view_pool_state(
    env: RuntimeEnvironment, mint_a: Pubkey, mint_b: Pubkey
) -> Union[Pool, AddressOnly]:
    """See DlmmOperations.view_pool_state."""
    return await DlmmOperations(env).view_pool_state(mint_a, mint_b)


async def view_position(env: RuntimeEnvironment, *args, **kwargs) -> Union[Position, AddressOnly]:
    """See DlmmOperations.view_position."""
    return await DlmmOperations(env).view_position(*args, **kwargs)


async def view_orderbook(
    env: RuntimeEnvironment, mint_a: Pubkey, mint_b: Pubkey
) -> Union[OrderBook, AddressOnly]:
    """See DlmmOperations.view_orderbook."""
    return await DlmmOperations(env).view_orderbook(mint_a, mint_b)


async def show_identity_and_balance(env: RuntimeEnvironment) -> IdentityBalance:
    """See DlmmOperations.show_identity_and_balance."""
    return await DlmmOperations(env).show_identity_and_balance()
