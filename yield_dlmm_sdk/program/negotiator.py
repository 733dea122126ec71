"""Invocation negotiation across entry point and account naming variants.

A deployed program may expose `initialize_pool` with `vault_a` or
`initializePool` with `vaultA`. `invoke` tries method candidates (outer)
against account mapping candidates (inner) strictly in order and stops at
the first success. With a matching interface description the preferred
variant is tried first and the others are a bounded fallback.

Submission is at-most-once per logical call: a variant that builds the
same instruction as an earlier attempt is skipped, and an attempt whose
outcome is ambiguous (confirmation timed out) halts negotiation instead of
moving on to another variant.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import (
    AccountMappingError,
    ConfirmationTimeoutError,
    InvocationCancelledError,
    InvocationExhausted,
)
from .interface import ProgramHandle

logger = logging.getLogger(__name__)

EffectProbe = Callable[[], Awaitable[bool]]


class AttemptOutcome(Enum):
    """Result of one (method, mapping) attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABSENT = "absent"  # method not exposed; not a failure
    REJECTED = "rejected"  # mapping lacked a required role; nothing submitted
    DUPLICATE = "duplicate"  # same instruction as an earlier attempt; nothing submitted


@dataclass(frozen=True)
class InvocationAttempt:
    """Diagnostic record of one negotiation attempt."""

    method: str
    accounts: Mapping[str, Optional[Pubkey]] = field(default_factory=dict)
    outcome: AttemptOutcome = AttemptOutcome.FAILED
    error: Optional[BaseException] = None
    signature: Optional[Signature] = None

    def describe(self) -> str:
        roles = list(self.accounts)
        shown = ",".join(roles[:3]) + (",..." if len(roles) > 3 else "")
        return f"{self.method}[{shown}] {self.outcome.value}"


@dataclass(frozen=True)
class InvocationResult:
    """Confirmed signature plus the attempt trail that led to it."""

    signature: Signature
    attempts: List[InvocationAttempt]


def _check_cancelled(
    cancel_event: Optional[asyncio.Event], attempts: List[InvocationAttempt]
) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise InvocationCancelledError(attempts)


def _instruction_key(instruction: Instruction) -> Tuple[Any, ...]:
    return (
        bytes(instruction.data),
        tuple((m.pubkey, m.is_signer, m.is_writable) for m in instruction.accounts),
    )


async def _probe(effect_probe: EffectProbe, method: str) -> bool:
    try:
        return await effect_probe()
    except Exception as e:
        logger.warning(f"Could not check whether {method} took effect: {e}")
        return False


async def _settle(task: "asyncio.Future[Signature]") -> Optional[BaseException]:
    """Wait for an in-flight submission and return its error, if any."""
    try:
        await task
    except Exception as e:
        return e
    return None


async def invoke(
    handle: ProgramHandle,
    method_candidates: Sequence[str],
    args: Sequence[Any],
    account_candidates: Sequence[Mapping[str, Optional[Pubkey]]],
    *,
    signers: Sequence[Keypair] = (),
    cancel_event: Optional[asyncio.Event] = None,
    effect_probe: Optional[EffectProbe] = None,
) -> InvocationResult:
    """Invoke the first (method, mapping) variant the program accepts.

    Args:
        handle: Remote program handle
        method_candidates: Entry point names for the same logical operation
        args: Positional instruction arguments
        account_candidates: Account mappings for the same logical account set
        signers: Extra signers besides the handle's signer
        cancel_event: When set, no further attempt is started
        effect_probe: Checks whether the operation's effect is on-chain; used
            to settle a timed-out confirmation

    Returns:
        InvocationResult with the confirmed signature

    Raises:
        InvocationExhausted: If every variant was absent, rejected or failed
        ConfirmationTimeoutError: If an attempt's outcome stayed unknown
        InvocationCancelledError: If cancel_event was set between attempts
    """
    attempts: List[InvocationAttempt] = []
    last_error: Optional[BaseException] = None
    built: Set[Tuple[Any, ...]] = set()

    for method in method_candidates:
        _check_cancelled(cancel_event, attempts)

        entry_point = handle.resolve(method)
        if entry_point is None:
            logger.debug(f"Entry point {method} not exposed by program {handle.program_id}")
            attempts.append(InvocationAttempt(method=method, outcome=AttemptOutcome.ABSENT))
            continue

        for mapping in account_candidates:
            _check_cancelled(cancel_event, attempts)

            missing = entry_point.missing_roles(mapping)
            if missing:
                error = AccountMappingError(method, missing)
                logger.debug(f"{error}")
                attempts.append(
                    InvocationAttempt(
                        method=method,
                        accounts=mapping,
                        outcome=AttemptOutcome.REJECTED,
                        error=error,
                    )
                )
                if last_error is None:
                    last_error = error
                continue

            try:
                instruction = entry_point.build(
                    handle.program_id, args, mapping, {s.pubkey() for s in signers}
                )
            except ValueError as e:
                attempts.append(
                    InvocationAttempt(
                        method=method, accounts=mapping, outcome=AttemptOutcome.FAILED, error=e
                    )
                )
                last_error = e
                continue

            key = _instruction_key(instruction)
            if key in built:
                logger.debug(f"Skipping {method}: instruction identical to an earlier attempt")
                attempts.append(
                    InvocationAttempt(
                        method=method, accounts=mapping, outcome=AttemptOutcome.DUPLICATE
                    )
                )
                continue
            built.add(key)

            logger.debug(f"Attempting {method} with roles {sorted(mapping)}")
            task = asyncio.ensure_future(handle.send([instruction], signers))
            try:
                signature = await asyncio.shield(task)
            except asyncio.CancelledError:
                # Learn the submitted transaction's outcome before propagating
                error = await _settle(task)
                attempts.append(
                    InvocationAttempt(
                        method=method,
                        accounts=mapping,
                        outcome=AttemptOutcome.FAILED if error else AttemptOutcome.SUCCEEDED,
                        error=error,
                        signature=None if error else task.result(),
                    )
                )
                logger.info(f"Invocation of {method} cancelled after in-flight attempt settled")
                raise
            except ConfirmationTimeoutError as e:
                attempts.append(
                    InvocationAttempt(
                        method=method,
                        accounts=mapping,
                        outcome=AttemptOutcome.FAILED,
                        error=e,
                        signature=e.signature,
                    )
                )
                if effect_probe is not None and await _probe(effect_probe, method):
                    logger.info(f"{method} confirmation timed out but its effect is on-chain")
                    return InvocationResult(signature=e.signature, attempts=attempts)
                raise ConfirmationTimeoutError(e.signature, e.timeout_secs, attempts) from e
            except Exception as e:
                logger.debug(f"Attempt {method} failed: {e}")
                attempts.append(
                    InvocationAttempt(
                        method=method, accounts=mapping, outcome=AttemptOutcome.FAILED, error=e
                    )
                )
                last_error = e
                continue

            attempts.append(
                InvocationAttempt(
                    method=method,
                    accounts=mapping,
                    outcome=AttemptOutcome.SUCCEEDED,
                    signature=signature,
                )
            )
            logger.info(f"Invoked {method}: {signature}")
            return InvocationResult(signature=signature, attempts=attempts)

    raise InvocationExhausted(attempts, last_error)
