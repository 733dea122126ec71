"""Custom exceptions for the yield-sensitive DLMM SDK."""

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .negotiator import InvocationAttempt


class DlmmError(Exception):
    """Base exception for all DLMM SDK errors."""

    pass


class RuntimeResolutionError(DlmmError):
    """Raised when no usable runtime environment can be discovered."""

    def __init__(self, message: str):
        super().__init__(f"Cannot resolve runtime environment: {message}")


class AddressDerivationExhausted(DlmmError):
    """Raised when no bump in 255..0 yields an off-curve address.

    Indicates malformed seeds rather than a transient condition; never retried.
    """

    def __init__(self, seeds: Sequence[bytes], program_id: object):
        self.seeds = list(seeds)
        self.program_id = program_id
        super().__init__(
            f"No viable bump seed for seeds {self.seeds!r} under program {program_id}"
        )


class AccountProvisioningError(DlmmError):
    """Raised when a holding account could not be created (and does not exist)."""

    def __init__(self, address: object, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Failed to provision holding account {address}: {reason}")


class InvocationExhausted(DlmmError):
    """Raised when every method/mapping combination was absent or failed."""

    def __init__(
        self,
        attempts: Sequence["InvocationAttempt"],
        last_error: Optional[BaseException] = None,
    ):
        self.attempts = list(attempts)
        self.last_error = last_error
        tried = ", ".join(a.describe() for a in self.attempts) or "none"
        super().__init__(
            f"All invocation attempts failed (tried: {tried}); last error: {last_error}"
        )


class InvocationCancelledError(DlmmError):
    """Raised when negotiation is cancelled before starting the next attempt."""

    def __init__(self, attempts: Sequence["InvocationAttempt"]):
        self.attempts = list(attempts)
        super().__init__(
            f"Invocation cancelled after {len(self.attempts)} attempt(s)"
        )


class ConfirmationTimeoutError(DlmmError):
    """Raised when a submitted transaction's landing could not be confirmed.

    The outcome is ambiguous: the transaction may still land. Query ledger
    state before retrying.
    """

    def __init__(
        self,
        signature: object,
        timeout_secs: float,
        attempts: Optional[Sequence["InvocationAttempt"]] = None,
    ):
        self.signature = signature
        self.timeout_secs = timeout_secs
        self.attempts = list(attempts) if attempts is not None else []
        super().__init__(
            f"Transaction {signature} not confirmed after {timeout_secs:.1f}s "
            "(outcome unknown)"
        )


class TransactionFailedError(DlmmError):
    """Raised when a transaction was rejected or landed with an error."""

    def __init__(self, message: str, signature: object = None):
        self.signature = signature
        super().__init__(f"Transaction failed: {message}")


class AccountMappingError(DlmmError):
    """Raised when an account mapping lacks a role the entry point requires."""

    def __init__(self, method: str, missing: Sequence[str]):
        self.method = method
        self.missing = list(missing)
        super().__init__(
            f"Account mapping for {method} is missing roles: {', '.join(self.missing)}"
        )


class AccountNotFoundError(DlmmError):
    """Raised when an account is not found on-chain."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Account not found: {address}")


class InvalidDiscriminatorError(DlmmError):
    """Raised when account data has an invalid discriminator."""

    def __init__(self, expected: bytes, actual: bytes):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invalid discriminator: expected {expected!r}, got {actual!r}"
        )


class InvalidAccountDataError(DlmmError):
    """Raised when account data cannot be deserialized."""

    def __init__(self, message: str):
        super().__init__(f"Invalid account data: {message}")


class LedgerReadError(DlmmError):
    """Raised when reading ledger state failed after retries."""

    def __init__(self, what: str, reason: str):
        self.what = what
        self.reason = reason
        super().__init__(f"Failed to read {what}: {reason}")


class ConfigError(DlmmError):
    """Raised when client configuration is invalid."""

    def __init__(self, message: str):
        super().__init__(f"Invalid configuration: {message}")
