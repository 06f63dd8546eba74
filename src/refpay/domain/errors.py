"""Domain-specific exceptions for the checkout protocol."""

from __future__ import annotations

from typing import Any, Optional


class RefPayError(Exception):
    """Base class for every error raised by the checkout protocol."""


# Validation: reported immediately, never retried.


class PaymentValidationError(RefPayError, ValueError):
    """Raised when a checkout request is malformed."""


class InvalidSelection(PaymentValidationError):
    """Raised when a product selection names an unknown product or a bad quantity."""


class ZeroAmount(PaymentValidationError):
    """Raised when the selection totals exactly zero."""


class MissingReference(PaymentValidationError):
    """Raised when the reference key is absent or not a valid public key."""


class MissingAccount(PaymentValidationError):
    """Raised when the buyer account is absent or not a valid public key."""


class InexactAmount(PaymentValidationError):
    """Raised when an amount is not a whole number of base units."""


class TransactionRejected(PaymentValidationError):
    """Raised on the client when the merchant answers a build request with 400."""


# Ledger and transport: transient.


class LedgerUnavailable(RefPayError):
    """Raised when the ledger cannot be reached or answers with garbage."""


class LedgerRPCError(LedgerUnavailable):
    """Raised when the ledger answers with a JSON-RPC error object."""

    def __init__(
        self, message: str, code: Optional[int] = None, data: Any = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class PollError(LedgerUnavailable):
    """A failed poll tick. Surfaced to observers, polling keeps going."""


class ReferenceNotFound(RefPayError):
    """No settled transaction carries the reference yet.

    Not a subclass of LedgerUnavailable: this is the poller's steady state.
    """


class TransactionRequestFailed(RefPayError):
    """Raised on the client when the merchant could not build a transaction."""


# Signing and settlement.


class UserRejected(RefPayError):
    """The signing agent declined to sign. Terminal for the attempt."""


class StaleTransaction(RefPayError):
    """The validity anchor expired before broadcast. Recover by rebuilding."""


class PollingExpired(RefPayError):
    """The poller exhausted its attempt or wall-clock budget."""


class TransferMismatch(RefPayError):
    """The settled transaction does not match the intent it was built for."""


class CheckoutCancelled(RefPayError):
    """The checkout was cancelled before reaching a terminal state."""


class InvalidTransitionError(RefPayError):
    """Raised when the checkout state machine is asked for an illegal move."""
