"""Protocol interfaces for the external collaborators of a checkout.

The ledger, the buyer's signing agent and the merchant's intent recorder are
all outside this system. Services accept anything satisfying these protocols,
which keeps them testable with in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol

if TYPE_CHECKING:
    from ...crypto.keys import PublicKey
    from ...crypto.transaction import Transaction
    from ..entities import PaymentIntent, SignatureInfo, ValidityAnchor


class LedgerClientProtocol(Protocol):
    """Read access to the ledger plus raw transaction submission."""

    async def get_latest_blockhash(
        self, commitment: str = "finalized"
    ) -> "ValidityAnchor":
        """Fetch the newest blockhash at the given commitment.

        Raises:
            LedgerUnavailable: On transport or RPC failure.
        """
        ...

    async def get_block_height(self, commitment: str = "confirmed") -> int:
        ...

    async def find_reference(
        self, reference: "PublicKey", commitment: str = "confirmed"
    ) -> "SignatureInfo":
        """Return the oldest transaction that lists ``reference`` among its keys.

        Raises:
            ReferenceNotFound: No such transaction yet.
            LedgerUnavailable: On transport or RPC failure.
        """
        ...

    async def get_transaction(
        self, signature: str, commitment: str = "confirmed"
    ) -> Optional[dict[str, Any]]:
        """Fetch a settled transaction in JSON encoding, or None if unknown."""
        ...

    async def send_transaction(self, wire_b64: str) -> str:
        """Broadcast a signed transaction and return its signature.

        Raises:
            StaleTransaction: The blockhash is no longer accepted.
            LedgerUnavailable: On any other failure.
        """
        ...


class SigningAgent(Protocol):
    """The buyer's wallet."""

    @property
    def public_key(self) -> "PublicKey":
        ...

    async def sign_and_send(
        self, tx: "Transaction", *, on_signed: Optional[Callable[[], None]] = None
    ) -> str:
        """Sign and broadcast ``tx``, returning the transaction signature.

        ``on_signed`` is called once the user has approved and the
        transaction is signed, right before it is sent.

        Raises:
            UserRejected: The user declined.
            StaleTransaction: The validity anchor expired while waiting.
        """
        ...


class IntentRecorder(Protocol):
    """Where the merchant would persist an intent at build time."""

    async def record(self, intent: "PaymentIntent") -> None:
        ...
