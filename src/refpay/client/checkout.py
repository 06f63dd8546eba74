"""Checkout state machine.

One ``CheckoutFlow`` drives one checkout from ``IDLE`` to a terminal state::

    IDLE -> AWAITING_WALLET -> BUILDING_TRANSACTION -> AWAITING_SIGNATURE
         -> BROADCASTING -> POLLING -> CONFIRMED

    BUILDING_TRANSACTION -> FAILED
    AWAITING_SIGNATURE -> FAILED (declined) | BUILDING_TRANSACTION (stale anchor)
    BROADCASTING -> FAILED | BUILDING_TRANSACTION (stale anchor)
    POLLING -> EXPIRED | FAILED
    any non-terminal state -> CANCELLED
    FAILED | EXPIRED | CANCELLED -> IDLE (restart)

Every status change goes through ``_transition``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional, Protocol, TypeVar

from refpay.application.merchant.dtos import BuildTransactionResponseDTO
from refpay.application.shared.pricing import (
    calculate_amount,
    from_base_units,
    to_base_units,
)
from refpay.client.poller import ConfirmationPoller
from refpay.client.submitter import TransactionSubmitter
from refpay.client.verification import TransferVerifier
from refpay.crypto.keys import PublicKey, generate_reference
from refpay.crypto.transaction import Transaction, parse_transfer
from refpay.crypto.wire import deserialize_transaction
from refpay.domain.catalog import DEFAULT_CATALOG, Catalog
from refpay.domain.entities import (
    CheckoutSession,
    CheckoutStatus,
    PaymentIntent,
    ValidityAnchor,
)
from refpay.domain.errors import (
    CheckoutCancelled,
    InvalidTransitionError,
    LedgerUnavailable,
    PollError,
    PollingExpired,
    RefPayError,
    StaleTransaction,
    TransferMismatch,
)
from refpay.domain.shared import SigningAgent

logger = logging.getLogger(__name__)

T = TypeVar("T")

S = CheckoutStatus

ALLOWED_TRANSITIONS: Mapping[CheckoutStatus, frozenset[CheckoutStatus]] = {
    S.IDLE: frozenset({S.AWAITING_WALLET, S.CANCELLED}),
    S.AWAITING_WALLET: frozenset({S.BUILDING_TRANSACTION, S.CANCELLED}),
    S.BUILDING_TRANSACTION: frozenset({S.AWAITING_SIGNATURE, S.FAILED, S.CANCELLED}),
    S.AWAITING_SIGNATURE: frozenset(
        {S.BROADCASTING, S.BUILDING_TRANSACTION, S.FAILED, S.CANCELLED}
    ),
    S.BROADCASTING: frozenset(
        {S.POLLING, S.BUILDING_TRANSACTION, S.FAILED, S.CANCELLED}
    ),
    S.POLLING: frozenset({S.CONFIRMED, S.EXPIRED, S.FAILED, S.CANCELLED}),
    S.CONFIRMED: frozenset(),
    S.FAILED: frozenset({S.IDLE}),
    S.EXPIRED: frozenset({S.IDLE}),
    S.CANCELLED: frozenset({S.IDLE}),
}

DEFAULT_MAX_REBUILDS = 3


class TransactionRequester(Protocol):
    """Whoever builds the transaction: normally the merchant API client."""

    async def request_transaction(
        self,
        selection: Mapping[str, int],
        reference: PublicKey,
        account: PublicKey,
    ) -> BuildTransactionResponseDTO:
        ...


ChangeCallback = Callable[[CheckoutSession], None]


class CheckoutFlow:
    """Drives a single checkout attempt through its states."""

    def __init__(
        self,
        selection: Mapping[str, int],
        requester: TransactionRequester,
        poller: ConfirmationPoller,
        *,
        catalog: Catalog = DEFAULT_CATALOG,
        verifier: Optional[TransferVerifier] = None,
        expected_recipient: Optional[PublicKey] = None,
        reference_factory: Callable[[], PublicKey] = generate_reference,
        max_rebuilds: int = DEFAULT_MAX_REBUILDS,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self.selection = dict(selection)
        self.requester = requester
        self.poller = poller
        self.catalog = catalog
        self.verifier = verifier
        self.expected_recipient = expected_recipient
        self.max_rebuilds = max_rebuilds
        self.on_change = on_change
        self._reference_factory = reference_factory

        self._agent: Optional[SigningAgent] = None
        self._wallet_ready = asyncio.Event()
        self._cancel_requested = asyncio.Event()
        self.session = CheckoutSession(reference=reference_factory())

    # State

    @property
    def status(self) -> CheckoutStatus:
        return self.session.status

    def _transition(
        self, new_status: CheckoutStatus, error: Optional[Exception] = None
    ) -> None:
        current = self.session.status
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot move checkout from {current.value} to {new_status.value}"
            )
        self.session.mark(new_status, error)
        logger.info(
            "Checkout %s: %s -> %s%s",
            self.session.id,
            current.value,
            new_status.value,
            f" ({type(error).__name__}: {error})" if error else "",
        )
        if self.on_change is not None:
            self.on_change(self.session)

    # External events

    def connect_wallet(self, agent: SigningAgent) -> None:
        """Make a signing agent available. Later calls are ignored."""
        if self._agent is not None:
            logger.debug("Wallet already connected; ignoring %s", agent.public_key)
            return
        self._agent = agent
        self._wallet_ready.set()

    def cancel(self) -> None:
        """Stop the checkout wherever it is. Nothing is sent to the ledger."""
        if self.session.status.is_terminal:
            return
        self._cancel_requested.set()

    def restart(self) -> None:
        """Begin a new attempt with a new reference after a failure."""
        self._transition(S.IDLE)
        self._cancel_requested = asyncio.Event()
        self.session = CheckoutSession(reference=self._reference_factory())

    # Driving

    async def _until_cancelled(self, aw: Awaitable[T]) -> T:
        """Await ``aw`` unless :meth:`cancel` is called first."""
        work = asyncio.ensure_future(aw)
        stop = asyncio.ensure_future(self._cancel_requested.wait())
        try:
            await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            stop.cancel()
        if work.done():
            return work.result()
        work.cancel()
        await asyncio.wait({work})
        raise CheckoutCancelled("Checkout cancelled")

    def _record_poll_error(self, error: PollError) -> None:
        self.session.last_error = error
        if self.on_change is not None:
            self.on_change(self.session)

    async def run(self) -> CheckoutSession:
        """Run the attempt to a terminal state and return its session."""
        if self.session.status is not S.IDLE:
            raise InvalidTransitionError(
                f"Checkout already {self.session.status.value}; restart() first"
            )
        try:
            await self._run()
        except CheckoutCancelled as e:
            self._transition(S.CANCELLED, e)
        except asyncio.CancelledError:
            if not self.session.status.is_terminal:
                self._transition(S.CANCELLED, CheckoutCancelled("Task cancelled"))
            raise
        except RefPayError as e:
            self._transition(S.FAILED, e)
        return self.session

    async def _run(self) -> None:
        self._transition(S.AWAITING_WALLET)
        await self._until_cancelled(self._wallet_ready.wait())
        assert self._agent is not None
        submitter = TransactionSubmitter(self._agent)

        self._transition(S.BUILDING_TRANSACTION)
        rebuilds = 0
        while True:
            tx = await self._build(self._agent.public_key)
            self._transition(S.AWAITING_SIGNATURE)
            try:
                handle = await self._until_cancelled(
                    submitter.submit(tx, on_signed=self._mark_broadcasting)
                )
            except StaleTransaction as e:
                if rebuilds >= self.max_rebuilds:
                    raise
                rebuilds += 1
                # A stale attempt's reference and anchor are never reused.
                self.session.reference = self._reference_factory()
                self.session.intent = None
                self._transition(S.BUILDING_TRANSACTION, e)
                continue
            self._mark_broadcasting()
            break

        self.session.signature = handle.signature
        self._transition(S.POLLING)
        await self._poll()

    def _mark_broadcasting(self) -> None:
        # Agents that never call on_signed still pass through BROADCASTING.
        if self.session.status is S.AWAITING_SIGNATURE:
            self._transition(S.BROADCASTING)

    async def _build(self, buyer: PublicKey) -> Transaction:
        reference = self.session.reference
        response = await self._until_cancelled(
            self.requester.request_transaction(self.selection, reference, buyer)
        )
        try:
            tx = deserialize_transaction(response.transaction)
        except ValueError as e:
            raise TransferMismatch(f"Merchant sent a malformed transaction: {e}") from e
        self.session.intent = self._check_transaction(tx, reference, buyer)
        return tx

    def _check_transaction(
        self, tx: Transaction, reference: PublicKey, buyer: PublicKey
    ) -> PaymentIntent:
        """Make sure the merchant built what this checkout asked for."""
        if len(tx.instructions) != 1:
            raise TransferMismatch("Expected exactly one transfer instruction")
        try:
            transfer = parse_transfer(tx.instructions[0])
        except ValueError as e:
            raise TransferMismatch(str(e)) from e
        if reference not in transfer.references:
            raise TransferMismatch("Transaction does not carry this checkout's reference")
        if tx.fee_payer != buyer or transfer.sender != buyer:
            raise TransferMismatch("Transaction is not paid by the connected wallet")
        if tx.signer_keys() != [buyer]:
            raise TransferMismatch("Transaction needs signers other than the connected wallet")
        if (
            self.expected_recipient is not None
            and transfer.recipient != self.expected_recipient
        ):
            raise TransferMismatch("Transaction pays an unexpected recipient")

        expected = calculate_amount(self.selection, self.catalog)
        if transfer.lamports != to_base_units(expected):
            raise TransferMismatch(
                f"Transaction moves {from_base_units(transfer.lamports)}, expected {expected}"
            )
        return PaymentIntent(
            amount=expected,
            recipient=transfer.recipient,
            reference=reference,
            fee_payer=tx.fee_payer,
            validity_anchor=ValidityAnchor(blockhash=tx.recent_blockhash),
        )

    async def _poll(self) -> None:
        try:
            async with self.poller.start(
                self.session.reference, on_error=self._record_poll_error
            ) as handle:
                info = await self._until_cancelled(handle.result())
        except PollingExpired as e:
            self._transition(S.EXPIRED, e)
            return

        if not info.succeeded:
            raise TransferMismatch(f"Transaction {info.signature} failed: {info.err}")
        self.session.signature = info.signature

        if self.verifier is not None and self.session.intent is not None:
            try:
                await self._until_cancelled(
                    self.verifier.verify(info.signature, self.session.intent)
                )
            except LedgerUnavailable as e:
                self._transition(S.EXPIRED, e)
                return
        self._transition(S.CONFIRMED)
