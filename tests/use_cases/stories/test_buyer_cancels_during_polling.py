"""Story: Buyer cancels while the checkout waits for confirmation (use case-based test)."""

from __future__ import annotations

import asyncio

import pytest

from refpay.client.checkout import CheckoutFlow
from refpay.client.poller import ConfirmationPoller
from refpay.client.wallet import KeypairWallet
from refpay.domain.entities import CheckoutStatus
from refpay.domain.errors import CheckoutCancelled
from tests.fixtures import InMemoryLedger
from tests.use_cases.helpers import UseCaseMerchantClient


@pytest.mark.asyncio
async def test_buyer_cancels_during_polling(
    ledger: InMemoryLedger,
    merchant_client: UseCaseMerchantClient,
    wallet: KeypairWallet,
) -> None:
    """
    Story: The transaction is broadcast but never shows up; the buyer gives up.

    Cancelling stops the poll timer: no ledger lookups happen afterwards.
    """
    ledger.pending_polls = 10_000
    polling = asyncio.Event()

    def on_change(session) -> None:
        if session.status is CheckoutStatus.POLLING:
            polling.set()

    flow = CheckoutFlow(
        {"basket-of-cookies": 1},
        merchant_client,
        ConfirmationPoller(ledger, interval=0.01),
        on_change=on_change,
    )
    flow.connect_wallet(wallet)
    task = asyncio.create_task(flow.run())

    await asyncio.wait_for(polling.wait(), timeout=5)
    await asyncio.sleep(0.05)
    assert ledger.call_count("find_reference") > 0

    flow.cancel()
    session = await asyncio.wait_for(task, timeout=5)

    assert session.status is CheckoutStatus.CANCELLED
    assert isinstance(session.last_error, CheckoutCancelled)

    calls_after_cancel = ledger.call_count("find_reference")
    await asyncio.sleep(0.05)
    assert ledger.call_count("find_reference") == calls_after_cancel


@pytest.mark.asyncio
async def test_cancel_after_confirmation_is_ignored(
    ledger: InMemoryLedger,
    merchant_client: UseCaseMerchantClient,
    wallet: KeypairWallet,
    poller: ConfirmationPoller,
) -> None:
    """Story: A late cancel does not undo a confirmed checkout."""
    flow = CheckoutFlow({"box-of-cookies": 1}, merchant_client, poller)
    flow.connect_wallet(wallet)

    session = await flow.run()
    flow.cancel()

    assert session.status is CheckoutStatus.CONFIRMED
    assert flow.status is CheckoutStatus.CONFIRMED
