"""Story: Buyer declines in the wallet - nothing is broadcast (use case-based test)."""

from __future__ import annotations

import pytest

from refpay.client.checkout import CheckoutFlow
from refpay.client.poller import ConfirmationPoller
from refpay.client.wallet import KeypairWallet
from refpay.crypto.keys import Keypair
from refpay.domain.entities import CheckoutStatus
from refpay.domain.errors import UserRejected
from tests.fixtures import InMemoryLedger
from tests.use_cases.helpers import UseCaseMerchantClient


@pytest.mark.asyncio
async def test_buyer_rejects_signature(
    ledger: InMemoryLedger,
    merchant_client: UseCaseMerchantClient,
    buyer_keypair: Keypair,
    poller: ConfirmationPoller,
) -> None:
    """
    Story: The wallet prompt is declined.

    The checkout fails with UserRejected and the ledger never sees a broadcast
    or a poll.
    """
    flow = CheckoutFlow({"box-of-cookies": 3}, merchant_client, poller)
    flow.connect_wallet(KeypairWallet(buyer_keypair, ledger, approve=lambda tx: False))

    session = await flow.run()

    assert session.status is CheckoutStatus.FAILED
    assert isinstance(session.last_error, UserRejected)
    assert str(session.last_error) == "User rejected the request"
    assert ledger.call_count("send_transaction") == 0
    assert ledger.call_count("find_reference") == 0
