"""Story: Buyer checks out two boxes of cookies - all actors succeed (use case-based test)."""

from __future__ import annotations

from decimal import Decimal

import pytest

from refpay.client.checkout import CheckoutFlow
from refpay.client.poller import ConfirmationPoller
from refpay.client.verification import TransferVerifier
from refpay.client.wallet import KeypairWallet
from refpay.crypto.keys import Keypair, PublicKey
from refpay.crypto.transaction import Transaction, build_transfer_transaction
from refpay.domain.entities import CheckoutSession, CheckoutStatus
from tests.fixtures import InMemoryIntentRecorder, InMemoryLedger
from tests.use_cases.helpers import UseCaseMerchantClient


@pytest.mark.asyncio
async def test_buyer_completes_cookie_checkout(
    ledger: InMemoryLedger,
    intent_recorder: InMemoryIntentRecorder,
    merchant_client: UseCaseMerchantClient,
    verifier: TransferVerifier,
    buyer_keypair: Keypair,
    shop_address: PublicKey,
) -> None:
    """
    Story: Buyer checks out {box-of-cookies: 2}.

    Phase1: Buyer connects a wallet; checkout asks the merchant for a transaction
    Phase2: Merchant prices the order at 0.10 and builds a reference-tagged transfer
    Phase3: Wallet signs and broadcasts; poller finds the reference
    Phase4: Verifier checks the settled transfer pays the intent
    """
    ledger.pending_polls = 2
    signed_by_wallet: list[Transaction] = []
    statuses: list[CheckoutStatus] = []

    def on_change(session: CheckoutSession) -> None:
        statuses.append(session.status)

    wallet = KeypairWallet(
        buyer_keypair,
        ledger,
        approve=lambda tx: signed_by_wallet.append(tx) is None,
    )
    flow = CheckoutFlow(
        {"box-of-cookies": 2},
        merchant_client,
        ConfirmationPoller(ledger, interval=0, max_attempts=10),
        verifier=verifier,
        expected_recipient=shop_address,
        on_change=on_change,
    )

    # Phase1
    flow.connect_wallet(wallet)
    session = await flow.run()

    assert session.status is CheckoutStatus.CONFIRMED, session.last_error
    assert statuses == [
        CheckoutStatus.AWAITING_WALLET,
        CheckoutStatus.BUILDING_TRANSACTION,
        CheckoutStatus.AWAITING_SIGNATURE,
        CheckoutStatus.BROADCASTING,
        CheckoutStatus.POLLING,
        CheckoutStatus.CONFIRMED,
    ]

    # Phase2: exactly one transfer of 100,000,000 base units tagged with the reference
    assert len(intent_recorder.intents) == 1
    intent = intent_recorder.intents[0]
    assert intent.amount == Decimal("0.10")
    assert intent.reference == session.reference
    assert intent.fee_payer == buyer_keypair.public_key
    assert intent.recipient == shop_address

    expected = build_transfer_transaction(
        buyer=buyer_keypair.public_key,
        recipient=shop_address,
        lamports=100_000_000,
        reference=session.reference,
        recent_blockhash=intent.validity_anchor.blockhash,
    )
    assert signed_by_wallet == [expected]
    reference_meta = expected.instructions[0].accounts[2]
    assert reference_meta.pubkey == session.reference
    assert not reference_meta.is_signer
    assert not reference_meta.is_writable

    # Phase3: one broadcast, found after the pending polls
    assert len(ledger.sent) == 1
    assert ledger.call_count("find_reference") == 3
    assert session.signature is not None

    # Phase4
    assert ledger.call_count("get_transaction") == 1
    assert session.intent is not None
    assert session.intent.amount == Decimal("0.10")
