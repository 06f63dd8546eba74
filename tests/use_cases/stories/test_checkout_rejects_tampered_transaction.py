"""Story: The transaction handed to the buyer does not match the order (use case-based test)."""

from __future__ import annotations

from decimal import Decimal

import pytest

from refpay.application.merchant.dtos import BuildTransactionResponseDTO
from refpay.application.merchant.use_cases.transaction import TransactionService
from refpay.client.checkout import CheckoutFlow
from refpay.client.poller import ConfirmationPoller
from refpay.client.verification import TransferVerifier
from refpay.client.wallet import KeypairWallet
from refpay.crypto.keys import PublicKey, generate_reference
from refpay.crypto.transaction import build_transfer_transaction
from refpay.crypto.wire import serialize_transaction
from refpay.domain.catalog import Catalog
from refpay.domain.entities import CheckoutStatus, Product
from refpay.domain.errors import TransferMismatch
from tests.fixtures import InMemoryIntentRecorder, InMemoryLedger
from tests.use_cases.helpers import UseCaseMerchantClient


class OverchargingMerchant:
    """Builds the transfer from its own, more expensive catalog."""

    def __init__(self, ledger: InMemoryLedger, shop_address: PublicKey) -> None:
        catalog = Catalog(
            [Product(id="box-of-cookies", name="Box", price=Decimal("0.5"))]
        )
        self.client = UseCaseMerchantClient(
            TransactionService(ledger, catalog, shop_address, InMemoryIntentRecorder())
        )

    async def request_transaction(self, selection, reference, account):
        return await self.client.request_transaction(selection, reference, account)


class ReferenceDroppingMerchant:
    """Builds a correct transfer tagged with some other reference."""

    def __init__(self, ledger: InMemoryLedger, shop_address: PublicKey) -> None:
        self.ledger = ledger
        self.shop_address = shop_address

    async def request_transaction(self, selection, reference, account):
        anchor = await self.ledger.get_latest_blockhash()
        tx = build_transfer_transaction(
            buyer=account,
            recipient=self.shop_address,
            lamports=50_000_000,
            reference=generate_reference(),
            recent_blockhash=anchor.blockhash,
        )
        return BuildTransactionResponseDTO(
            transaction=serialize_transaction(tx), message="ok"
        )


@pytest.mark.asyncio
async def test_overcharge_is_refused_before_signing(
    ledger: InMemoryLedger,
    wallet: KeypairWallet,
    poller: ConfirmationPoller,
    shop_address: PublicKey,
) -> None:
    """Story: The merchant asks for more than the buyer's catalog says."""
    flow = CheckoutFlow(
        {"box-of-cookies": 1}, OverchargingMerchant(ledger, shop_address), poller
    )
    flow.connect_wallet(wallet)

    session = await flow.run()

    assert session.status is CheckoutStatus.FAILED
    assert isinstance(session.last_error, TransferMismatch)
    assert ledger.call_count("send_transaction") == 0


@pytest.mark.asyncio
async def test_missing_reference_is_refused_before_signing(
    ledger: InMemoryLedger,
    wallet: KeypairWallet,
    poller: ConfirmationPoller,
    shop_address: PublicKey,
) -> None:
    """Story: The transaction would be unfindable by this checkout's reference."""
    flow = CheckoutFlow(
        {"box-of-cookies": 1}, ReferenceDroppingMerchant(ledger, shop_address), poller
    )
    flow.connect_wallet(wallet)

    session = await flow.run()

    assert session.status is CheckoutStatus.FAILED
    assert "reference" in str(session.last_error)
    assert ledger.call_count("send_transaction") == 0


@pytest.mark.asyncio
async def test_unexpected_recipient_is_refused(
    ledger: InMemoryLedger,
    merchant_client: UseCaseMerchantClient,
    wallet: KeypairWallet,
    poller: ConfirmationPoller,
) -> None:
    """Story: The buyer expects to pay a different shop."""
    flow = CheckoutFlow(
        {"box-of-cookies": 1},
        merchant_client,
        poller,
        expected_recipient=generate_reference(),
    )
    flow.connect_wallet(wallet)

    session = await flow.run()

    assert session.status is CheckoutStatus.FAILED
    assert isinstance(session.last_error, TransferMismatch)


@pytest.mark.asyncio
async def test_failed_settlement_fails_verification(
    ledger: InMemoryLedger,
    merchant_client: UseCaseMerchantClient,
    wallet: KeypairWallet,
    poller: ConfirmationPoller,
) -> None:
    """Story: The reference is found but the settled transfer errored on ledger."""

    class ErroredLedger(InMemoryLedger):
        async def get_transaction(self, signature, commitment="confirmed"):
            tx_json = await ledger.get_transaction(signature, commitment)
            tx_json["meta"]["err"] = {"InstructionError": [0, {"Custom": 1}]}
            return tx_json

    flow = CheckoutFlow(
        {"box-of-cookies": 1},
        merchant_client,
        poller,
        verifier=TransferVerifier(ErroredLedger(), attempts=1, interval=0),
    )
    flow.connect_wallet(wallet)

    session = await flow.run()

    assert session.status is CheckoutStatus.FAILED
    assert isinstance(session.last_error, TransferMismatch)
    assert "failed on ledger" in str(session.last_error)
