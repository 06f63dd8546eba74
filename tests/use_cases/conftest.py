"""Pytest fixtures for use case tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest

from refpay.application.merchant.use_cases.transaction import TransactionService
from refpay.client.poller import ConfirmationPoller
from refpay.client.verification import TransferVerifier
from refpay.client.wallet import KeypairWallet
from refpay.crypto.keys import Keypair, PublicKey
from refpay.domain.catalog import DEFAULT_CATALOG
from tests.fixtures import InMemoryIntentRecorder, InMemoryLedger
from tests.use_cases.helpers import UseCaseMerchantClient


@pytest.fixture
async def ledger() -> AsyncGenerator[InMemoryLedger, None]:
    """Create an in-memory ledger."""
    yield InMemoryLedger()


@pytest.fixture
async def intent_recorder() -> AsyncGenerator[InMemoryIntentRecorder, None]:
    recorder = InMemoryIntentRecorder()
    yield recorder
    recorder.clear()


@pytest.fixture
def transaction_service(
    ledger: InMemoryLedger,
    intent_recorder: InMemoryIntentRecorder,
    shop_address: PublicKey,
) -> TransactionService:
    return TransactionService(
        ledger=ledger,
        catalog=DEFAULT_CATALOG,
        shop_address=shop_address,
        intent_recorder=intent_recorder,
    )


@pytest.fixture
def merchant_client(transaction_service: TransactionService) -> UseCaseMerchantClient:
    return UseCaseMerchantClient(transaction_service)


@pytest.fixture
def poller(ledger: InMemoryLedger) -> ConfirmationPoller:
    """Poller that does not wait between ticks and gives up after 50."""
    return ConfirmationPoller(ledger, interval=0, max_attempts=50)


@pytest.fixture
def verifier(ledger: InMemoryLedger) -> TransferVerifier:
    return TransferVerifier(ledger, attempts=3, interval=0)


@pytest.fixture
def wallet(buyer_keypair: Keypair, ledger: InMemoryLedger) -> KeypairWallet:
    return KeypairWallet(buyer_keypair, ledger)
