"""Unit tests for the keypair wallet and the transaction submitter."""

import base64

import base58
import pytest

from refpay.client.submitter import TransactionSubmitter
from refpay.client.wallet import KeypairWallet
from refpay.crypto.keys import Keypair, PublicKey, generate_reference, verify_signature
from refpay.crypto.transaction import Transaction, build_transfer_transaction
from refpay.crypto.wire import decode_transaction, message_bytes
from refpay.domain.errors import StaleTransaction, UserRejected
from tests.fixtures import InMemoryLedger


async def _transfer_from(ledger: InMemoryLedger, buyer: PublicKey) -> Transaction:
    anchor = await ledger.get_latest_blockhash()
    return build_transfer_transaction(
        buyer=buyer,
        recipient=generate_reference(),
        lamports=50_000_000,
        reference=generate_reference(),
        recent_blockhash=anchor.blockhash,
    )


class TestKeypairWallet:
    @pytest.mark.asyncio
    async def test_signs_and_broadcasts(self, buyer_keypair: Keypair) -> None:
        ledger = InMemoryLedger()
        wallet = KeypairWallet(buyer_keypair, ledger)
        tx = await _transfer_from(ledger, wallet.public_key)

        signature = await wallet.sign_and_send(tx)

        assert len(ledger.sent) == 1
        sent = ledger.sent[0]
        verify_signature(wallet.public_key, sent.signatures[0], message_bytes(tx))
        assert signature == base58.b58encode(sent.signatures[0]).decode("ascii")
        _, (wire_b64,) = ledger.calls[-1]
        assert decode_transaction(base64.b64decode(wire_b64)) == sent

    @pytest.mark.asyncio
    async def test_declined_approval_is_user_rejected(
        self, buyer_keypair: Keypair
    ) -> None:
        ledger = InMemoryLedger()
        wallet = KeypairWallet(buyer_keypair, ledger, approve=lambda tx: False)
        tx = await _transfer_from(ledger, wallet.public_key)

        with pytest.raises(UserRejected, match="User rejected the request"):
            await wallet.sign_and_send(tx)
        assert ledger.call_count("send_transaction") == 0

    @pytest.mark.asyncio
    async def test_async_approval(self, buyer_keypair: Keypair) -> None:
        ledger = InMemoryLedger()
        seen: list[Transaction] = []

        async def approve(tx: Transaction) -> bool:
            seen.append(tx)
            return True

        wallet = KeypairWallet(buyer_keypair, ledger, approve=approve)
        tx = await _transfer_from(ledger, wallet.public_key)
        await wallet.sign_and_send(tx)

        assert seen == [tx]

    @pytest.mark.asyncio
    async def test_on_signed_runs_before_sending(self, buyer_keypair: Keypair) -> None:
        ledger = InMemoryLedger()
        wallet = KeypairWallet(buyer_keypair, ledger)
        tx = await _transfer_from(ledger, wallet.public_key)
        sends_at_signing: list[int] = []

        await wallet.sign_and_send(
            tx,
            on_signed=lambda: sends_at_signing.append(ledger.call_count("send_transaction")),
        )

        assert sends_at_signing == [0]
        assert ledger.call_count("send_transaction") == 1

    @pytest.mark.asyncio
    async def test_on_signed_not_called_when_declined(
        self, buyer_keypair: Keypair
    ) -> None:
        ledger = InMemoryLedger()
        wallet = KeypairWallet(buyer_keypair, ledger, approve=lambda tx: False)
        tx = await _transfer_from(ledger, wallet.public_key)
        signed: list[bool] = []

        with pytest.raises(UserRejected):
            await wallet.sign_and_send(tx, on_signed=lambda: signed.append(True))
        assert signed == []

    @pytest.mark.asyncio
    async def test_foreign_fee_payer_is_user_rejected(
        self, buyer_keypair: Keypair
    ) -> None:
        ledger = InMemoryLedger()
        wallet = KeypairWallet(buyer_keypair, ledger)
        tx = await _transfer_from(ledger, Keypair.generate().public_key)

        with pytest.raises(UserRejected, match="cannot sign"):
            await wallet.sign_and_send(tx)


class TestTransactionSubmitter:
    @pytest.mark.asyncio
    async def test_returns_broadcast_handle(self, buyer_keypair: Keypair) -> None:
        ledger = InMemoryLedger()
        wallet = KeypairWallet(buyer_keypair, ledger)
        tx = await _transfer_from(ledger, wallet.public_key)

        handle = await TransactionSubmitter(wallet).submit(tx)

        assert handle.signature
        assert ledger.call_count("send_transaction") == 1

    @pytest.mark.asyncio
    async def test_stale_anchor_is_not_retried(self, buyer_keypair: Keypair) -> None:
        ledger = InMemoryLedger()
        ledger.stale_sends = 1
        wallet = KeypairWallet(buyer_keypair, ledger)
        tx = await _transfer_from(ledger, wallet.public_key)

        with pytest.raises(StaleTransaction):
            await TransactionSubmitter(wallet).submit(tx)
        assert ledger.call_count("send_transaction") == 1
