"""A signing agent backed by a local ed25519 keypair."""

from __future__ import annotations

import base64
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

import base58

from refpay.crypto.keys import Keypair, PublicKey
from refpay.crypto.transaction import Transaction
from refpay.crypto.wire import encode_transaction, message_bytes
from refpay.domain.errors import UserRejected
from refpay.domain.shared import LedgerClientProtocol

logger = logging.getLogger(__name__)

ApproveCallback = Callable[[Transaction], Union[bool, Awaitable[bool]]]


class KeypairWallet:
    """Signs with a keypair it holds and broadcasts through the ledger client.

    ``approve`` stands in for the user's confirmation prompt; returning False
    declines the transaction.
    """

    def __init__(
        self,
        keypair: Keypair,
        ledger: LedgerClientProtocol,
        *,
        approve: Optional[ApproveCallback] = None,
    ) -> None:
        self._keypair = keypair
        self._ledger = ledger
        self._approve = approve

    @property
    def public_key(self) -> PublicKey:
        return self._keypair.public_key

    async def _approved(self, tx: Transaction) -> bool:
        if self._approve is None:
            return True
        decision = self._approve(tx)
        if inspect.isawaitable(decision):
            decision = await decision
        return bool(decision)

    def sign(self, tx: Transaction) -> Transaction:
        """Fill this wallet's signature slot."""
        signature = self._keypair.sign(message_bytes(tx))
        return tx.with_signature(self.public_key, signature)

    async def sign_and_send(
        self, tx: Transaction, *, on_signed: Optional[Callable[[], None]] = None
    ) -> str:
        if not await self._approved(tx):
            raise UserRejected("User rejected the request")
        try:
            signed = self.sign(tx)
        except ValueError as e:
            raise UserRejected(f"Wallet cannot sign this transaction: {e}") from e
        if not signed.is_signed:
            raise UserRejected("Transaction needs signatures this wallet cannot give")
        if on_signed is not None:
            on_signed()
        wire_b64 = base64.b64encode(encode_transaction(signed)).decode("ascii")
        signature = await self._ledger.send_transaction(wire_b64)
        expected = base58.b58encode(signed.signatures[0]).decode("ascii")
        if signature != expected:
            logger.warning("Ledger returned signature %s, expected %s", signature, expected)
        return signature
