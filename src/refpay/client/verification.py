"""Check that the transaction found by reference actually pays the intent.

Finding the reference only proves some transaction mentioned it. Anyone can
mention a public key, so the amount and recipient are checked against the
ledger's own balance changes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from refpay.application.shared.pricing import to_base_units
from refpay.domain.entities import PaymentIntent
from refpay.domain.errors import LedgerUnavailable, TransferMismatch
from refpay.domain.shared import LedgerClientProtocol

logger = logging.getLogger(__name__)


def _account_keys(tx_json: dict[str, Any]) -> list[str]:
    message = tx_json["transaction"]["message"]
    keys = [
        key if isinstance(key, str) else key["pubkey"]
        for key in message["accountKeys"]
    ]
    loaded = (tx_json.get("meta") or {}).get("loadedAddresses") or {}
    keys.extend(loaded.get("writable", []))
    keys.extend(loaded.get("readonly", []))
    return keys


def validate_transfer(tx_json: dict[str, Any], intent: PaymentIntent) -> None:
    """Pure check of a ``getTransaction`` result against an intent.

    Raises:
        TransferMismatch: If the transaction failed, does not carry the
            reference, or did not move exactly the intended amount to the
            recipient.
    """
    meta = tx_json.get("meta")
    if not meta:
        raise TransferMismatch("Transaction has no status metadata")
    if meta.get("err") is not None:
        raise TransferMismatch(f"Transaction failed on ledger: {meta['err']}")

    try:
        keys = _account_keys(tx_json)
        pre_balances = meta["preBalances"]
        post_balances = meta["postBalances"]
    except (KeyError, TypeError) as e:
        raise TransferMismatch("Transaction is missing account data") from e

    if str(intent.reference) not in keys:
        raise TransferMismatch("Reference not found in transaction")

    recipient = str(intent.recipient)
    if recipient not in keys:
        raise TransferMismatch("Recipient not found in transaction")
    index = keys.index(recipient)
    try:
        received = post_balances[index] - pre_balances[index]
    except IndexError as e:
        raise TransferMismatch("Recipient balance missing from transaction") from e

    expected = to_base_units(intent.amount)
    if received != expected:
        raise TransferMismatch(
            f"Recipient received {received} base units, expected {expected}"
        )


class TransferVerifier:
    """Fetches a confirmed transaction and validates it against the intent.

    The transaction can trail its signature listing by a moment, so a missing
    result is retried ``attempts`` times before giving up.
    """

    def __init__(
        self,
        ledger: LedgerClientProtocol,
        *,
        attempts: int = 5,
        interval: float = 0.5,
        commitment: str = "confirmed",
    ) -> None:
        self.ledger = ledger
        self.attempts = attempts
        self.interval = interval
        self.commitment = commitment

    async def verify(self, signature: str, intent: PaymentIntent) -> None:
        """Raises:
        TransferMismatch: The transaction does not pay the intent.
        LedgerUnavailable: The transaction could not be fetched.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                tx_json = await self.ledger.get_transaction(signature, self.commitment)
            except LedgerUnavailable as e:
                last_error = e
                logger.warning("Fetching %s failed (attempt %d): %s", signature, attempt, e)
            else:
                if tx_json is not None:
                    validate_transfer(tx_json, intent)
                    logger.info("Transfer %s verified", signature)
                    return
                last_error = None
            if attempt < self.attempts:
                await asyncio.sleep(self.interval)
        raise LedgerUnavailable(
            f"Transaction {signature} could not be fetched for verification"
        ) from last_error
