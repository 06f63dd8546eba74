"""Hands a transaction to the buyer's signing agent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from refpay.crypto.transaction import Transaction
from refpay.domain.errors import StaleTransaction, UserRejected
from refpay.domain.shared import SigningAgent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BroadcastHandle:
    """Proof the ledger accepted the transaction for processing, not that it settled."""

    signature: str


class TransactionSubmitter:
    """Ask a signing agent to sign and broadcast.

    Never retries: a rejection is the user's decision, and a stale anchor
    needs a freshly built transaction rather than the same bytes again.
    """

    def __init__(self, agent: SigningAgent) -> None:
        self.agent = agent

    async def submit(
        self, tx: Transaction, *, on_signed: Optional[Callable[[], None]] = None
    ) -> BroadcastHandle:
        try:
            signature = await self.agent.sign_and_send(tx, on_signed=on_signed)
        except UserRejected:
            logger.info("Signing agent %s declined", self.agent.public_key)
            raise
        except StaleTransaction:
            logger.info("Blockhash %s expired before broadcast", tx.recent_blockhash)
            raise
        return BroadcastHandle(signature=signature)
