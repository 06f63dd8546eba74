from __future__ import annotations

import logging

from ...domain.entities import PaymentIntent

logger = logging.getLogger(__name__)


class LoggingIntentRecorder:
    """Default IntentRecorder: writes the intent to the log and keeps nothing.

    An order database would plug in here by implementing ``record``.
    """

    async def record(self, intent: PaymentIntent) -> None:
        logger.info(
            "Payment intent: amount=%s recipient=%s reference=%s fee_payer=%s blockhash=%s",
            intent.amount,
            intent.recipient,
            intent.reference,
            intent.fee_payer,
            intent.validity_anchor.blockhash,
        )
