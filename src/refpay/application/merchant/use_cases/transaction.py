"""Use cases for the merchant application layer."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from ....crypto.keys import PublicKey
from ....crypto.transaction import Transaction, build_transfer_transaction
from ....crypto.wire import serialize_transaction
from ....domain.catalog import Catalog
from ....domain.entities import PaymentIntent
from ....domain.shared import IntentRecorder, LedgerClientProtocol
from ...shared.pricing import calculate_amount, to_base_units
from ..dtos import BuildTransactionResponseDTO
from .transaction_validators import parse_account, parse_reference, validate_parties

logger = logging.getLogger(__name__)

ANCHOR_COMMITMENT = "finalized"


class TransactionService:
    """Builds the unsigned, reference-tagged transfer a buyer is asked to sign."""

    def __init__(
        self,
        ledger: LedgerClientProtocol,
        catalog: Catalog,
        shop_address: PublicKey,
        intent_recorder: IntentRecorder,
        *,
        message: str = "Thanks for your order!",
    ):
        self.ledger = ledger
        self.catalog = catalog
        self.shop_address = shop_address
        self.intent_recorder = intent_recorder
        self.message = message

    async def build_transaction(
        self,
        selection: Mapping[str, int],
        reference: Optional[str],
        account: Optional[str],
    ) -> tuple[Transaction, PaymentIntent]:
        """Validate the request and assemble the transaction.

        Reads the ledger once for a finalized anchor; broadcasts nothing.

        Raises:
            PaymentValidationError: On any malformed input.
            LedgerUnavailable: If the anchor cannot be fetched.
        """
        # 1) Request shape
        reference_key = parse_reference(reference)
        buyer = parse_account(account)
        validate_parties(buyer, self.shop_address, reference_key)

        # 2) Price, exact to the base unit
        amount = calculate_amount(selection, self.catalog)
        lamports = to_base_units(amount)

        # 3) Fresh anchor the ledger will not roll back
        anchor = await self.ledger.get_latest_blockhash(ANCHOR_COMMITMENT)
        logger.debug(
            "Anchor %s valid until height %s",
            anchor.blockhash,
            anchor.last_valid_block_height,
        )

        # 4) Assemble
        tx = build_transfer_transaction(
            buyer=buyer,
            recipient=self.shop_address,
            lamports=lamports,
            reference=reference_key,
            recent_blockhash=anchor.blockhash,
        )
        intent = PaymentIntent(
            amount=amount,
            recipient=self.shop_address,
            reference=reference_key,
            fee_payer=buyer,
            validity_anchor=anchor,
        )
        return tx, intent

    async def create_transaction(
        self,
        selection: Mapping[str, int],
        reference: Optional[str],
        account: Optional[str],
    ) -> BuildTransactionResponseDTO:
        """Build, record and serialize a transaction for the buyer."""
        tx, intent = await self.build_transaction(selection, reference, account)
        serialized = serialize_transaction(tx)
        await self.intent_recorder.record(intent)
        return BuildTransactionResponseDTO(transaction=serialized, message=self.message)
