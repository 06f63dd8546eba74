"""Pure validation functions for transaction requests.

These functions contain the request-shape rules and can be tested in
isolation without a ledger.
"""

from __future__ import annotations

from typing import Optional

from ....crypto.keys import PublicKey
from ....domain.errors import MissingAccount, MissingReference


def parse_reference(value: Optional[str]) -> PublicKey:
    """Raises:
    MissingReference: If the reference is absent or not a public key.
    """
    if not value:
        raise MissingReference("No reference provided")
    try:
        return PublicKey.from_string(value)
    except ValueError:
        raise MissingReference(f"Invalid reference: {value}")


def parse_account(value: Optional[str]) -> PublicKey:
    """Raises:
    MissingAccount: If the buyer account is absent or not a public key.
    """
    if not value:
        raise MissingAccount("No account provided")
    try:
        return PublicKey.from_string(value)
    except ValueError:
        raise MissingAccount(f"Invalid account: {value}")


def validate_parties(
    buyer: PublicKey, recipient: PublicKey, reference: PublicKey
) -> None:
    """The reference must be a pure lookup key, never a party to the transfer.

    Raises:
        MissingReference: If the reference equals the buyer or the recipient.
        MissingAccount: If the buyer is the recipient.
    """
    if reference in (buyer, recipient):
        raise MissingReference("Reference must differ from buyer and recipient")
    if buyer == recipient:
        raise MissingAccount("Buyer cannot pay the shop's own address")
