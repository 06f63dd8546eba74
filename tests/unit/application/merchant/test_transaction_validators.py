"""Unit tests for transaction request validators (pure functions)."""

import pytest

from refpay.application.merchant.use_cases.transaction_validators import (
    parse_account,
    parse_reference,
    validate_parties,
)
from refpay.crypto.keys import generate_reference
from refpay.domain.errors import MissingAccount, MissingReference


class TestParseReference:
    """Test parse_reference function."""

    def test_valid_reference(self) -> None:
        reference = generate_reference()
        assert parse_reference(str(reference)) == reference

    def test_missing_reference_raises(self) -> None:
        for value in (None, ""):
            with pytest.raises(MissingReference, match="No reference provided"):
                parse_reference(value)

    def test_not_base58_raises(self) -> None:
        with pytest.raises(MissingReference, match="Invalid reference"):
            parse_reference("not-a-key-0OIl")

    def test_wrong_length_raises(self) -> None:
        with pytest.raises(MissingReference):
            parse_reference("3yZe7d")


class TestParseAccount:
    """Test parse_account function."""

    def test_valid_account(self) -> None:
        account = generate_reference()
        assert parse_account(str(account)) == account

    def test_missing_account_raises(self) -> None:
        with pytest.raises(MissingAccount, match="No account provided"):
            parse_account(None)

    def test_invalid_account_raises(self) -> None:
        with pytest.raises(MissingAccount, match="Invalid account"):
            parse_account("0000")


class TestValidateParties:
    """Test validate_parties function."""

    def test_distinct_parties(self) -> None:
        validate_parties(generate_reference(), generate_reference(), generate_reference())
        # Should not raise

    def test_reference_equal_to_buyer_raises(self) -> None:
        buyer = generate_reference()
        with pytest.raises(MissingReference):
            validate_parties(buyer, generate_reference(), buyer)

    def test_reference_equal_to_recipient_raises(self) -> None:
        recipient = generate_reference()
        with pytest.raises(MissingReference):
            validate_parties(generate_reference(), recipient, recipient)

    def test_buyer_paying_itself_raises(self) -> None:
        shop = generate_reference()
        with pytest.raises(MissingAccount):
            validate_parties(shop, shop, generate_reference())
