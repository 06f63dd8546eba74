"""Shared pytest fixtures for checkout tests."""

from __future__ import annotations

import pytest

from refpay.crypto.keys import Keypair, PublicKey, generate_reference


@pytest.fixture
def buyer_keypair() -> Keypair:
    """Generate the buyer's wallet keypair."""
    return Keypair.generate()


@pytest.fixture
def buyer(buyer_keypair: Keypair) -> PublicKey:
    return buyer_keypair.public_key


@pytest.fixture
def shop_keypair() -> Keypair:
    """Generate the shop's keypair; only its address is used."""
    return Keypair.generate()


@pytest.fixture
def shop_address(shop_keypair: Keypair) -> PublicKey:
    return shop_keypair.public_key


@pytest.fixture
def reference() -> PublicKey:
    return generate_reference()
