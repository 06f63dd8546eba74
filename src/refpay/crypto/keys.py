"""Ed25519 keys as the ledger sees them: 32 raw bytes, base58 text."""

from __future__ import annotations

import json
from typing import Final, Union

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

PUBLIC_KEY_LENGTH: Final[int] = 32
SIGNATURE_LENGTH: Final[int] = 64


class PublicKey:
    """A 32-byte ledger address. Compares and hashes by its bytes."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes) -> None:
        if len(raw) != PUBLIC_KEY_LENGTH:
            raise ValueError(
                f"Public key must be {PUBLIC_KEY_LENGTH} bytes, got {len(raw)}"
            )
        self._raw = bytes(raw)

    @classmethod
    def from_string(cls, value: str) -> "PublicKey":
        """Parse a base58 address. Raises ValueError on anything else."""
        if not value:
            raise ValueError("Public key cannot be empty")
        try:
            raw = base58.b58decode(value)
        except ValueError as e:
            raise ValueError(f"Invalid base58 public key: {value!r}") from e
        return cls(raw)

    def __bytes__(self) -> bytes:
        return self._raw

    def __str__(self) -> str:
        return base58.b58encode(self._raw).decode("ascii")

    def __repr__(self) -> str:
        return f"PublicKey({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)


SYSTEM_PROGRAM_ID: Final[PublicKey] = PublicKey(bytes(PUBLIC_KEY_LENGTH))


def _raw_public_bytes(public_key: Ed25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


class Keypair:
    """An ed25519 signing key together with its ledger address."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self.public_key = PublicKey(_raw_public_bytes(private_key.public_key()))

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_secret_key(cls, secret: Union[str, bytes]) -> "Keypair":
        """Load a key from its 64-byte secret (seed + public key) or 32-byte seed.

        Accepts raw bytes, a base58 string, or the JSON byte array written by
        the ledger's command-line wallet.
        """
        if isinstance(secret, str):
            text = secret.strip()
            if text.startswith("["):
                raw = bytes(json.loads(text))
            else:
                raw = base58.b58decode(text)
        else:
            raw = secret

        if len(raw) not in (32, 64):
            raise ValueError(f"Secret key must be 32 or 64 bytes, got {len(raw)}")

        keypair = cls(Ed25519PrivateKey.from_private_bytes(raw[:32]))
        if len(raw) == 64 and raw[32:] != bytes(keypair.public_key):
            raise ValueError("Secret key public half does not match its seed")
        return keypair

    def secret_key(self) -> bytes:
        seed = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return seed + bytes(self.public_key)

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)


def verify_signature(public_key: PublicKey, signature: bytes, message: bytes) -> None:
    """Verify an ed25519 signature. Raises InvalidSignature on failure."""
    Ed25519PublicKey.from_public_bytes(bytes(public_key)).verify(signature, message)


def generate_reference() -> PublicKey:
    """Return a fresh lookup key for one checkout attempt.

    The private half is dropped here and never leaves this function, so the
    reference can never sign or hold funds.
    """
    private_key = Ed25519PrivateKey.generate()
    return PublicKey(_raw_public_bytes(private_key.public_key()))
