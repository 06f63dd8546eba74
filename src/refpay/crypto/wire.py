"""Legacy transaction wire format and its base64 transport form.

Layout::

    compact-u16 n | n x 64-byte signature slots (all zero = empty)
    message:
      u8 num_required_signatures | u8 num_readonly_signed | u8 num_readonly_unsigned
      compact-u16 k | k x 32-byte account keys
      32-byte recent blockhash
      compact-u16 m | m x instruction
    instruction:
      u8 program index | compact-u16 a | a x u8 account index
      compact-u16 d | d bytes of data
"""

from __future__ import annotations

import base64
import binascii
from typing import Final, Optional

import base58

from .keys import PUBLIC_KEY_LENGTH, SIGNATURE_LENGTH, PublicKey
from .transaction import (
    AccountMeta,
    CompiledKeys,
    Instruction,
    MessageHeader,
    Transaction,
    compile_account_keys,
)

EMPTY_SIGNATURE: Final[bytes] = bytes(SIGNATURE_LENGTH)
# Hard cap of a single ledger packet.
MAX_TRANSACTION_SIZE: Final[int] = 1232


class WireFormatError(ValueError):
    """Raised when bytes do not decode to a well-formed transaction."""


def encode_compact_u16(value: int) -> bytes:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"compact-u16 out of range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def take(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise WireFormatError("Unexpected end of transaction bytes")
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def compact_u16(self) -> int:
        value = 0
        for shift in (0, 7, 14):
            byte = self.u8()
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                if value > 0xFFFF:
                    break
                return value
        raise WireFormatError("Malformed compact-u16")

    def at_end(self) -> bool:
        return self._pos == len(self._data)


def message_bytes(tx: Transaction) -> bytes:
    """The exact bytes every signer signs."""
    keys, header = tx.account_keys()
    index = {key: i for i, key in enumerate(keys)}

    try:
        blockhash = base58.b58decode(tx.recent_blockhash)
    except ValueError as e:
        raise WireFormatError("Recent blockhash is not base58") from e
    if len(blockhash) != PUBLIC_KEY_LENGTH:
        raise WireFormatError("Recent blockhash must be 32 bytes")

    out = bytearray(
        [
            header.num_required_signatures,
            header.num_readonly_signed,
            header.num_readonly_unsigned,
        ]
    )
    out += encode_compact_u16(len(keys))
    for key in keys:
        out += bytes(key)
    out += blockhash
    out += encode_compact_u16(len(tx.instructions))
    for ix in tx.instructions:
        out.append(index[ix.program_id])
        out += encode_compact_u16(len(ix.accounts))
        out += bytes(index[meta.pubkey] for meta in ix.accounts)
        out += encode_compact_u16(len(ix.data))
        out += ix.data
    return bytes(out)


def encode_transaction(tx: Transaction) -> bytes:
    """Serialize with every signature slot present; empty slots are zero-filled."""
    out = bytearray(encode_compact_u16(len(tx.signatures)))
    for slot in tx.signatures:
        out += slot if slot is not None else EMPTY_SIGNATURE
    out += message_bytes(tx)
    if len(out) > MAX_TRANSACTION_SIZE:
        raise WireFormatError(
            f"Transaction is {len(out)} bytes, limit is {MAX_TRANSACTION_SIZE}"
        )
    return bytes(out)


def _meta_for(index: int, header: MessageHeader, key_count: int) -> tuple[bool, bool]:
    required = header.num_required_signatures
    if index < required:
        return True, index < required - header.num_readonly_signed
    return False, index < key_count - header.num_readonly_unsigned


def decode_transaction(data: bytes) -> Transaction:
    """Inverse of :func:`encode_transaction`.

    Key order and header are kept as sent, so re-encoding reproduces ``data``
    even when another encoder ordered the keys differently or listed keys no
    instruction uses.
    """
    reader = _Reader(data)

    signature_count = reader.compact_u16()
    slots: list[Optional[bytes]] = []
    for _ in range(signature_count):
        raw = reader.take(SIGNATURE_LENGTH)
        slots.append(None if raw == EMPTY_SIGNATURE else raw)

    header = MessageHeader(
        num_required_signatures=reader.u8(),
        num_readonly_signed=reader.u8(),
        num_readonly_unsigned=reader.u8(),
    )
    if header.num_required_signatures != signature_count:
        raise WireFormatError("Signature count does not match message header")

    key_count = reader.compact_u16()
    keys = [PublicKey(reader.take(PUBLIC_KEY_LENGTH)) for _ in range(key_count)]
    if len(set(keys)) != key_count:
        raise WireFormatError("Duplicate account key")
    if not keys or header.num_required_signatures < 1:
        raise WireFormatError("Transaction has no fee payer")
    if (
        header.num_readonly_signed >= header.num_required_signatures
        or header.num_required_signatures + header.num_readonly_unsigned > key_count
    ):
        raise WireFormatError("Message header does not fit its account keys")

    recent_blockhash = base58.b58encode(reader.take(PUBLIC_KEY_LENGTH)).decode("ascii")

    def key_at(i: int) -> PublicKey:
        if i >= key_count:
            raise WireFormatError(f"Account index {i} out of range")
        return keys[i]

    instructions = []
    for _ in range(reader.compact_u16()):
        program_id = key_at(reader.u8())
        account_indices = [reader.u8() for _ in range(reader.compact_u16())]
        accounts = []
        for i in account_indices:
            is_signer, is_writable = _meta_for(i, header, key_count)
            accounts.append(
                AccountMeta(pubkey=key_at(i), is_signer=is_signer, is_writable=is_writable)
            )
        ix_data = reader.take(reader.compact_u16())
        instructions.append(
            Instruction(program_id=program_id, accounts=tuple(accounts), data=ix_data)
        )

    if not reader.at_end():
        raise WireFormatError("Trailing bytes after transaction")

    compiled: Optional[CompiledKeys] = CompiledKeys(keys=tuple(keys), header=header)
    if compile_account_keys(keys[0], instructions) == (keys, header):
        compiled = None
    try:
        return Transaction(
            fee_payer=keys[0],
            recent_blockhash=recent_blockhash,
            instructions=tuple(instructions),
            signatures=tuple(slots),
            compiled=compiled,
        )
    except ValueError as e:
        raise WireFormatError(f"Inconsistent transaction: {e}") from e


def serialize_transaction(tx: Transaction) -> str:
    """Base64 transport form."""
    return base64.b64encode(encode_transaction(tx)).decode("ascii")


def deserialize_transaction(data_b64: str) -> Transaction:
    try:
        raw = base64.b64decode(data_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise WireFormatError("Transaction is not valid base64") from e
    return decode_transaction(raw)
