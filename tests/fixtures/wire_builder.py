"""Hand-assembled legacy transactions, independent of the encoder under test."""

from __future__ import annotations

from typing import Sequence

import base58

from refpay.crypto.keys import PublicKey


def legacy_wire(
    keys: Sequence[PublicKey],
    header: tuple[int, int, int],
    blockhash: str,
    program_index: int,
    account_indices: Sequence[int],
    data: bytes,
) -> bytes:
    """One-instruction transaction with every signature slot empty.

    Counts stay below 128, so each compact-u16 is a single byte.
    """
    out = bytearray([header[0]])
    out += bytes(64) * header[0]
    out += bytes(header)
    out.append(len(keys))
    for key in keys:
        out += bytes(key)
    out += base58.b58decode(blockhash)
    out += bytes([1, program_index, len(account_indices), *account_indices])
    out.append(len(data))
    out += data
    return bytes(out)
