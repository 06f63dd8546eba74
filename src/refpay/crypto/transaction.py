"""Ledger transaction model and the system-program transfer instruction."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Final, Optional, Sequence

from .keys import SIGNATURE_LENGTH, SYSTEM_PROGRAM_ID, PublicKey

# System program instruction index for a plain transfer.
SYSTEM_TRANSFER_INDEX: Final[int] = 2
_TRANSFER_LAYOUT = struct.Struct("<IQ")


@dataclass(frozen=True)
class AccountMeta:
    """An account referenced by an instruction, with its access flags."""

    pubkey: PublicKey
    is_signer: bool
    is_writable: bool


@dataclass(frozen=True)
class Instruction:
    program_id: PublicKey
    accounts: tuple[AccountMeta, ...]
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class MessageHeader:
    num_required_signatures: int
    num_readonly_signed: int
    num_readonly_unsigned: int


def compile_account_keys(
    fee_payer: PublicKey, instructions: Sequence[Instruction]
) -> tuple[list[PublicKey], MessageHeader]:
    """Deduplicate every key a message touches and put it in wire order.

    Flags of a key used more than once are OR-ed. Order: fee payer, then
    signers before non-signers, writable before read-only, base58 text order
    inside each class. Program ids are read-only non-signers.
    """
    flags: dict[PublicKey, list[bool]] = {fee_payer: [True, True]}
    for ix in instructions:
        for meta in ix.accounts:
            entry = flags.setdefault(meta.pubkey, [False, False])
            entry[0] = entry[0] or meta.is_signer
            entry[1] = entry[1] or meta.is_writable
        flags.setdefault(ix.program_id, [False, False])

    rest = sorted(
        (key for key in flags if key != fee_payer),
        key=lambda k: (not flags[k][0], not flags[k][1], str(k)),
    )
    keys = [fee_payer, *rest]

    signed = [k for k in keys if flags[k][0]]
    unsigned = [k for k in keys if not flags[k][0]]
    header = MessageHeader(
        num_required_signatures=len(signed),
        num_readonly_signed=sum(1 for k in signed if not flags[k][1]),
        num_readonly_unsigned=sum(1 for k in unsigned if not flags[k][1]),
    )
    return keys, header


@dataclass(frozen=True)
class CompiledKeys:
    """Account keys and header exactly as a message lays them out."""

    keys: tuple[PublicKey, ...]
    header: MessageHeader

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple(self.keys))


@dataclass(frozen=True)
class Transaction:
    """A transaction ready for the wire.

    ``signatures`` holds one slot per required signer, in signer order; a
    ``None`` slot is reserved but not yet filled. When omitted, every slot is
    created empty, which is the shape the merchant hands to the buyer.

    ``compiled`` pins the account key order and header of a decoded message
    whose layout differs from :func:`compile_account_keys`, so it encodes
    back to the same bytes. Built transactions leave it ``None``.
    """

    fee_payer: PublicKey
    recent_blockhash: str
    instructions: tuple[Instruction, ...]
    signatures: tuple[Optional[bytes], ...] = field(default=())
    compiled: Optional[CompiledKeys] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "instructions", tuple(self.instructions))
        if self.compiled is not None:
            self._check_compiled(self.compiled)
        signers = self.signer_keys()
        slots = tuple(self.signatures)
        if not slots:
            slots = (None,) * len(signers)
        if len(slots) != len(signers):
            raise ValueError(
                f"Expected {len(signers)} signature slots, got {len(slots)}"
            )
        for slot in slots:
            if slot is not None and len(slot) != SIGNATURE_LENGTH:
                raise ValueError("Signatures must be 64 bytes")
        object.__setattr__(self, "signatures", slots)

    def _check_compiled(self, compiled: CompiledKeys) -> None:
        keys, header = compiled.keys, compiled.header
        if not keys or keys[0] != self.fee_payer:
            raise ValueError("Fee payer must be the first account key")
        if len(set(keys)) != len(keys):
            raise ValueError("Account keys must be unique")
        if (
            header.num_required_signatures < 1
            or header.num_readonly_signed >= header.num_required_signatures
            or header.num_required_signatures + header.num_readonly_unsigned > len(keys)
        ):
            raise ValueError("Message header does not fit its account keys")
        known = set(keys)
        for ix in self.instructions:
            if ix.program_id not in known or any(
                meta.pubkey not in known for meta in ix.accounts
            ):
                raise ValueError("Instruction uses a key missing from the account keys")

    def account_keys(self) -> tuple[list[PublicKey], MessageHeader]:
        """Account keys in wire order and the message header."""
        if self.compiled is not None:
            return list(self.compiled.keys), self.compiled.header
        return compile_account_keys(self.fee_payer, self.instructions)

    def signer_keys(self) -> list[PublicKey]:
        """Required signers in wire order."""
        keys, header = self.account_keys()
        return keys[: header.num_required_signatures]

    @property
    def is_signed(self) -> bool:
        return all(slot is not None for slot in self.signatures)

    def with_signature(self, signer: PublicKey, signature: bytes) -> "Transaction":
        """Return a copy with ``signer``'s slot filled in place."""
        signers = self.signer_keys()
        if signer not in signers:
            raise ValueError(f"{signer} is not a required signer")
        slots = list(self.signatures)
        slots[signers.index(signer)] = signature
        return Transaction(
            fee_payer=self.fee_payer,
            recent_blockhash=self.recent_blockhash,
            instructions=self.instructions,
            signatures=tuple(slots),
            compiled=self.compiled,
        )


def transfer_instruction(
    sender: PublicKey,
    recipient: PublicKey,
    lamports: int,
    references: Sequence[PublicKey] = (),
) -> Instruction:
    """System-program transfer of ``lamports`` from sender to recipient.

    Each reference rides along as a read-only, non-signing account. The
    program ignores it; it only makes the transaction findable by that key.
    """
    if lamports <= 0:
        raise ValueError("Transfer amount must be positive")
    accounts = [
        AccountMeta(pubkey=sender, is_signer=True, is_writable=True),
        AccountMeta(pubkey=recipient, is_signer=False, is_writable=True),
    ]
    accounts.extend(
        AccountMeta(pubkey=ref, is_signer=False, is_writable=False)
        for ref in references
    )
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=tuple(accounts),
        data=_TRANSFER_LAYOUT.pack(SYSTEM_TRANSFER_INDEX, lamports),
    )


@dataclass(frozen=True)
class TransferDetails:
    sender: PublicKey
    recipient: PublicKey
    lamports: int
    references: tuple[PublicKey, ...]


def parse_transfer(instruction: Instruction) -> TransferDetails:
    """Read a system transfer back out of an instruction.

    Raises:
        ValueError: If the instruction is not a system-program transfer.
    """
    if instruction.program_id != SYSTEM_PROGRAM_ID:
        raise ValueError("Instruction is not for the system program")
    if len(instruction.data) != _TRANSFER_LAYOUT.size:
        raise ValueError("Instruction data is not a transfer")
    index, lamports = _TRANSFER_LAYOUT.unpack(instruction.data)
    if index != SYSTEM_TRANSFER_INDEX:
        raise ValueError(f"Unexpected system instruction index {index}")
    if len(instruction.accounts) < 2:
        raise ValueError("Transfer instruction needs sender and recipient")
    return TransferDetails(
        sender=instruction.accounts[0].pubkey,
        recipient=instruction.accounts[1].pubkey,
        lamports=lamports,
        references=tuple(meta.pubkey for meta in instruction.accounts[2:]),
    )


def build_transfer_transaction(
    *,
    buyer: PublicKey,
    recipient: PublicKey,
    lamports: int,
    reference: PublicKey,
    recent_blockhash: str,
) -> Transaction:
    """Unsigned transfer from buyer to recipient, paid for and signed by the buyer."""
    return Transaction(
        fee_payer=buyer,
        recent_blockhash=recent_blockhash,
        instructions=(
            transfer_instruction(buyer, recipient, lamports, references=(reference,)),
        ),
    )
