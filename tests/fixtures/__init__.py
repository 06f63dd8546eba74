"""Test fixtures for in-memory implementations."""

from .in_memory_ledger import InMemoryLedger, random_blockhash
from .in_memory_recorder import InMemoryIntentRecorder
from .wire_builder import legacy_wire

__all__ = [
    "InMemoryIntentRecorder",
    "InMemoryLedger",
    "legacy_wire",
    "random_blockhash",
]
