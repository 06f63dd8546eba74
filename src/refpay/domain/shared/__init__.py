"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .ledger_client_protocol import IntentRecorder, LedgerClientProtocol, SigningAgent

__all__ = ["IntentRecorder", "LedgerClientProtocol", "SigningAgent"]
