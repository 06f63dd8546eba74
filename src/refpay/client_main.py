from __future__ import annotations

import asyncio
import logging
import sys

from refpay.application.shared.pricing import parse_selection
from refpay.client.checkout import CheckoutFlow
from refpay.client.poller import ConfirmationPoller
from refpay.client.verification import TransferVerifier
from refpay.client.wallet import KeypairWallet
from refpay.domain.entities import CheckoutSession, CheckoutStatus
from refpay.domain.errors import PollError
from refpay.envs.client_env import get_settings
from refpay.infrastructure.ledger.rpc_client import LedgerClient
from refpay.infrastructure.merchant.merchant_client_async import MerchantClientAsync


def _print_status(session: CheckoutSession) -> None:
    print(f"[{session.status.value}] reference={session.reference}")


def _print_poll_error(error: PollError) -> None:
    print(f"Poll failed, retrying: {error}")


async def run_checkout() -> CheckoutSession:
    settings = get_settings()
    keypair = settings.keypair()
    selection = parse_selection(settings.selection())

    async with LedgerClient(settings.ledger_rpc_url) as ledger, MerchantClientAsync(
        settings.merchant_base_url
    ) as merchant:
        height = await ledger.get_block_height(settings.poll_commitment)
        print(f"Ledger reachable at block height {height}")
        metadata = await merchant.get_metadata()
        print(f"Paying {metadata.label} from {keypair.public_key}")

        poller = ConfirmationPoller(
            ledger,
            interval=settings.poll_interval_ms / 1000,
            max_attempts=settings.poll_max_attempts,
            timeout=settings.poll_timeout_seconds,
            commitment=settings.poll_commitment,
            on_error=_print_poll_error,
        )
        verifier = (
            TransferVerifier(ledger, commitment=settings.poll_commitment)
            if settings.verify_transfer
            else None
        )
        flow = CheckoutFlow(
            selection,
            merchant,
            poller,
            verifier=verifier,
            on_change=_print_status,
        )
        flow.connect_wallet(KeypairWallet(keypair, ledger))
        return await flow.run()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    session = asyncio.run(run_checkout())
    if session.signature:
        print(f"Signature: {session.signature}")
    print(f"Checkout finished as {session.status.value}")
    if session.status is not CheckoutStatus.CONFIRMED:
        if session.last_error is not None:
            print(f"Error: {session.last_error}")
        sys.exit(1)


if __name__ == "__main__":
    main()
