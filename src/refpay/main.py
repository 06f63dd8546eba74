from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys

import uvicorn

from .envs.merchant_env import Settings, get_settings

logger = logging.getLogger(__name__)


def _install_uvloop() -> None:
    """Use uvloop where it is installed; it has no Windows build."""
    if sys.platform == "win32":
        return
    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not installed, using the default event loop")
        return
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())


def _reset_prometheus_multiproc_dir() -> None:
    """Empty PROMETHEUS_MULTIPROC_DIR before the workers start writing to it.

    Files left by a previous run would be summed into the new run's metrics.
    """
    prom_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if not prom_dir:
        return
    shutil.rmtree(prom_dir, ignore_errors=True)
    os.makedirs(prom_dir, exist_ok=True)


def _print_banner(settings: Settings) -> None:
    base = f"http://{settings.api_host}:{settings.api_port}"
    print(f"Starting {settings.app_name} merchant v{settings.app_version}")
    print(f"Shop address: {settings.shop_address}")
    print(f"Ledger RPC: {settings.ledger_rpc_url}")
    print(f"Transaction requests: {base}/api/v1/checkout/transaction")
    print(f"API Documentation: {base}/docs")


def main() -> None:
    """Run the merchant API under uvicorn."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.api_debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _install_uvloop()
    _print_banner(settings)
    _reset_prometheus_multiproc_dir()

    # uvicorn cannot reload with more than one worker.
    workers = 1 if settings.api_debug else settings.api_workers
    uvicorn.run(
        "refpay.api.merchant_api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        workers=workers,
        log_level="debug" if settings.api_debug else "info",
    )


if __name__ == "__main__":
    main()
