"""Entry point for running the control server."""

from __future__ import annotations

import asyncio
import logging
import signal

from dotenv import load_dotenv

from .server import ControlServer
from .services.config import get_config

logger = logging.getLogger("vaultgate")


async def serve() -> None:
    config = get_config()
    server = ControlServer(config)

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_requested.set)
        except NotImplementedError:
            # Windows event loops: Ctrl+C still raises KeyboardInterrupt.
            pass

    await server.start()
    logger.info("vault-gate ready on %s (vault: %s)", server.url, config.vault_name)
    try:
        await stop_requested.wait()
    finally:
        await server.stop()


def main() -> None:
    load_dotenv()
    config = get_config()
    logging.basicConfig(
        level=logging.DEBUG if config.debug_mode else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
