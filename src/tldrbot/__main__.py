# __main__.py
import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

from tldrbot import settings  # noqa: E402
from tldrbot.bot import TldrBot, build_services  # noqa: E402
from tldrbot.health import HealthServer  # noqa: E402
from tldrbot.store import Store  # noqa: E402

logger = logging.getLogger("tldrbot")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def shutdown(bot: TldrBot, health: HealthServer, store: Store) -> None:
    """Stop loops, disconnect, stop the health server, then close the store."""
    digest = bot.get_cog("DigestCog")
    if digest is not None:
        digest.stop()
    if not bot.is_closed():
        await bot.close()
    await health.stop()
    store.close()
    logger.info("Shutdown complete")


async def main() -> int:
    missing = settings.validate_config()
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        return 1

    store = Store(settings.DB_PATH).open()
    bot = TldrBot(build_services(store))
    health = HealthServer(settings.HEALTH_PORT)

    loop = asyncio.get_running_loop()
    stopping = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stopping.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises.
            pass

    await health.start()
    runner = asyncio.create_task(bot.start(os.environ["DISCORD_TOKEN"]))
    waiter = asyncio.create_task(stopping.wait())
    try:
        logger.info("starting bot")
        done, _ = await asyncio.wait({runner, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if runner in done and runner.exception() is not None:
            logger.error("Bot stopped with an error", exc_info=runner.exception())
            return 1
        logger.info("Shutting down...")
    finally:
        waiter.cancel()
        await shutdown(bot, health, store)
        if not runner.done():
            runner.cancel()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
