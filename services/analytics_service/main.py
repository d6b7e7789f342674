"""
Analytics Service - Event-driven metric engine

Flow:
- Connect bar store + MetricsUpdated publisher
- Warm the configured default metric set
- Pump NewBar events from the live feed into the engine
- Queries are served from the cache by whoever embeds the engine

The bar store is populated upstream (ingestion pipeline). With the
in-memory store there is no upstream writer, so the pump appends each
bar before handing it to the engine.
"""

import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from config.loader import load_analytics_config
from config.settings import get_settings
from core.exceptions import OutOfOrderBarError
from factory.client_factory import create_bar_feed, create_bar_store, create_event_publisher
from providers.memory.bar_store import InMemoryBarStore
from services.analytics_service.engine import AnalyticsEngine

# Configure logging
os.makedirs("data/logs", exist_ok=True)

_fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_console = logging.StreamHandler(sys.stdout)
_console.setLevel(get_settings().LOG_LEVEL.upper())
_console.setFormatter(logging.Formatter(_fmt))

_file = RotatingFileHandler(
    "data/logs/analytics_service_errors.log",
    maxBytes=5 * 1024 * 1024,  # 5MB
    backupCount=3,
)
_file.setLevel(logging.ERROR)
_file.setFormatter(logging.Formatter(_fmt))

logging.basicConfig(level=get_settings().LOG_LEVEL.upper(), handlers=[_console, _file])
logger = logging.getLogger(__name__)


class AnalyticsService:
    """
    Analytics Service - hosts the AnalyticsEngine.

    Flow:
    1. Connect store, publisher and feed
    2. Warm up the default metric set
    3. Forward live bars to the engine until stopped
    """

    def __init__(self):
        self.settings = get_settings()
        self.running = False
        self._pump_task: asyncio.Task | None = None

        logger.info("🔧 Initializing clients...")
        self.config = load_analytics_config(self.settings.ANALYTICS_CONFIG_PATH)
        self.store = create_bar_store()
        self.publisher = create_event_publisher(queue_size=self.config.subscriptions.queue_size)
        self.feed = create_bar_feed()

        self.engine = AnalyticsEngine(self.store, self.config, publisher=self.publisher)

    async def pump_bars(self):
        """Forward live bars from the feed into the engine's ingest queue"""
        if self.feed is None:
            logger.info("No live feed, serving queries only")
            while self.running:
                await asyncio.sleep(1)
            return

        async for bar in self.feed.bars():
            if not self.running:
                break

            if isinstance(self.store, InMemoryBarStore):
                try:
                    self.store.add_bar(bar)
                except OutOfOrderBarError as e:
                    logger.warning(f"⚠️ Skipping bar: {e}")
                    continue

            self.engine.enqueue_bar(bar)

    async def start(self):
        """Start the analytics service"""
        logger.info("=" * 60)
        logger.info("Analytics Service started")
        logger.info("=" * 60)
        logger.info(f"  Store: {self.settings.BAR_STORE_PROVIDER}")
        logger.info(f"  Publisher: {self.settings.EVENT_PUBLISHER}")
        logger.info(f"  Feed: {self.settings.BAR_FEED_PROVIDER}")
        logger.info(f"  Warm-up symbols: {', '.join(self.config.warmup.symbols) or '-'}")
        logger.info("=" * 60)

        self.running = True

        try:
            await self.store.connect()
            logger.info("✅ Connected to bar store")

            await self.publisher.connect()
            logger.info("✅ Connected to event publisher")

            if self.feed is not None:
                await self.feed.connect()
                logger.info("✅ Connected to bar feed")

            await self.engine.start()

            summary = await self.engine.warm_up()
            logger.info(f"✅ Warm-up complete: {sum(summary.values())} metrics")

            # Own task so a signal can cancel it while the feed is quiet
            if self.running:
                self._pump_task = asyncio.create_task(self.pump_bars(), name="bar-pump")
                try:
                    await self._pump_task
                except asyncio.CancelledError:
                    if asyncio.current_task().cancelling():
                        raise
                    logger.info("⚠️ Bar pump cancelled")

        except KeyboardInterrupt:
            logger.info("⚠️ Received interrupt signal")
        except Exception as e:
            logger.error(f"❌ Fatal error: {e}", exc_info=True)
        finally:
            await self.stop()

    def request_stop(self):
        """Stop pumping bars (safe to call from a signal handler)"""
        self.running = False
        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()

    async def stop(self):
        """Graceful shutdown"""
        logger.info("🛑 Stopping Analytics Service...")
        self.running = False

        await self.engine.stop()

        if self.feed:
            await self.feed.close()
        await self.publisher.close()
        await self.store.close()

        logger.info(f"Final stats: {self.engine.stats()}")
        logger.info("✅ Analytics Service stopped")


async def main():
    """Main entry point"""
    service = AnalyticsService()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_stop)

    await service.start()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Goodbye!")
