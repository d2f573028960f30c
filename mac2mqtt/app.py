"""Main application orchestrator for mac2mqtt."""

import asyncio
import logging
import signal
from datetime import datetime
from typing import Optional, Union

from .config import AppConfig, get_config
from .host import HostControl, MacOSHostControl, get_host_identity
from .models import HostContext
from .mqtt.client import MQTTClient
from .mqtt.command_handler import CommandHandler
from .mqtt.discovery import DiscoveryManager
from .mqtt.publisher import StatePublisher
from .mqtt.supervisor import ConnectionSupervisor
from .scheduler import StateScheduler
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


class Mac2MQTT:
    """Main application class.

    Wires the host control, MQTT session and publishers together and runs
    the command loop alongside the periodic state timers.
    """

    def __init__(
        self,
        config: Union[AppConfig, str, None] = None,
        host: Optional[HostControl] = None,
    ):
        """Initialize the application.

        Args:
            config: AppConfig instance, path to YAML config file, or None for defaults/env
            host: Host control implementation (macOS utilities by default)
        """
        if isinstance(config, AppConfig):
            self.config = config
        else:
            self.config = get_config(config)

        self.host = host or MacOSHostControl()
        self._shutdown_event = asyncio.Event()
        self.running = False

        # Components (initialized in setup())
        self.context: Optional[HostContext] = None
        self.mqtt: Optional[MQTTClient] = None
        self.discovery: Optional[DiscoveryManager] = None
        self.publisher: Optional[StatePublisher] = None
        self.command_handler: Optional[CommandHandler] = None
        self.supervisor: Optional[ConnectionSupervisor] = None
        self.scheduler: Optional[StateScheduler] = None

        self._start_time: Optional[datetime] = None

    def build_context(self) -> HostContext:
        """Derive the immutable host context.

        Raises:
            ValueError: If the host identity is empty after sanitizing
        """
        identity = get_host_identity(self.config.hostname)
        model = self.host.get_model()
        return HostContext.create(
            identity=identity,
            model=model,
            discovery_prefix=self.config.discovery_prefix,
        )

    def setup(self) -> None:
        """Construct every component from the configuration."""
        self.context = self.build_context()
        logger.info(f"Host identity: {self.context.identity} (model: {self.context.model})")

        self.mqtt = MQTTClient(self.config, self.context.topics)
        self.discovery = DiscoveryManager(self.mqtt, self.context)
        self.publisher = StatePublisher(self.mqtt, self.host, self.context)
        self.command_handler = CommandHandler(
            self.host,
            self.publisher,
            self.context,
            settle_delay=self.config.settle_delay,
        )
        self.supervisor = ConnectionSupervisor(
            self.mqtt,
            self.discovery,
            self.command_handler,
        )
        self.scheduler = StateScheduler(
            self.publisher,
            volume_interval=self.config.volume_interval,
            battery_interval=self.config.battery_interval,
        )

    async def start(self) -> None:
        """Start the application.

        Connects to the broker (fatal on failure), publishes discovery,
        then runs the command loop and the state timers until shutdown.

        Raises:
            ConnectionError: If the initial broker connection fails
        """
        setup_logging(
            level=self.config.logging.level,
            log_file=self.config.logging.file,
            format_string=self.config.logging.format,
        )

        logger.info("Started")
        self._start_time = datetime.now()
        self.setup()
        self._setup_signal_handlers()

        try:
            # Discovery and subscription complete before any periodic publish
            await self.supervisor.start()
            self.running = True

            await self.publisher.publish_all()

            tasks = [
                asyncio.create_task(self.supervisor.run(), name="mqtt-supervisor"),
                asyncio.create_task(self.scheduler.run(), name="state-scheduler"),
            ]
            shutdown_task = asyncio.create_task(self._shutdown_event.wait(), name="shutdown")

            done, _ = await asyncio.wait(
                [*tasks, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED,
            )

            for task in [*tasks, shutdown_task]:
                task.cancel()
            await asyncio.gather(*tasks, shutdown_task, return_exceptions=True)

            # Surface a crash of either long-running task
            for task in done:
                if task is not shutdown_task and not task.cancelled() and task.exception():
                    raise task.exception()

        except asyncio.CancelledError:
            logger.info("Application cancelled")
        finally:
            await self.stop()

    async def remove_discovery(self) -> None:
        """Connect once and clear every retained discovery config."""
        setup_logging(level=self.config.logging.level)
        self.setup()
        await self.mqtt.connect()
        try:
            await self.discovery.remove_discovery_configs()
        finally:
            await self.mqtt.disconnect()

    async def stop(self) -> None:
        """Stop the application gracefully."""
        logger.info("Stopping mac2mqtt")
        self.running = False
        self._shutdown_event.set()
        if self.scheduler:
            self.scheduler.stop()

        if self.supervisor:
            try:
                await self.supervisor.stop()
            except Exception as e:
                logger.error(f"Error disconnecting MQTT: {e}")

        if self.supervisor:
            stats = self.supervisor.stats
            logger.info(
                f"Statistics: connections={stats['connections']}, "
                f"losses={stats['connection_losses']}, "
                f"reconnect_attempts={stats['reconnect_attempts']}, "
                f"uptime={self.uptime}"
            )
        logger.info("mac2mqtt stopped")

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(sig):
            logger.info(f"Received signal {sig.name}, initiating shutdown")
            self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
            except (NotImplementedError, RuntimeError):
                # Not available outside the main thread
                logger.debug(f"Cannot install handler for {sig.name}")

    @property
    def uptime(self) -> Optional[str]:
        if not self._start_time:
            return None
        return str(datetime.now() - self._start_time)


async def run_app(config: Union[AppConfig, str, None] = None) -> None:
    """Run the application.

    Args:
        config: AppConfig instance, path to config file, or None for defaults/env
    """
    app = Mac2MQTT(config)
    await app.start()


async def run_remove_discovery(config: Union[AppConfig, str, None] = None) -> None:
    """Remove the retained discovery configs of this host."""
    app = Mac2MQTT(config)
    await app.remove_discovery()
