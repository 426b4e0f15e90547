# ticker_desk/app/main.py

import asyncio
import signal
import sys
from typing import Optional

from core.config.validator import validate_startup_configuration
from core.logging import configure_logging, get_logger
from app.containers import AppContainer


class ApplicationOrchestrator:
    """Wires the session to its dependents and owns startup/shutdown."""

    def __init__(self, stream_enabled: bool = True, container: Optional[AppContainer] = None):
        self.container = container or AppContainer()
        self._shutdown_event = asyncio.Event()

        # Provide the shutdown event to the container
        self.container.shutdown_event.override(self._shutdown_event)

        self.settings = self.container.settings()
        configure_logging(self.settings)
        self.logger = get_logger("ticker_desk.main", component="application")

        self.stream_enabled = stream_enabled
        self.session_manager = self.container.session_manager()
        self.stream_client = self.container.stream_client()
        self.order_coordinator = self.container.order_coordinator()
        self.notification_bus = self.container.notification_bus()
        self.price_store = self.container.price_store()
        self.api_client = self.container.api_client()
        self._wired = False

    def wire(self) -> None:
        """Register dependents on the session: stream first, then quotes, then the order log."""
        if self._wired:
            return
        if self.stream_enabled:
            self.session_manager.add_listener(self.stream_client)
        self.session_manager.add_listener(self.price_store)
        self.session_manager.add_listener(self.order_coordinator)
        self._wired = True

    async def startup(self, restore: bool = True) -> None:
        self.logger.info(f"🚀 Starting {self.settings.app_name} {self.settings.version}")

        if not validate_startup_configuration(self.settings):
            self.logger.error("❌ Configuration validation failed - cannot proceed with startup")
            await self.shutdown()
            sys.exit(1)

        self.wire()

        if restore:
            session = await self.session_manager.restore()
            if session:
                self.logger.info(f"✅ Resumed session for {session.display_name}")
            else:
                self.logger.info("No stored session; waiting for login")

    async def shutdown(self) -> None:
        self.logger.info("🛑 Shutting down...")
        try:
            await self.stream_client.stop()
        finally:
            await self.api_client.aclose()
        self.logger.info("✅ Shutdown complete")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        try:
            self.logger.info(f"Received shutdown signal: {signal.strsignal(signum)}")
            self._shutdown_event.set()
        except Exception as e:
            print(f"Error in signal handler: {e}", file=sys.stderr)
            self._shutdown_event.set()  # Still try to trigger shutdown

    async def run(self) -> None:
        """Run until a shutdown signal arrives."""
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            await self.startup()
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()


async def main():
    """Application entry point"""
    app = ApplicationOrchestrator()
    await app.run()


if __name__ == "__main__":
    asyncio.run(main())
