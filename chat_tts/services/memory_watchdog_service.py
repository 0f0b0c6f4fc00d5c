"""
Memory Watchdog Service for chat-tts
Periodically logs chat statistics and trims the chat history when the host
reports memory pressure. This is a coarse safety valve, not a memory controller.
"""
import asyncio
from typing import Callable

import psutil

from .base_service import BaseService

def psutil_memory_pressure(threshold_percent: float = 70.0) -> Callable[[], bool]:
    """Builds a pressure signal that fires when system memory use exceeds threshold_percent."""
    def _signal() -> bool:
        return psutil.virtual_memory().percent > threshold_percent
    return _signal

class MemoryWatchdogService(BaseService):
    def __init__(self, shared_resources, pressure_signal: Callable[[], bool] = None):
        super().__init__(shared_resources)
        self.session = self.shared_resources.get("session")
        memory_settings = self.config.get("memory_settings", {})
        self.check_interval = memory_settings.get("check_interval_s", 60)
        self.pressure_signal = pressure_signal or psutil_memory_pressure(
            memory_settings.get("pressure_threshold_percent", 70)
        )
        self.logger.info(f"MemoryWatchdogService initialized with check interval: {self.check_interval}s")

    def check_once(self) -> int:
        """Runs one maintenance pass. Returns the number of history entries trimmed."""
        self.logger.debug(
            f"Messages processed: {self.session.messages_received}, "
            f"Chat history size: {len(self.session.history)}, "
            f"Speech queue size: {self.session.queue_size}"
        )
        try:
            under_pressure = self.pressure_signal()
        except Exception as e:
            self.logger.error(f"Memory pressure check failed: {e}", exc_info=True)
            return 0
        if not under_pressure:
            return 0
        return self.session.on_memory_pressure()

    async def run_worker(self):
        if self.session is None:
            self.logger.error("No session to maintain. Stopping worker.")
            return
        try:
            while True:
                await asyncio.sleep(self.check_interval)
                self.check_once()
        except asyncio.CancelledError:
            self.logger.info(f"{self.__class__.__name__} worker cancelled.")
            raise
        finally:
            self.logger.info(f"{self.__class__.__name__} worker stopped.")
