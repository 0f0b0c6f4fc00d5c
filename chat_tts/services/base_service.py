"""
Base Service Module for chat-tts
Defines the abstract base class for background services running on the event loop.
"""
import asyncio
import logging
from abc import ABC, abstractmethod

class BaseService(ABC):
    def __init__(self, shared_resources=None):
        shared_resources = shared_resources or {}
        self.config = shared_resources.get("config", {})
        self.logger = shared_resources.get("logger") or logging.getLogger(self.__class__.__name__)
        self.shared_resources = shared_resources # Store all shared resources
        self._task = None # To keep track of the running asyncio task

    @abstractmethod
    async def run_worker(self):
        """The main logic for the service worker. Must be implemented by subclasses."""
        pass

    async def start(self):
        """Starts the service worker as an asyncio task."""
        if self.is_running():
            self.logger.warning(f"{self.__class__.__name__} is already running.")
            return
        self._task = asyncio.create_task(self.run_worker(), name=self.__class__.__name__)
        self.logger.info(f"{self.__class__.__name__} started.")

    async def stop(self):
        """Cancels the service worker and waits for it to finish."""
        if not self.is_running():
            self._task = None
            return
        self.logger.info(f"Stopping {self.__class__.__name__}...")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            self.logger.info(f"{self.__class__.__name__} cancelled successfully.")
        except Exception as e:
            self.logger.error(f"Error during {self.__class__.__name__} shutdown: {e}", exc_info=True)
        finally:
            self._task = None

    def is_running(self):
        """Checks if the service worker task is currently running."""
        return self._task is not None and not self._task.done()
