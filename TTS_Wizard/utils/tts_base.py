from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
import logging

class EngineEventType(Enum):
    READY = "ready"
    STARTED = "started"
    COMPLETED = "completed"
    ERROR = "error"

@dataclass(frozen=True)
class EngineEvent:
    """A single progress notification from a speech engine, keyed by utterance id."""
    type: EngineEventType
    utterance_id: Optional[str] = None
    error_code: Optional[int] = None

EngineListener = Callable[[EngineEvent], None]

class SpeechEngineBase(ABC):
    """
    Abstract Base Class for Text-to-Speech engines.

    An engine speaks one utterance at a time. `speak`, `stop` and `set_rate` must
    return immediately; progress is reported asynchronously through the listener
    as EngineEvent values, possibly from a thread other than the caller's.
    """
    # Whether set_rate() affects an utterance that is already being spoken
    supports_live_rate: bool = False

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._listener: Optional[EngineListener] = None

    def set_listener(self, listener: Optional[EngineListener]):
        """Registers the single consumer of this engine's events."""
        self._listener = listener

    def _emit(self, event: EngineEvent):
        if self._listener:
            self._listener(event)

    @property
    def is_ready(self) -> bool:
        """False while the engine is still initializing or after it failed to start."""
        return True

    @abstractmethod
    def speak(self, text: str, utterance_id: str):
        """
        Submits one utterance. The engine reports STARTED, then exactly one of
        COMPLETED or ERROR for the same utterance_id.
        """
        pass

    @abstractmethod
    def stop(self):
        """Stops the utterance currently being spoken, if any."""
        pass

    @abstractmethod
    def set_rate(self, rate: float):
        """Sets the speech rate multiplier (1.0 is the engine's normal speed)."""
        pass

    def shutdown(self):
        """Releases engine resources. The default engine holds none."""
        pass
