from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

class FocusChange(Enum):
    GAINED = "gained"
    LOST = "lost"
    LOST_TRANSIENT = "lost_transient"
    # Another app plays over us for a short while; we may keep talking, quieter or slower
    DUCK = "duck"

FocusListener = Callable[[FocusChange], None]

class AudioFocusBase(ABC):
    """Abstract base class for the platform's audio arbitration.

    Narration requests focus right before each utterance and releases it as soon as
    the utterance completes, fails or is stopped. Focus changes initiated by the
    platform are delivered to the listener, possibly from another thread.
    """
    def __init__(self):
        self._listener: Optional[FocusListener] = None

    def set_listener(self, listener: Optional[FocusListener]):
        self._listener = listener

    def _notify(self, change: FocusChange):
        if self._listener:
            self._listener(change)

    @abstractmethod
    def request_focus(self) -> bool:
        """Request transient focus for one utterance.

        Returns:
            bool: True if focus was granted, False if it was denied.
        """
        pass

    @abstractmethod
    def release_focus(self):
        """Give focus back. Must be safe to call when focus is not held."""
        pass


class PassiveAudioFocus(AudioFocusBase):
    """Audio focus for hosts without arbitration: always granted, never revoked."""

    def __init__(self):
        super().__init__()
        self.held = False

    def request_focus(self) -> bool:
        self.held = True
        return True

    def release_focus(self):
        self.held = False
