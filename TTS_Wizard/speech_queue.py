"""
Bounded speech queue for chat narration.

The chat reader must never wait on narration: when the queue is full, new text is
dropped instead of blocking the producer.
"""
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Union

from Livechat_Wizard.data_models import ChatEvent

DEFAULT_MAX_QUEUE_SIZE = 5
UTTERANCE_TEMPLATE = "{username} says: {body}"

@dataclass(frozen=True)
class QueueItem:
    """One rendered utterance waiting to be spoken."""
    text: str
    item_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_chat_event(cls, event: ChatEvent) -> "QueueItem":
        return cls(text=UTTERANCE_TEMPLATE.format(username=event.username, body=event.body))


class SpeechQueue:
    """Thread-safe FIFO with a drop-on-full admission policy. No operation blocks."""

    def __init__(self, max_size: int = DEFAULT_MAX_QUEUE_SIZE):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._items: Deque[QueueItem] = deque()
        self._lock = threading.Lock()
        self._max_size = max_size if max_size >= 1 else DEFAULT_MAX_QUEUE_SIZE

    @property
    def max_size(self) -> int:
        return self._max_size

    def try_enqueue(self, item: Union[QueueItem, str]) -> bool:
        """Appends the item if there is room. Returns False (and drops the item) when full."""
        if isinstance(item, str):
            item = QueueItem(text=item)
        with self._lock:
            if len(self._items) >= self._max_size:
                self.logger.debug(f"Speech queue full ({self._max_size}), dropping: {item.text[:50]}")
                return False
            self._items.append(item)
            return True

    def dequeue(self) -> Optional[QueueItem]:
        """Removes and returns the oldest item, or None if the queue is empty."""
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def clear(self) -> int:
        """Empties the queue in one step and returns how many items were discarded."""
        with self._lock:
            discarded = len(self._items)
            self._items.clear()
        return discarded

    def size(self) -> int:
        # Snapshot only; may be stale by the time the caller reads it
        return len(self._items)

    __len__ = size

    def set_capacity(self, max_size: int) -> bool:
        """
        Changes the bound for future enqueues. A queue already longer than the new
        bound is not trimmed; it just rejects items until it drains below it.
        """
        if max_size < 1:
            self.logger.warning(f"Ignoring invalid speech queue size: {max_size}")
            return False
        with self._lock:
            self._max_size = max_size
        self.logger.info(f"Speech queue size set to {max_size}")
        return True

    def pending_texts(self) -> List[str]:
        with self._lock:
            return [item.text for item in self._items]
