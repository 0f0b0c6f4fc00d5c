# data_models.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

DEFAULT_CHAT_COLOR = "#FFFFFF"

@dataclass(frozen=True)
class ChatEvent:
    """
    An immutable representation of one chat message received from the room.

    Attributes:
        username (str): The login name of the user who sent the message.
        body (str): The raw text content of the message.
        color (str): The user's display color as sent in the `color` tag,
                     e.g. '#FF0000'. Defaults to white when the tag is absent.
        id (str): A unique token generated on receipt.
        timestamp (datetime): A timezone-aware datetime captured on receipt.
    """
    username: str
    body: str
    color: str = DEFAULT_CHAT_COLOR
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
