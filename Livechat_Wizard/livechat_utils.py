from typing import Deque, Tuple

from Livechat_Wizard.data_models import ChatEvent

#the history is kept newest-first so a UI can render it top-down without reversing
def append_chat_history(history: Deque[ChatEvent], event: ChatEvent, max_size: int) -> int:
    """
    Adds the latest chat event to the front of the history while maintaining a set max size.

    Returns:
        int: The number of old entries that were dropped from the back.
    """
    history.appendleft(event)
    dropped = 0
    while len(history) > max(max_size, 0):
        history.pop()
        dropped += 1
    return dropped


def trim_history_by_half(history: Deque[ChatEvent], min_size: int = 50) -> int:
    """
    Removes the oldest half of the history, but only once it grew past min_size.

    Coarse safety valve used when the host reports memory pressure.
    """
    if len(history) <= min_size:
        return 0
    to_remove = len(history) // 2
    for _ in range(to_remove):
        history.pop()
    return to_remove


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Converts a hex color string to an (R, G, B) tuple."""
    hex_color = (hex_color or "#FFFFFF").lstrip("#")
    if len(hex_color) != 6:
        return (255, 255, 255)  # Default to white for invalid formats
    try:
        return int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16)
    except ValueError:
        return (255, 255, 255)
