"""
Session Coordinator for chat-tts
Wires the Twitch chat client into the speech queue and exposes the operations a
UI needs: connect/disconnect, narration toggle, rate and size settings, skip and clear.

Everything here runs on one asyncio event loop. The chat client delivers events on
its reader thread; they are marshalled onto the loop before touching any state.
"""
import asyncio
import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from Livechat_Wizard.data_models import ChatEvent
from Livechat_Wizard.livechat_utils import append_chat_history, trim_history_by_half
from Livechat_Wizard.twitch_irc import ConnectionState, TwitchChatClient, normalize_channel
from TTS_Wizard.narration import NarrationController
from TTS_Wizard.speech_queue import QueueItem, SpeechQueue
from TTS_Wizard.utils.audio_focus_base import AudioFocusBase
from TTS_Wizard.utils.tts_base import SpeechEngineBase

DEFAULT_MAX_HISTORY_SIZE = 100

class SessionCoordinator:
    def __init__(self,
                 engine: SpeechEngineBase,
                 audio_focus: Optional[AudioFocusBase] = None,
                 config: Optional[dict] = None,
                 chat_client: Optional[TwitchChatClient] = None,
                 on_connection_lost: Optional[Callable[[], None]] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.config = config or {}
        self._loop = loop or asyncio.get_running_loop()

        livechat_settings = self.config.get("livechat_settings", {})
        tts_settings = self.config.get("tts_settings", {})
        memory_settings = self.config.get("memory_settings", {})

        self.chat_client = chat_client or TwitchChatClient(
            server=livechat_settings.get("server", "irc.chat.twitch.tv"),
            port=livechat_settings.get("port", 6667),
            connect_timeout=livechat_settings.get("connect_timeout_s", 10),
        )
        self.speech_queue = SpeechQueue(max_size=tts_settings.get("max_queue_size", 5))
        self.narration = NarrationController(
            self.speech_queue,
            engine,
            audio_focus,
            rate=tts_settings.get("speech_rate", 1.0),
            skip_grace_s=tts_settings.get("skip_grace_s", 0.3),
            error_retry_delay_s=tts_settings.get("error_retry_delay_s", 0.5),
            loop=self._loop,
        )

        self.max_history_size = livechat_settings.get("max_history_size", DEFAULT_MAX_HISTORY_SIZE)
        self.min_history_to_trim = memory_settings.get("min_history_to_trim", 50)
        self._history: Deque[ChatEvent] = deque()
        self.channel: Optional[str] = None
        self.messages_received = 0
        self.on_connection_lost = on_connection_lost
        # Bumped on every connect/disconnect; events from older connections are dropped
        self._generation = 0

    # --- Observable state ---------------------------------------------------

    @property
    def connection_state(self) -> ConnectionState:
        return self.chat_client.state

    @property
    def is_connected(self) -> bool:
        return self.chat_client.is_connected

    @property
    def enabled(self) -> bool:
        return self.narration.enabled

    @property
    def queue_size(self) -> int:
        return self.speech_queue.size()

    @property
    def history(self) -> List[ChatEvent]:
        """Chat history, newest first."""
        return list(self._history)

    # --- Connection -------------------------------------------------------------

    async def connect(self, room: str) -> bool:
        """Joins `room`, replacing any current connection. Returns False if the join failed."""
        channel = normalize_channel(room)
        if not channel:
            self.logger.warning("Cannot connect without a channel name.")
            return False

        self._generation += 1
        generation = self._generation
        self.channel = channel
        self._history.clear()

        def on_event(event: ChatEvent):
            self._loop.call_soon_threadsafe(self._handle_chat_event, event, generation)

        def on_disconnect():
            self._loop.call_soon_threadsafe(self._handle_connection_lost, generation)

        connected = await asyncio.to_thread(self.chat_client.connect, channel, on_event, on_disconnect)

        if generation != self._generation:
            # A disconnect() or newer connect() happened while the handshake was running
            if connected and self.channel is None:
                self.chat_client.disconnect()
            return False
        if not connected:
            self.logger.warning(f"Could not connect to #{channel}.")
            self.channel = None
        return connected

    def disconnect(self):
        self._generation += 1
        self.channel = None
        self.chat_client.disconnect()

    def _handle_connection_lost(self, generation: int):
        if generation != self._generation:
            return
        self.logger.warning(f"Lost connection to #{self.channel}. Reconnect manually to resume.")
        self.channel = None
        if self.on_connection_lost:
            self.on_connection_lost()

    # --- Chat ingestion ---------------------------------------------------------

    def _handle_chat_event(self, event: ChatEvent, generation: int):
        if generation != self._generation:
            return
        self.messages_received += 1
        append_chat_history(self._history, event, self.max_history_size)

        if not self.narration.enabled:
            return
        if not self.speech_queue.try_enqueue(QueueItem.from_chat_event(event)):
            return
        if self.narration.is_idle:
            self.narration.on_engine_idle_or_ready()

    # --- UI operations -----------------------------------------------------------

    def toggle_enabled(self) -> bool:
        self.narration.set_enabled(not self.narration.enabled)
        return self.narration.enabled

    def set_enabled(self, enabled: bool):
        self.narration.set_enabled(enabled)

    def set_rate(self, rate: float) -> bool:
        return self.narration.set_rate(rate)

    def set_max_queue_size(self, max_size: int) -> bool:
        return self.speech_queue.set_capacity(max_size)

    def set_max_history_size(self, max_size: int) -> bool:
        if max_size < 1:
            self.logger.warning(f"Ignoring invalid chat history size: {max_size}")
            return False
        self.max_history_size = max_size
        while len(self._history) > max_size:
            self._history.pop()
        return True

    def skip_current(self):
        self.narration.skip_current()

    def clear_queue(self) -> int:
        return self.narration.clear()

    def clear_history(self):
        self._history.clear()

    def on_memory_pressure(self) -> int:
        """Drops the oldest half of the chat history once it is larger than min_history_to_trim."""
        removed = trim_history_by_half(self._history, self.min_history_to_trim)
        if removed:
            self.logger.warning(f"Memory pressure detected: Reduced chat history by {removed} messages")
        return removed

    def close(self):
        """Disconnects and silences narration; the engine is shut down last."""
        self.disconnect()
        self.narration.shutdown()
        self.narration.engine.shutdown()
