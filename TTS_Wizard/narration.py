"""
Narration Controller
Drives a speech engine from the SpeechQueue, one utterance at a time.

All methods must run on the event loop passed in (or the one running at
construction time). Engine and audio-focus collaborators may report from other
threads through post_engine_event / post_focus_change, which marshal onto the loop.
"""
import asyncio
import logging
import uuid
from enum import Enum
from typing import Optional

from TTS_Wizard.speech_queue import QueueItem, SpeechQueue
from TTS_Wizard.utils.audio_focus_base import AudioFocusBase, FocusChange, PassiveAudioFocus
from TTS_Wizard.utils.tts_base import EngineEvent, EngineEventType, SpeechEngineBase

MIN_SPEECH_RATE = 0.5
MAX_SPEECH_RATE = 2.0
DEFAULT_SPEECH_RATE = 1.0
DUCKED_RATE_FACTOR = 0.8

class NarrationState(Enum):
    IDLE = "idle"
    SPEAKING = "speaking"

def is_valid_rate(rate: float) -> bool:
    return MIN_SPEECH_RATE <= rate <= MAX_SPEECH_RATE


class NarrationController:
    def __init__(self,
                 speech_queue: SpeechQueue,
                 engine: SpeechEngineBase,
                 audio_focus: Optional[AudioFocusBase] = None,
                 rate: float = DEFAULT_SPEECH_RATE,
                 enabled: bool = True,
                 skip_grace_s: float = 0.3,
                 error_retry_delay_s: float = 0.5,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._loop = loop or asyncio.get_running_loop()
        self.speech_queue = speech_queue
        self.engine = engine
        self.audio_focus = audio_focus or PassiveAudioFocus()

        self.state = NarrationState.IDLE
        self.current_utterance_id: Optional[str] = None
        self.current_item: Optional[QueueItem] = None
        self.enabled = enabled
        self.rate = rate if is_valid_rate(rate) else DEFAULT_SPEECH_RATE
        self.skip_grace_s = skip_grace_s
        self.error_retry_delay_s = error_retry_delay_s

        self.utterances_spoken = 0
        self.utterances_failed = 0
        self._focus_held = False
        self._pending_drain: Optional[asyncio.TimerHandle] = None

        self.engine.set_listener(self.post_engine_event)
        self.audio_focus.set_listener(self.post_focus_change)
        self.engine.set_rate(self.rate)

    @property
    def is_idle(self) -> bool:
        return self.state == NarrationState.IDLE

    @property
    def is_speaking(self) -> bool:
        return self.state == NarrationState.SPEAKING

    # --- Event intake -------------------------------------------------------

    def post_engine_event(self, event: EngineEvent):
        """Thread-safe entry point for engine callbacks."""
        self._loop.call_soon_threadsafe(self.handle_engine_event, event)

    def post_focus_change(self, change: FocusChange):
        """Thread-safe entry point for audio focus callbacks."""
        self._loop.call_soon_threadsafe(self.handle_focus_change, change)

    def handle_engine_event(self, event: EngineEvent):
        if event.type == EngineEventType.READY:
            self.logger.info("Speech engine ready.")
            self.on_engine_idle_or_ready()
        elif event.type == EngineEventType.STARTED:
            self.on_engine_started(event.utterance_id)
        elif event.type == EngineEventType.COMPLETED:
            self.on_engine_completed(event.utterance_id)
        elif event.type == EngineEventType.ERROR:
            self.on_engine_error(event.utterance_id, event.error_code)

    def handle_focus_change(self, change: FocusChange):
        if change in (FocusChange.LOST, FocusChange.LOST_TRANSIENT):
            self.logger.info(f"Audio focus {change.value}, stopping narration.")
            if self.is_speaking:
                self._stop_engine()
                self._finish_utterance()
        elif change == FocusChange.DUCK:
            self.engine.set_rate(self.rate * DUCKED_RATE_FACTOR)
        elif change == FocusChange.GAINED:
            self.engine.set_rate(self.rate)
            self.on_engine_idle_or_ready()

    # --- State transitions --------------------------------------------------

    def on_engine_idle_or_ready(self):
        """Starts the next queued utterance if nothing is being spoken and narration is on."""
        if not self.is_idle or not self.enabled or not self.engine.is_ready:
            return
        item = self.speech_queue.dequeue()
        if item is None:
            return

        utterance_id = str(uuid.uuid4())
        self.state = NarrationState.SPEAKING
        self.current_utterance_id = utterance_id
        self.current_item = item

        self._focus_held = self.audio_focus.request_focus()
        if not self._focus_held:
            self.logger.warning("Audio focus denied, speaking anyway.")

        self.logger.debug(f"Speaking [{utterance_id}]: {item.text[:80]}")
        try:
            self.engine.speak(item.text, utterance_id)
        except Exception as e:
            self.logger.error(f"Error submitting utterance to speech engine: {e}", exc_info=True)
            self.utterances_failed += 1
            self._finish_utterance()
            self._schedule_drain(self.error_retry_delay_s)

    def on_engine_started(self, utterance_id: Optional[str]):
        if utterance_id == self.current_utterance_id:
            self.logger.debug(f"Utterance started [{utterance_id}]")

    def on_engine_completed(self, utterance_id: Optional[str]):
        if not self._is_current(utterance_id):
            return
        self.utterances_spoken += 1
        self._finish_utterance()
        self.on_engine_idle_or_ready()

    def on_engine_error(self, utterance_id: Optional[str], error_code: Optional[int] = None):
        if not self._is_current(utterance_id):
            return
        self.logger.error(f"TTS error with utterance ID: {utterance_id}, error code: {error_code}")
        self.utterances_failed += 1
        self._finish_utterance()
        # Don't hammer a failing engine with the next item straight away
        self._schedule_drain(self.error_retry_delay_s)

    # --- Operations -----------------------------------------------------------

    def skip_current(self):
        """Stops the current utterance and moves on after a short grace period."""
        if not self.is_speaking:
            return
        utterance_id = self.current_utterance_id
        self.logger.info(f"Skipping utterance [{utterance_id}]")
        self._stop_engine()
        self._loop.call_later(self.skip_grace_s, self._finish_skip, utterance_id)

    def _finish_skip(self, utterance_id: str):
        # The engine may already have reported the stopped utterance as done
        if not self._is_current(utterance_id):
            return
        self._finish_utterance()
        self.on_engine_idle_or_ready()

    def set_rate(self, rate: float) -> bool:
        """Applies a rate in [0.5, 2.0]; anything else is ignored and the old rate kept."""
        if not is_valid_rate(rate):
            self.logger.debug(f"Ignoring out-of-range speech rate: {rate}")
            return False
        self.rate = rate
        self.engine.set_rate(rate)
        return True

    def set_enabled(self, enabled: bool):
        self.enabled = enabled
        self.logger.info(f"Narration {'enabled' if enabled else 'disabled'}.")
        if enabled:
            self.on_engine_idle_or_ready()

    def clear(self) -> int:
        """Empties the queue and silences the current utterance without advancing."""
        discarded = self.speech_queue.clear()
        self._cancel_pending_drain()
        if self.is_speaking:
            self._stop_engine()
            self._finish_utterance()
        return discarded

    def shutdown(self):
        self.clear()
        self.engine.set_listener(None)
        self.audio_focus.set_listener(None)

    # --- Helpers --------------------------------------------------------------

    def _is_current(self, utterance_id: Optional[str]) -> bool:
        return self.is_speaking and utterance_id == self.current_utterance_id

    def _stop_engine(self):
        try:
            self.engine.stop()
        except Exception as e:
            self.logger.error(f"Error stopping speech engine: {e}", exc_info=True)

    def _finish_utterance(self):
        if self._focus_held:
            self.audio_focus.release_focus()
            self._focus_held = False
        self.state = NarrationState.IDLE
        self.current_utterance_id = None
        self.current_item = None

    def _schedule_drain(self, delay: float):
        if self._pending_drain is not None:
            return
        self._pending_drain = self._loop.call_later(delay, self._run_pending_drain)

    def _run_pending_drain(self):
        self._pending_drain = None
        self.on_engine_idle_or_ready()

    def _cancel_pending_drain(self):
        if self._pending_drain is not None:
            self._pending_drain.cancel()
            self._pending_drain = None
