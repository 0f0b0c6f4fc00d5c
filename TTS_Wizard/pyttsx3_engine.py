import logging
import queue
import threading
from typing import Any, Optional, Set

import pyttsx3

from TTS_Wizard.utils.tts_base import EngineEvent, EngineEventType, SpeechEngineBase

class Pyttsx3Engine(SpeechEngineBase):
    """
    Offline speech engine backed by pyttsx3 (SAPI5, NSSpeechSynthesizer or eSpeak).

    pyttsx3 is not thread-safe and blocks in runAndWait(), so a single worker
    thread owns the driver and pulls utterances from a command queue. Stop requests
    are honoured from the driver's own word callback, the only place pyttsx3 allows it.

    A stop is bound to the utterance that was outstanding when stop() was called,
    so a speak() that follows right after cannot cancel it.
    """
    supports_live_rate = False

    def __init__(self,
                 base_words_per_minute: int = 180,
                 voice_id: Optional[str] = None,
                 logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.base_words_per_minute = base_words_per_minute
        self.voice_id = voice_id
        self._rate = 1.0
        self._commands: "queue.Queue[Optional[tuple]]" = queue.Queue()
        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._driver: Any = None

        self._state_lock = threading.Lock()
        self._outstanding_id: Optional[str] = None  # last submitted, not yet finished
        self._stopped_ids: Set[str] = set()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def start(self):
        """Starts the worker thread; READY is emitted once the driver is up."""
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="Pyttsx3Engine", daemon=True)
        self._thread.start()

    def speak(self, text: str, utterance_id: str):
        with self._state_lock:
            self._outstanding_id = utterance_id
        self._commands.put((text, utterance_id))

    def stop(self):
        with self._state_lock:
            if self._outstanding_id is not None:
                self._stopped_ids.add(self._outstanding_id)

    def set_rate(self, rate: float):
        # Picked up before the next utterance; pyttsx3 can't retime one in flight
        self._rate = rate

    def shutdown(self):
        self.logger.info("Shutting down pyttsx3 engine.")
        self.stop()
        self._commands.put(None)
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._ready.clear()

    def _is_stopped(self, utterance_id: str) -> bool:
        with self._state_lock:
            return utterance_id in self._stopped_ids

    def _forget(self, utterance_id: str):
        with self._state_lock:
            self._stopped_ids.discard(utterance_id)
            if self._outstanding_id == utterance_id:
                self._outstanding_id = None

    def _run(self):
        try:
            driver = pyttsx3.init()
            if self.voice_id:
                driver.setProperty('voice', self.voice_id)
        except (RuntimeError, OSError, ImportError) as e:
            self.logger.error(f"pyttsx3 initialization failed: {e}", exc_info=True)
            return

        driver.connect('started-utterance', self._on_started)
        driver.connect('started-word', self._on_word)
        driver.connect('finished-utterance', self._on_finished)
        self._driver = driver
        self._ready.set()
        self._emit(EngineEvent(EngineEventType.READY))

        while True:
            command = self._commands.get()
            if command is None:
                break
            text, utterance_id = command
            if self._is_stopped(utterance_id):
                # Stopped before it reached the driver
                self._forget(utterance_id)
                self._emit(EngineEvent(EngineEventType.COMPLETED, utterance_id))
                continue
            try:
                driver.setProperty('rate', int(self.base_words_per_minute * self._rate))
                driver.say(text, utterance_id)
                driver.runAndWait()
            except Exception as e:
                # Driver backends raise their own types (COM errors on SAPI5, OSError on eSpeak)
                self.logger.error(f"pyttsx3 failed on utterance {utterance_id}: {e}", exc_info=True)
                self._forget(utterance_id)
                self._emit(EngineEvent(EngineEventType.ERROR, utterance_id, error_code=-1))

        self._driver = None

    def _on_started(self, name):
        self._emit(EngineEvent(EngineEventType.STARTED, name))

    def _on_word(self, name, location, length):
        if self._driver is not None and self._is_stopped(name):
            self._driver.stop()

    def _on_finished(self, name, completed):
        # A stopped utterance finishes with completed=False; it is still over
        self._forget(name)
        self._emit(EngineEvent(EngineEventType.COMPLETED, name))
