import sys
import os
from dotenv import load_dotenv

# Add the project's root directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

load_dotenv()#get .env file variables
import pytest
from TTS_Wizard.utils.audio_focus_base import AudioFocusBase
from TTS_Wizard.utils.tts_base import EngineEvent, EngineEventType, SpeechEngineBase


class FakeSpeechEngine(SpeechEngineBase):
    """Records every call; tests drive progress by calling the controller directly."""
    def __init__(self):
        super().__init__()
        self.spoken = []  # (text, utterance_id)
        self.stop_calls = 0
        self.rates = []
        self.ready = True
        self.fail_on_speak = False

    @property
    def is_ready(self):
        return self.ready

    @property
    def last_utterance_id(self):
        return self.spoken[-1][1] if self.spoken else None

    @property
    def spoken_texts(self):
        return [text for text, _ in self.spoken]

    def speak(self, text, utterance_id):
        if self.fail_on_speak:
            raise RuntimeError("synthesizer crashed")
        self.spoken.append((text, utterance_id))

    def stop(self):
        self.stop_calls += 1

    def set_rate(self, rate):
        self.rates.append(rate)

    def emit(self, event_type, utterance_id=None, error_code=None):
        self._emit(EngineEvent(event_type, utterance_id, error_code))


class FakeAudioFocus(AudioFocusBase):
    def __init__(self, grant=True):
        super().__init__()
        self.grant = grant
        self.requests = 0
        self.releases = 0
        self.outstanding = 0

    def request_focus(self):
        self.requests += 1
        if self.grant:
            self.outstanding += 1
        return self.grant

    def release_focus(self):
        self.releases += 1
        self.outstanding = max(self.outstanding - 1, 0)

    def notify(self, change):
        self._notify(change)


@pytest.fixture
def fake_engine():
    return FakeSpeechEngine()

@pytest.fixture
def fake_focus():
    return FakeAudioFocus()
