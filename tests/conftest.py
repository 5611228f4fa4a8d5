from pathlib import Path

import pytest

from bookmark_store import BookmarkStore
from dispatch import MainQueue
from models import Utterance
from speech_controller import SpeechController
from tts_engine import SpeechEngine


class ScriptedEngine(SpeechEngine):
    """In-memory engine: records commands, emits only what a test fires."""

    def __init__(self) -> None:
        super().__init__()
        self.commands: list[tuple] = []
        self.spoken: list[Utterance] = []
        self.shut_down = False

    def speak(self, utterance: Utterance) -> None:
        self.commands.append(("speak", utterance.id))
        self.spoken.append(utterance)

    def pause(self) -> None:
        self.commands.append(("pause",))

    def continue_speaking(self) -> None:
        self.commands.append(("continue",))

    def stop(self) -> None:
        self.commands.append(("stop",))

    def shutdown(self) -> None:
        self.shut_down = True

    @property
    def last(self) -> Utterance:
        return self.spoken[-1]

    def start(self, utterance: Utterance | None = None) -> None:
        self._emit("start", utterance or self.last)

    def paused(self, utterance: Utterance | None = None) -> None:
        self._emit("pause", utterance or self.last)

    def continued(self, utterance: Utterance | None = None) -> None:
        self._emit("continue", utterance or self.last)

    def finish(self, utterance: Utterance | None = None) -> None:
        self._emit("finish", utterance or self.last)

    def cancel(self, utterance: Utterance | None = None) -> None:
        self._emit("cancel", utterance or self.last)

    def will_speak(self, location: int, length: int, utterance: Utterance | None = None) -> None:
        self._emit("will-speak-range", utterance or self.last, location, length)


@pytest.fixture
def engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture
def main_queue() -> MainQueue:
    return MainQueue()


@pytest.fixture
def controller(engine: ScriptedEngine, main_queue: MainQueue) -> SpeechController:
    return SpeechController(engine, main_queue)


@pytest.fixture
def store(tmp_path: Path) -> BookmarkStore:
    return BookmarkStore(tmp_path / "bookmarks.json")
