"""speech_controller.py — Play/pause/resume/stop over a speech engine, with a resumable position."""

import itertools
from functools import partial

from dispatch import MainQueue
from models import PlaybackSnapshot, PlaybackState, SpokenRange, Utterance
from tts_engine import SpeechEngine


class SpeechController:
    """Owns one SpeechEngine and the text currently loaded for playback.

    Commands are expected from a single caller on the dispatcher's consumer
    context. Engine events may arrive on any thread; each is posted to the
    dispatcher and applied there, so observers only ever see state changes
    on that one context.

    Position tracking: ``spoken_range`` is the last range the engine reported
    as about to be spoken, expressed in ``full_text`` coordinates. A resumed
    utterance covers ``full_text[base:]``, so each engine report is shifted by
    that base before it is stored. ``utterance_range`` keeps the raw report.
    The position is reset only by natural completion or by loading new text;
    pause, stop and engine cancellation leave it alone.
    """

    def __init__(self, engine: SpeechEngine, dispatcher=None):
        self._engine = engine
        self._dispatcher = dispatcher if dispatcher is not None else MainQueue()
        self._ids = itertools.count(1)
        self._observers = []

        self.full_text = ""
        self.state = PlaybackState.IDLE
        self.is_speaking = False
        self.spoken_range = SpokenRange()
        self.utterance_range = SpokenRange()

        self._utterance: Utterance | None = None
        self._base_offset = 0

        self._tokens = [
            engine.connect("start", self._marshal(self._on_start)),
            engine.connect("pause", self._marshal(self._on_pause)),
            engine.connect("continue", self._marshal(self._on_continue)),
            engine.connect("finish", self._marshal(self._on_finish)),
            engine.connect("cancel", self._marshal(self._on_cancel)),
            engine.connect("will-speak-range", self._marshal(self._on_will_speak_range)),
        ]

    @property
    def dispatcher(self):
        return self._dispatcher

    @property
    def offset(self) -> int:
        """Absolute character offset into full_text where speech would resume."""
        return self.spoken_range.location

    @property
    def active_utterance(self) -> Utterance | None:
        return self._utterance

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(self.state, self.is_speaking, self.spoken_range)

    def subscribe(self, callback):
        """Call ``callback(snapshot)`` after every published change. Returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    # --- Commands ---

    def speak_from_beginning(self, text: str, rate: float) -> None:
        """Replace whatever is loaded and speak ``text`` from offset 0."""
        self._halt()
        self.full_text = text or ""
        self._base_offset = 0
        self.spoken_range = SpokenRange()
        self.utterance_range = SpokenRange()
        self._start_utterance(0, rate)

    def play_or_resume(self, rate: float) -> None:
        """Continue a paused utterance in place, or restart from the saved position.

        While paused the engine continues the same utterance and ``rate`` is not
        applied. While idle or speaking with text loaded, a new utterance is
        built from ``full_text`` at the current position at ``rate``. With no
        text loaded this does nothing.
        """
        if self.state is PlaybackState.PAUSED and self._utterance is not None:
            self._engine.continue_speaking()
            self.state = PlaybackState.SPEAKING
            self._publish()
        elif self.full_text:
            self._halt()
            self._start_utterance(self.spoken_range.location, rate)

    def pause(self) -> None:
        """Ask the engine to pause at the next word boundary."""
        if self.state is PlaybackState.SPEAKING:
            self._engine.pause()

    def stop(self) -> None:
        """Halt immediately, keeping the position for a later play_or_resume."""
        if self._utterance is None and self.state is PlaybackState.IDLE:
            return
        self._engine.stop()
        self.state = PlaybackState.IDLE
        self._publish()

    def cue(self, text: str, offset: int = 0) -> None:
        """Load ``text`` without speaking and put the position at ``offset``."""
        self._halt()
        self.full_text = text or ""
        offset = min(max(offset, 0), len(self.full_text))
        self._base_offset = 0
        self.spoken_range = SpokenRange(offset, 0)
        self.utterance_range = SpokenRange()
        self.state = PlaybackState.IDLE
        self._publish()

    def shutdown(self) -> None:
        self._halt()
        for token in self._tokens:
            self._engine.disconnect(token)
        self._tokens = []
        self._engine.shutdown()

    # --- Internals ---

    def _halt(self) -> None:
        """Stop the active utterance; its late events become stale."""
        if self._utterance is not None:
            self._engine.stop()
            self._utterance = None
        self.state = PlaybackState.IDLE

    def _start_utterance(self, offset: int, rate: float) -> None:
        utterance = Utterance(id=next(self._ids), text=self.full_text[offset:], rate=rate)
        self._utterance = utterance
        self._base_offset = offset
        self.state = PlaybackState.SPEAKING
        self._engine.speak(utterance)
        self._publish()

    def _marshal(self, handler):
        def post(*args):
            self._dispatcher.post(partial(handler, *args))

        return post

    def _is_current(self, utterance: Utterance) -> bool:
        return self._utterance is not None and utterance.id == self._utterance.id

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._observers):
            callback(snapshot)

    # --- Engine events (dispatcher context) ---

    def _on_start(self, utterance: Utterance) -> None:
        if not self._is_current(utterance):
            return
        self.is_speaking = True
        self.state = PlaybackState.SPEAKING
        self._publish()

    def _on_pause(self, utterance: Utterance) -> None:
        if not self._is_current(utterance):
            return
        self.is_speaking = False
        self.state = PlaybackState.PAUSED
        self._publish()

    def _on_continue(self, utterance: Utterance) -> None:
        if not self._is_current(utterance):
            return
        self.is_speaking = True
        self.state = PlaybackState.SPEAKING
        self._publish()

    def _on_finish(self, utterance: Utterance) -> None:
        if not self._is_current(utterance):
            return
        self._utterance = None
        self.is_speaking = False
        self.state = PlaybackState.IDLE
        self._base_offset = 0
        self.spoken_range = SpokenRange()
        self.utterance_range = SpokenRange()
        self._publish()

    def _on_cancel(self, utterance: Utterance) -> None:
        if not self._is_current(utterance):
            return
        self._utterance = None
        self.is_speaking = False
        self.state = PlaybackState.IDLE
        self._publish()

    def _on_will_speak_range(self, utterance: Utterance, location: int, length: int) -> None:
        if not self._is_current(utterance):
            return
        self.utterance_range = SpokenRange(location, length)
        self.spoken_range = self.utterance_range.shifted(self._base_offset)
        self._publish()
