"""tts_engine.py — Speech engine boundary and the pyttsx3 on-device driver."""

import itertools
import queue
import threading

from models import Utterance

TOPICS = ("start", "pause", "continue", "finish", "cancel", "will-speak-range")

# Normalized rate 0.0-1.0 maps linearly onto this words-per-minute span.
# 0.5 lands on 200 wpm, pyttsx3's default.
MIN_WPM = 80
MAX_WPM = 320


def rate_to_wpm(rate: float) -> int:
    return int(round(MIN_WPM + rate * (MAX_WPM - MIN_WPM)))


class SpeechEngine:
    """Command surface plus event subscriptions for a speech synthesizer.

    Subscribers register per topic with ``connect``. Utterance events call
    ``callback(utterance)``; ``"will-speak-range"`` calls
    ``callback(utterance, location, length)`` with a range relative to
    ``utterance.text``. Events may arrive on any thread.
    """

    def __init__(self):
        self._subscribers: dict[str, dict[int, object]] = {topic: {} for topic in TOPICS}
        self._tokens = itertools.count(1)
        self._subscribers_lock = threading.Lock()

    def connect(self, topic: str, callback) -> tuple[str, int]:
        if topic not in self._subscribers:
            raise ValueError(f"Unknown engine topic: '{topic}'. Known: {', '.join(TOPICS)}")
        token = (topic, next(self._tokens))
        with self._subscribers_lock:
            self._subscribers[topic][token[1]] = callback
        return token

    def disconnect(self, token: tuple[str, int]) -> None:
        topic, key = token
        with self._subscribers_lock:
            self._subscribers.get(topic, {}).pop(key, None)

    def _emit(self, topic: str, *args) -> None:
        with self._subscribers_lock:
            callbacks = list(self._subscribers[topic].values())
        for callback in callbacks:
            callback(*args)

    def speak(self, utterance: Utterance) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        """Pause at the next word boundary."""
        raise NotImplementedError

    def continue_speaking(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        """Stop immediately; the active utterance is reported as cancelled."""
        raise NotImplementedError

    def shutdown(self) -> None:
        pass


def select_voice(driver, preference: str) -> str | None:
    """Pick a voice by exact id or by case-insensitive name substring."""
    voices = driver.getProperty("voices") or []
    wanted = preference.lower()
    for voice in voices:
        if voice.id == preference:
            return voice.id
    for voice in voices:
        if wanted in (getattr(voice, "name", "") or "").lower():
            return voice.id
    return None


def _pyttsx3_driver(driver_name: str | None):
    import pyttsx3

    return pyttsx3.init(driver_name)


class Pyttsx3Engine(SpeechEngine):
    """SpeechEngine backed by pyttsx3.

    One worker thread owns the pyttsx3 driver and pumps its external loop;
    commands are queued to that thread so the driver is only ever touched
    there. pyttsx3 cannot pause, so a pause stops the driver as the next word
    starts and remembers that word's offset; continuing speaks the rest of the
    same utterance and shifts reported ranges back onto the utterance text.
    """

    def __init__(self, voice: str | None = None, driver_name: str | None = None,
                 poll_interval: float = 0.05, driver_factory=None):
        super().__init__()
        self.voice = voice
        self.driver_name = driver_name
        self.poll_interval = poll_interval
        self._driver_factory = driver_factory or _pyttsx3_driver

        self._commands = queue.SimpleQueue()
        self._driver = None
        self._init_error: BaseException | None = None
        self._ready = threading.Event()

        # Worker-thread state.
        self._segment_seq = itertools.count(1)
        self._segments: dict[str, tuple[Utterance, int, bool]] = {}
        self._current: Utterance | None = None
        self._pause_requested = False
        self._pausing_segment: str | None = None
        self._paused_at: int | None = None

        self._thread = threading.Thread(target=self._run, name="pyttsx3-engine", daemon=True)
        self._thread.start()
        self._ready.wait()
        if self._init_error is not None:
            raise RuntimeError(f"Could not start pyttsx3: {self._init_error}") from self._init_error

    # --- Commands (any thread) ---

    def speak(self, utterance: Utterance) -> None:
        self._commands.put(("speak", utterance))

    def pause(self) -> None:
        self._commands.put(("pause", None))

    def continue_speaking(self) -> None:
        self._commands.put(("continue", None))

    def stop(self) -> None:
        self._commands.put(("stop", None))

    def shutdown(self) -> None:
        self._commands.put(("shutdown", None))
        self._thread.join(timeout=2.0)

    # --- Worker thread ---

    def _run(self) -> None:
        try:
            self._driver = self._driver_factory(self.driver_name)
            if self.voice:
                voice_id = select_voice(self._driver, self.voice)
                if voice_id:
                    self._driver.setProperty("voice", voice_id)
            self._driver.connect("started-utterance", self._on_started)
            self._driver.connect("started-word", self._on_word)
            self._driver.connect("finished-utterance", self._on_finished)
            self._driver.startLoop(False)
        except Exception as e:
            self._init_error = e
            self._ready.set()
            return
        self._ready.set()

        running = True
        while running:
            try:
                command, arg = self._commands.get(timeout=self.poll_interval)
            except queue.Empty:
                pass
            else:
                running = self._handle(command, arg)
            self._driver.iterate()
        self._driver.endLoop()

    def _handle(self, command: str, arg) -> bool:
        if command == "speak":
            self._abandon_current()
            self._current = arg
            self._start_segment(arg, 0, continuation=False)
        elif command == "pause":
            if self._current is not None and self._paused_at is None:
                self._pause_requested = True
        elif command == "continue":
            if self._current is not None and self._paused_at is not None:
                base, self._paused_at = self._paused_at, None
                self._start_segment(self._current, base, continuation=True)
        elif command == "stop":
            self._abandon_current()
        elif command == "shutdown":
            self._abandon_current()
            return False
        return True

    def _abandon_current(self) -> None:
        self._pause_requested = False
        current, self._current = self._current, None
        if current is None:
            return
        # Nothing is running in the driver while paused.
        if self._paused_at is None:
            self._driver.stop()
        self._paused_at = None
        self._pausing_segment = None
        # Late finished-utterance callbacks for these segments are ignored.
        self._segments = {
            name: segment for name, segment in self._segments.items()
            if segment[0].id != current.id
        }
        self._emit("cancel", current)

    def _start_segment(self, utterance: Utterance, base: int, continuation: bool) -> None:
        name = f"{utterance.id}.{next(self._segment_seq)}"
        self._segments[name] = (utterance, base, continuation)
        self._driver.setProperty("rate", rate_to_wpm(utterance.rate))
        self._driver.say(utterance.text[base:], name)

    def _on_started(self, name) -> None:
        segment = self._segments.get(name)
        if segment is None:
            return
        utterance, _, continuation = segment
        self._emit("continue" if continuation else "start", utterance)

    def _on_word(self, name, location, length) -> None:
        segment = self._segments.get(name)
        if segment is None:
            return
        utterance, base, _ = segment
        if self._pause_requested and utterance is self._current:
            self._pause_requested = False
            self._pausing_segment = name
            self._paused_at = base + location
            self._driver.stop()
            return
        self._emit("will-speak-range", utterance, base + location, length)

    def _on_finished(self, name, completed) -> None:
        segment = self._segments.pop(name, None)
        if segment is None:
            return
        utterance = segment[0]
        if name == self._pausing_segment:
            self._pausing_segment = None
            self._emit("pause", utterance)
            return
        if utterance is self._current:
            self._current = None
            self._pause_requested = False
        self._emit("finish" if completed else "cancel", utterance)
