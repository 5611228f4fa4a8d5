import threading

from dispatch import InlineDispatcher, MainQueue
from models import PlaybackState, SpokenRange
from speech_controller import SpeechController


def test_speak_from_beginning_starts_at_zero(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("hello world", 0.5)
    engine.start()
    main_queue.run_pending()

    assert engine.last.text == "hello world"
    assert engine.last.rate == 0.5
    assert controller.state is PlaybackState.SPEAKING
    assert controller.is_speaking is True
    assert controller.spoken_range == SpokenRange(0, 0)


def test_speak_from_beginning_resets_previous_position(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("first text here", 0.5)
    engine.start()
    engine.will_speak(6, 4)
    main_queue.run_pending()
    assert controller.spoken_range == SpokenRange(6, 4)

    controller.speak_from_beginning("second", 0.7)
    assert controller.spoken_range == SpokenRange(0, 0)
    engine.start()
    main_queue.run_pending()
    assert controller.spoken_range == SpokenRange(0, 0)
    assert controller.is_speaking is True
    assert controller.full_text == "second"


def test_speak_from_beginning_stops_active_utterance_first(controller, engine) -> None:
    controller.speak_from_beginning("one", 0.5)
    controller.speak_from_beginning("two", 0.5)

    first, second = engine.spoken
    assert engine.commands == [("speak", first.id), ("stop",), ("speak", second.id)]
    assert controller.active_utterance == second


def test_hello_world_pause_resume_finish(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("hello world", 0.5)
    engine.start()
    engine.will_speak(0, 5)
    main_queue.run_pending()

    controller.pause()
    assert engine.commands[-1] == ("pause",)
    engine.paused()
    main_queue.run_pending()
    assert controller.spoken_range == SpokenRange(0, 5)
    assert controller.is_speaking is False
    assert controller.state is PlaybackState.PAUSED

    controller.play_or_resume(0.5)
    assert engine.commands[-1] == ("continue",)
    assert len(engine.spoken) == 1
    engine.continued()
    engine.will_speak(6, 5)
    engine.finish()
    main_queue.run_pending()

    assert controller.spoken_range == SpokenRange(0, 0)
    assert controller.is_speaking is False
    assert controller.state is PlaybackState.IDLE


def test_stop_preserves_spoken_range(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("the quick brown fox", 0.5)
    engine.start()
    engine.will_speak(10, 5)
    main_queue.run_pending()
    before = controller.spoken_range

    controller.stop()
    engine.cancel()
    main_queue.run_pending()

    assert controller.spoken_range == before
    assert controller.is_speaking is False
    assert controller.state is PlaybackState.IDLE


def test_resume_after_stop_uses_remaining_text(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("abcdef", 0.5)
    engine.start()
    engine.will_speak(2, 0)
    main_queue.run_pending()
    controller.pause()
    engine.paused()
    main_queue.run_pending()

    controller.stop()
    engine.cancel()
    main_queue.run_pending()

    controller.play_or_resume(0.4)
    assert engine.last.text == "cdef"
    assert engine.last.rate == 0.4
    assert controller.state is PlaybackState.SPEAKING


def test_resume_tracks_absolute_offset_across_cycles(controller, engine, main_queue) -> None:
    text = "one two three four five"
    controller.speak_from_beginning(text, 0.5)
    engine.start()
    engine.will_speak(4, 3)
    main_queue.run_pending()
    controller.stop()
    engine.cancel()
    main_queue.run_pending()

    controller.play_or_resume(0.5)
    assert engine.last.text == "two three four five"
    engine.start()
    # "three" is at 4 in the resumed text, 8 in the full text
    engine.will_speak(4, 5)
    main_queue.run_pending()
    assert controller.utterance_range == SpokenRange(4, 5)
    assert controller.spoken_range == SpokenRange(8, 5)
    assert text[controller.offset:].startswith("three")

    controller.stop()
    engine.cancel()
    main_queue.run_pending()
    controller.play_or_resume(0.5)
    assert engine.last.text == "three four five"


def test_play_or_resume_without_text_is_noop(controller, engine) -> None:
    controller.play_or_resume(0.5)
    assert engine.commands == []
    assert controller.state is PlaybackState.IDLE


def test_play_or_resume_after_finish_restarts_from_beginning(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("all done", 0.5)
    engine.start()
    engine.will_speak(4, 4)
    engine.finish()
    main_queue.run_pending()

    controller.play_or_resume(0.5)
    assert engine.last.text == "all done"


def test_play_or_resume_while_speaking_applies_new_rate(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("alpha beta gamma", 0.5)
    engine.start()
    engine.will_speak(6, 4)
    main_queue.run_pending()
    first = engine.last

    controller.play_or_resume(0.8)
    assert engine.commands[-2:] == [("stop",), ("speak", engine.last.id)]
    assert engine.last.text == "beta gamma"
    assert engine.last.rate == 0.8

    # The cancellation of the replaced utterance arrives late and is ignored.
    engine.start()
    engine.cancel(first)
    main_queue.run_pending()
    assert controller.is_speaking is True
    assert controller.state is PlaybackState.SPEAKING


def test_stale_finish_does_not_reset_new_session(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("old text", 0.5)
    old = engine.last
    controller.speak_from_beginning("new text", 0.5)
    engine.start()
    engine.will_speak(4, 4)
    engine.finish(old)
    engine.will_speak(0, 3, old)
    main_queue.run_pending()

    assert controller.spoken_range == SpokenRange(4, 4)
    assert controller.is_speaking is True


def test_engine_cancel_keeps_position(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("interrupted speech", 0.5)
    engine.start()
    engine.will_speak(12, 6)
    engine.cancel()
    main_queue.run_pending()

    assert controller.state is PlaybackState.IDLE
    assert controller.is_speaking is False
    assert controller.spoken_range == SpokenRange(12, 6)


def test_pause_only_requested_while_speaking(controller, engine) -> None:
    controller.pause()
    assert engine.commands == []


def test_stop_when_idle_is_noop(controller, engine) -> None:
    controller.stop()
    assert engine.commands == []


def test_empty_text_still_reaches_engine(controller, engine) -> None:
    controller.speak_from_beginning("", 0.5)
    assert engine.last.text == ""
    controller.play_or_resume(0.5)
    assert len(engine.spoken) == 1


def test_cue_positions_without_speaking(controller, engine) -> None:
    controller.cue("restored document text", 9)
    assert engine.spoken == []
    assert controller.state is PlaybackState.IDLE
    assert controller.offset == 9

    controller.play_or_resume(0.5)
    assert engine.last.text == "document text"


def test_cue_clamps_offset(controller) -> None:
    controller.cue("short", 99)
    assert controller.offset == 5


def test_events_apply_only_on_dispatcher_context(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("threaded", 0.5)
    worker = threading.Thread(target=lambda: (engine.start(), engine.will_speak(0, 8)))
    worker.start()
    worker.join()

    assert controller.is_speaking is False
    assert controller.spoken_range == SpokenRange(0, 0)
    assert main_queue.run_pending() == 2
    assert controller.is_speaking is True
    assert controller.spoken_range == SpokenRange(0, 8)


def test_observers_run_on_consumer_thread(engine) -> None:
    main_queue = MainQueue()
    controller = SpeechController(engine, main_queue)
    seen = []
    controller.subscribe(lambda snap: seen.append((threading.get_ident(), snap)))

    controller.speak_from_beginning("text", 0.5)
    worker = threading.Thread(target=engine.start)
    worker.start()
    worker.join()
    main_queue.run_pending()

    assert {ident for ident, _ in seen} == {threading.get_ident()}
    assert seen[-1][1].is_speaking is True


def test_unsubscribe_stops_notifications(controller, engine, main_queue) -> None:
    seen = []
    unsubscribe = controller.subscribe(seen.append)
    controller.speak_from_beginning("text", 0.5)
    count = len(seen)
    unsubscribe()
    engine.start()
    main_queue.run_pending()
    assert len(seen) == count


def test_inline_dispatcher_applies_immediately(engine) -> None:
    controller = SpeechController(engine, InlineDispatcher())
    controller.speak_from_beginning("now", 0.5)
    engine.start()
    assert controller.is_speaking is True


def test_shutdown_releases_engine(controller, engine, main_queue) -> None:
    controller.speak_from_beginning("bye", 0.5)
    controller.shutdown()
    assert engine.shut_down is True
    engine.start()
    assert main_queue.empty()
