"""session.py — One open document: bookmark restore/save wired to speech playback."""

from pathlib import Path

from bookmark_store import BookmarkStore, document_key
from models import BookmarkRecord, ExtractedText, PlaybackState, SpokenRange
from parsers import extract_text
from speech_controller import SpeechController


class ReadingSession:
    """Connects a document, its bookmark and the speech controller.

    ``current_page`` is the page the reader is viewing. The persisted
    ``speech_offset`` is measured from the start of that page's text, so a
    reopened session extracts from the saved page and cues speech at the
    saved offset.
    """

    def __init__(self, path: Path, store: BookmarkStore, controller: SpeechController,
                 extractor=extract_text, key: str | None = None):
        self.path = Path(path)
        self.key = key or document_key(self.path)
        self.store = store
        self.controller = controller
        self.extractor = extractor
        self.current_page = 0
        self.extracted: ExtractedText | None = None

    def open(self) -> BookmarkRecord | None:
        """Restore the saved page and, if one was saved, the speech position."""
        record = self.store.load(self.key)
        self.current_page = record.page_index if record else 0
        if record and record.speech_offset > 0:
            self.extracted = self.extractor(self.path, record.page_index)
            self.controller.cue(self.extracted.text, record.speech_offset)
        return record

    def read_document(self, rate: float) -> None:
        self._speak(self.extractor(self.path, 0), rate)

    def read_from_page(self, rate: float, page: int | None = None) -> None:
        """Speak from the current (or given) page and bookmark that page."""
        if page is not None:
            self.go_to_page(page)
        self._speak(self.extractor(self.path, self.current_page), rate)
        self.store.save(self.key, BookmarkRecord(page_index=self.current_page, speech_offset=0))

    def go_to_page(self, page_index: int) -> None:
        if page_index < 0:
            raise ValueError(f"Page index must be non-negative, got {page_index}")
        self.current_page = page_index

    def speaking_page(self) -> int | None:
        """Page that contains the current speech position, if text is loaded.

        None after a natural finish: the position has been reset to 0 and no
        longer says where reading ended.
        """
        if not self._speech_matches_extracted():
            return None
        controller = self.controller
        if (controller.state is PlaybackState.IDLE
                and controller.active_utterance is None
                and controller.spoken_range == SpokenRange()):
            return None
        return self.extracted.page_at(self.controller.offset)

    def pause(self) -> None:
        self.controller.pause()

    def resume(self, rate: float) -> None:
        self.controller.play_or_resume(rate)

    def stop(self) -> None:
        self.controller.stop()

    def change_rate(self, rate: float) -> None:
        """Apply a new rate to speech in progress by restarting at the current position."""
        # state flips to IDLE on stop() itself; is_speaking waits for the engine.
        if self.controller.state is PlaybackState.SPEAKING:
            self.controller.play_or_resume(rate)

    def bookmark(self) -> BookmarkRecord:
        return BookmarkRecord(
            page_index=self.current_page,
            speech_offset=self._speech_offset_from(self.current_page),
        )

    def save(self) -> BookmarkRecord:
        record = self.bookmark()
        self.store.save(self.key, record)
        return record

    def close(self) -> BookmarkRecord:
        self.controller.stop()
        return self.save()

    def _speak(self, extracted: ExtractedText, rate: float) -> None:
        self.extracted = extracted
        self.controller.speak_from_beginning(extracted.text, rate)

    def _speech_matches_extracted(self) -> bool:
        return (
            self.extracted is not None
            and bool(self.controller.full_text)
            and self.controller.full_text == self.extracted.text
        )

    def _speech_offset_from(self, page_index: int) -> int:
        # Only meaningful when speech is positioned at or after page_index.
        if not self._speech_matches_extracted():
            return 0
        if not self.extracted.page_start_in_range(page_index):
            return 0
        return max(self.controller.offset - self.extracted.offset_of_page(page_index), 0)
