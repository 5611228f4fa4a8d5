"""models.py — Shared data types for readaloud."""

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum


@dataclass
class BookmarkRecord:
    page_index: int      # 0-based page the reader was viewing
    speech_offset: int   # Character offset into the text extracted from page_index

    def to_dict(self) -> dict:
        return {"pageIndex": self.page_index, "speechOffset": self.speech_offset}

    @classmethod
    def from_dict(cls, data) -> "BookmarkRecord":
        """Rebuild a record from its stored form. Raises ValueError on bad payloads."""
        if not isinstance(data, dict):
            raise ValueError(f"Bookmark payload must be an object, got {type(data).__name__}")
        values = []
        for name in ("pageIndex", "speechOffset"):
            value = data.get(name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Bookmark field '{name}' must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"Bookmark field '{name}' must be non-negative, got {value}")
            values.append(value)
        return cls(page_index=values[0], speech_offset=values[1])


@dataclass(frozen=True)
class SpokenRange:
    location: int = 0
    length: int = 0

    @property
    def end(self) -> int:
        return self.location + self.length

    @property
    def is_empty(self) -> bool:
        return self.length == 0

    def shifted(self, offset: int) -> "SpokenRange":
        return SpokenRange(self.location + offset, self.length)


class PlaybackState(Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    PAUSED = "paused"


@dataclass(frozen=True)
class Utterance:
    id: int          # Generation number, unique per controller
    text: str
    rate: float      # Normalized speed in [0, 1]


@dataclass(frozen=True)
class PlaybackSnapshot:
    state: PlaybackState
    is_speaking: bool
    spoken_range: SpokenRange


@dataclass
class ExtractedText:
    text: str
    start_page: int = 0
    page_offsets: list[int] = field(default_factory=list)  # offset where each page starts

    @property
    def end_page(self) -> int:
        """Index one past the last extracted page."""
        return self.start_page + len(self.page_offsets)

    def page_at(self, offset: int) -> int:
        """Return the page index containing the character at offset."""
        if not self.page_offsets:
            return self.start_page
        i = bisect_right(self.page_offsets, offset) - 1
        return self.start_page + max(i, 0)

    def offset_of_page(self, page_index: int) -> int:
        """Return the character offset where page_index begins in the text."""
        if not self.page_start_in_range(page_index):
            raise ValueError(
                f"Page {page_index} is outside the extracted range "
                f"{self.start_page}-{self.end_page - 1}"
            )
        return self.page_offsets[page_index - self.start_page]

    def page_start_in_range(self, page_index: int) -> bool:
        return self.start_page <= page_index < self.end_page
