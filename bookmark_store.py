"""bookmark_store.py — Best-effort persistence of per-document reading positions."""

import json
import os
import tempfile
import threading
from pathlib import Path

from models import BookmarkRecord


def document_key(location) -> str:
    """Stable identity for a document: its absolute file:// URI.

    Strings that already carry a URI scheme (``doc://A``, ``file:///x.pdf``)
    are returned unchanged.
    """
    text = str(location)
    if "://" in text:
        return text
    return Path(text).expanduser().resolve().as_uri()


class BookmarkStore:
    """JSON-backed mapping of document key -> BookmarkRecord.

    The whole mapping is read, updated and rewritten on every save. A lock
    serializes that read-modify-write within the process, and the file is
    replaced atomically so a crash never leaves a half-written mapping.
    Failures never reach the caller: ``save`` becomes a no-op and ``load``
    returns None.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def save(self, key: str, record: BookmarkRecord) -> None:
        try:
            payload = record.to_dict()
            with self._lock:
                bookmarks = self._read_all()
                bookmarks[key] = payload
                self._write_all(bookmarks)
        except (OSError, TypeError, ValueError, AttributeError):
            return

    def load(self, key: str) -> BookmarkRecord | None:
        try:
            with self._lock:
                bookmarks = self._read_all()
            data = bookmarks.get(key)
            if data is None:
                return None
            return BookmarkRecord.from_dict(data)
        except (OSError, ValueError, TypeError):
            return None

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            # Corrupt mapping: start over rather than fail every save.
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, bookmarks: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(bookmarks, indent=2)
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w", encoding="utf-8", suffix=".tmp", delete=False, dir=self.path.parent
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(text)
            os.replace(tmp_path, self.path)
        except Exception:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise
