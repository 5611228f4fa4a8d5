"""config.py — Settings from .env and the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

DEFAULT_BOOKMARKS_PATH = Path.home() / ".readaloud" / "bookmarks.json"
DEFAULT_RATE = 0.5


@dataclass
class Settings:
    bookmarks_path: Path = DEFAULT_BOOKMARKS_PATH
    rate: float = DEFAULT_RATE
    voice: str | None = None
    driver: str | None = None


def parse_rate(value, source: str = "rate") -> float:
    """Parse a normalized speech rate. Raises ValueError outside 0.0-1.0."""
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{source} must be a number between 0.0 and 1.0, got {value!r}") from None
    if not 0.0 <= rate <= 1.0:
        raise ValueError(f"{source} must be between 0.0 and 1.0, got {rate}")
    return rate


def load_settings(env: dict | None = None) -> Settings:
    """Build Settings from an explicit mapping, or from .env plus os.environ."""
    if env is None:
        load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    bookmarks = env.get("READALOUD_BOOKMARKS", "").strip()
    rate = env.get("READALOUD_RATE", "").strip()
    voice = env.get("READALOUD_VOICE", "").strip()
    driver = env.get("READALOUD_DRIVER", "").strip()

    return Settings(
        bookmarks_path=Path(bookmarks).expanduser() if bookmarks else DEFAULT_BOOKMARKS_PATH,
        rate=parse_rate(rate, "READALOUD_RATE") if rate else DEFAULT_RATE,
        voice=voice or None,
        driver=driver or None,
    )
