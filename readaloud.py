#!/usr/bin/env python3
"""
readaloud — Read PDF documents aloud with on-device text-to-speech.

Remembers where you left off: the page you were on and, if you stopped
mid-page, the exact spot speech stopped.

Quick start:
  1. python readaloud.py book.pdf --dry-run
  2. python readaloud.py book.pdf
  3. python readaloud.py book.pdf --page 12 --rate 0.6

While reading, type a key and press Enter:
  p pause   r resume   s stop   b save bookmark   + faster   - slower   q quit
"""

import argparse
import sys
import threading
from functools import partial
from pathlib import Path

from config import load_settings, parse_rate

RATE_STEP = 0.05


def _rate_arg(value: str) -> float:
    try:
        return parse_rate(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Read a PDF aloud, resuming from the saved bookmark",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show page count, saved bookmark and text size without speaking:
  python readaloud.py book.pdf --dry-run

  # Continue from the bookmark (or the first page):
  python readaloud.py book.pdf

  # Read from page 12 (0-based) at a faster rate:
  python readaloud.py book.pdf --page 12 --rate 0.6

  # Ignore the bookmark and read the whole document:
  python readaloud.py book.pdf --from-start
        """,
    )
    parser.add_argument("input_path", type=Path, help="Path to a PDF file")
    parser.add_argument(
        "--page", type=int, default=None, metavar="N",
        help="Start reading at this 0-based page instead of the bookmark",
    )
    parser.add_argument(
        "--from-start", action="store_true", default=False,
        help="Read the whole document from the first page",
    )
    parser.add_argument(
        "--rate", type=_rate_arg, default=None, metavar="R",
        help="Speech rate between 0.0 and 1.0 (default: READALOUD_RATE or 0.5)",
    )
    parser.add_argument(
        "--voice", type=str, default=None, metavar="VOICE",
        help="Voice id or part of a voice name (default: READALOUD_VOICE)",
    )
    parser.add_argument(
        "--driver", type=str, default=None, metavar="NAME",
        help="pyttsx3 driver, e.g. espeak, nsss, sapi5 (default: platform default)",
    )
    parser.add_argument(
        "--bookmarks", type=Path, default=None, metavar="FILE",
        help="Bookmark file (default: READALOUD_BOOKMARKS or ~/.readaloud/bookmarks.json)",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Print document and bookmark details without speaking",
    )
    return parser.parse_args(argv)


def print_document_summary(path: Path, pages: int, record, chars: int | None = None):
    print(f"Document: {path}")
    print(f"Pages:    {pages}")
    if record:
        print(f"Bookmark: page {record.page_index + 1}, speech offset {record.speech_offset}")
    else:
        print("Bookmark: none")
    if chars is not None:
        print(f"Text:     {chars:,} chars")
    print()


def _read_keys(stream, dispatcher, handle_key):
    """Forward each typed line to handle_key on the dispatcher's thread."""
    for line in stream:
        key = line.strip().lower()
        if key:
            dispatcher.post(partial(handle_key, key))


def run_interactive(session, rate: float, stream=None) -> None:
    """Drive playback until speech finishes naturally or the user quits."""
    from tqdm import tqdm

    from models import PlaybackState, SpokenRange

    controller = session.controller
    dispatcher = controller.dispatcher
    status = {"running": True, "rate": rate, "started": False, "held": False}

    bar = tqdm(total=len(controller.full_text), desc=f"  {session.path.name[:40]}", unit="char")

    def on_change(snapshot):
        bar.total = len(controller.full_text)
        bar.n = min(snapshot.spoken_range.end, bar.total)
        bar.refresh()
        page = session.speaking_page()
        if page is not None:
            session.go_to_page(page)
        if snapshot.is_speaking:
            status["started"] = True
        finished = (
            status["started"]
            and not status["held"]
            and snapshot.state is PlaybackState.IDLE
            and controller.active_utterance is None
            and snapshot.spoken_range == SpokenRange()
        )
        if finished:
            status["running"] = False

    def handle_key(key):
        if key == "p":
            session.pause()
        elif key == "r":
            status["held"] = False
            session.resume(status["rate"])
        elif key == "s":
            status["held"] = True
            session.stop()
        elif key == "b":
            record = session.save()
            tqdm.write(f"  Saved bookmark at page index: {record.page_index}")
        elif key in ("+", "-"):
            step = RATE_STEP if key == "+" else -RATE_STEP
            status["rate"] = round(min(max(status["rate"] + step, 0.0), 1.0), 2)
            tqdm.write(f"  Voice speed: {status['rate']:.2f}")
            session.change_rate(status["rate"])
        elif key == "q":
            status["running"] = False
        else:
            tqdm.write(f"  Unknown key '{key}'. Use p, r, s, b, +, - or q.")

    unsubscribe = controller.subscribe(on_change)
    reader = threading.Thread(
        target=_read_keys, args=(stream or sys.stdin, dispatcher, handle_key), daemon=True
    )
    reader.start()
    try:
        while status["running"]:
            dispatcher.run_pending(timeout=0.1)
    except KeyboardInterrupt:
        print()
    finally:
        unsubscribe()
        bar.close()


def main():
    args = parse_args()

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    rate = args.rate if args.rate is not None else settings.rate
    bookmarks_path = args.bookmarks or settings.bookmarks_path

    # Lazy imports keep --help fast
    from bookmark_store import BookmarkStore, document_key
    from parsers import extract_text, page_count

    input_path = args.input_path
    if not input_path.exists():
        print(f"ERROR: File not found: {input_path}")
        sys.exit(1)

    try:
        pages = page_count(input_path)
    except (ValueError, RuntimeError) as e:
        print(f"ERROR: Could not open {input_path}: {e}")
        sys.exit(1)

    if args.page is not None and not 0 <= args.page < max(pages, 1):
        print(f"ERROR: Page {args.page} out of range (document has {pages} pages, 0-based)")
        sys.exit(1)

    store = BookmarkStore(bookmarks_path)
    record = store.load(document_key(input_path))

    if args.dry_run:
        start_page = args.page if args.page is not None else (record.page_index if record else 0)
        extracted = extract_text(input_path, 0 if args.from_start else start_page)
        print_document_summary(input_path, pages, record, len(extracted.text))
        print("Dry run complete. Nothing spoken.")
        return

    print_document_summary(input_path, pages, record)

    from session import ReadingSession
    from speech_controller import SpeechController
    from tts_engine import Pyttsx3Engine

    try:
        engine = Pyttsx3Engine(voice=args.voice or settings.voice, driver_name=args.driver or settings.driver)
    except RuntimeError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    controller = SpeechController(engine)
    session = ReadingSession(input_path, store, controller)
    session.open()
    print(f"Voice speed: {rate:.2f}")

    if args.from_start:
        print("Reading document from the beginning")
        session.read_document(rate)
    elif args.page is not None:
        print(f"Reading from page {args.page + 1}")
        session.read_from_page(rate, args.page)
    elif controller.full_text:
        print(f"Resuming page {session.current_page + 1} at offset {controller.offset}")
        controller.play_or_resume(rate)
    else:
        print(f"Reading from page {session.current_page + 1}")
        session.read_from_page(rate)

    try:
        run_interactive(session, rate)
    finally:
        record = session.close()
        controller.dispatcher.run_pending()
        print(f"Saving bookmark at page index: {record.page_index}")
        controller.shutdown()


if __name__ == "__main__":
    main()
