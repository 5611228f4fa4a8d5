"""parsers/pdf_parser.py — Extract speakable page text from PDF files using pymupdf."""

from pathlib import Path

from models import ExtractedText


def _open(file_path: Path):
    import fitz  # pymupdf

    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"PDF not found: {file_path}")
    return fitz.open(str(file_path))


def pdf_page_count(file_path: Path) -> int:
    doc = _open(file_path)
    try:
        return doc.page_count
    finally:
        doc.close()


def extract_pdf_text(file_path: Path, start_page: int = 0) -> ExtractedText:
    """
    Concatenate the text of every page from start_page to the end.
    Each page's text is followed by a newline; page_offsets records where
    each page begins so offsets can be mapped back to pages.
    """
    if start_page < 0:
        raise ValueError(f"start_page must be non-negative, got {start_page}")

    doc = _open(file_path)
    try:
        parts = []
        page_offsets = []
        position = 0
        for page_num in range(start_page, doc.page_count):
            page_text = doc[page_num].get_text("text") or ""
            page_offsets.append(position)
            parts.append(page_text)
            parts.append("\n")
            position += len(page_text) + 1
    finally:
        doc.close()

    return ExtractedText(text="".join(parts), start_page=start_page, page_offsets=page_offsets)
