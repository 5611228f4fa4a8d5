"""parsers/ — Document text sources for read-aloud."""

from pathlib import Path

from models import ExtractedText

SUPPORTED_EXTENSIONS = {".pdf"}


def _check_supported(file_path: Path) -> None:
    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported file format: '{suffix}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )


def extract_text(file_path: Path, start_page: int = 0) -> ExtractedText:
    """Dispatch to the appropriate extractor based on file extension."""
    file_path = Path(file_path)
    _check_supported(file_path)
    from parsers.pdf_parser import extract_pdf_text
    return extract_pdf_text(file_path, start_page)


def page_count(file_path: Path) -> int:
    file_path = Path(file_path)
    _check_supported(file_path)
    from parsers.pdf_parser import pdf_page_count
    return pdf_page_count(file_path)
