"""Text extraction for uploaded PDF documents."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from pdfminer.high_level import extract_text as pdf_extract_text
from pdfminer.pdfdocument import PDFDocument
from pdfminer.pdfpage import PDFPage
from pdfminer.pdfparser import PDFParser
from pdfminer.pdftypes import resolve1
from pdfminer.utils import decode_text

from docchat.errors import ExtractionError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractedPDF:
    text: str
    pages: int
    info: Dict[str, str] = field(default_factory=dict)


def _info_value(value: Any) -> str:
    value = resolve1(value)
    if isinstance(value, bytes):
        return decode_text(value)
    return "" if value is None else str(value)


def _read_structure(data: bytes) -> tuple[int, Dict[str, str]]:
    parser = PDFParser(io.BytesIO(data))
    document = PDFDocument(parser)
    info: Dict[str, str] = {}
    for entry in document.info:
        for key, value in entry.items():
            text = _info_value(value).strip()
            if text:
                info[str(key)] = text
    pages = sum(1 for _ in PDFPage.create_pages(document))
    return pages, info


def extract_pdf(data: bytes) -> ExtractedPDF:
    """Return the text, page count and info dictionary of a PDF byte string."""

    if not data:
        raise ExtractionError("Failed to parse PDF: empty file")
    try:
        pages, info = _read_structure(data)
        text = pdf_extract_text(io.BytesIO(data))
    except Exception as exc:
        LOGGER.warning("PDF extraction failed: %s", exc)
        raise ExtractionError(f"Failed to parse PDF: {exc}", cause=exc) from exc
    return ExtractedPDF(text=text or "", pages=pages, info=info)


def extract_pdf_file(path: str | Path) -> ExtractedPDF:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise ExtractionError(f"Failed to read PDF {path}", cause=exc) from exc
    return extract_pdf(data)


__all__ = ["ExtractedPDF", "extract_pdf", "extract_pdf_file"]
