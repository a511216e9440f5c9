"""Utilities for persisting uploaded and downloaded PDFs on disk."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional
from urllib.parse import unquote, urlparse
from uuid import uuid4

import httpx

from docchat.errors import ExtractionError

_FILENAME_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(slots=True)
class StoredFile:
    filename: str
    path: Path
    size: int


def _sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename preserving the extension when possible."""
    if not filename:
        filename = "upload"
    # Remove any path components and replace disallowed characters.
    sanitized = Path(filename).name
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", sanitized)
    sanitized = sanitized.strip("._") or "upload"
    return sanitized


def _unique_name(original: str) -> str:
    sanitized = _sanitize_filename(original)
    base = Path(sanitized).stem or "upload"
    suffix = Path(sanitized).suffix or ".pdf"
    return f"{base}-{uuid4().hex}{suffix}"


def save_bytes(upload_dir: str | Path, original_name: str, data: bytes) -> StoredFile:
    """Persist *data* under *upload_dir* with a unique sanitised name."""
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    filename = _unique_name(original_name)
    destination = directory / filename
    destination.write_bytes(data)
    return StoredFile(filename=filename, path=destination.resolve(), size=len(data))


def filename_from_url(url: str) -> str:
    name = Path(unquote(urlparse(url).path)).name
    return name or "document.pdf"


def download_pdf(
    url: str,
    upload_dir: str | Path,
    *,
    timeout: float = 30.0,
    max_bytes: Optional[int] = None,
    client: Optional[httpx.Client] = None,
) -> StoredFile:
    """Fetch *url* and store the body like an uploaded file."""
    try:
        if client is None:
            with httpx.Client(timeout=timeout, follow_redirects=True) as owned:
                response = owned.get(url)
        else:
            response = client.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise ExtractionError(f"Failed to download PDF: {exc}", cause=exc) from exc

    data = response.content
    if max_bytes is not None and len(data) > max_bytes:
        raise ExtractionError(f"Downloaded file exceeds {max_bytes} bytes")
    return save_bytes(upload_dir, filename_from_url(url), data)


__all__ = ["StoredFile", "download_pdf", "filename_from_url", "save_bytes"]
