from __future__ import annotations

import io
from pathlib import Path

import docx
from PyPDF2 import PdfReader

PLAIN_TEXT_EXTENSIONS = {".txt", ".md"}


def extract_resume_text(data: bytes, filename: str) -> str:
    """Extract readable text from a resume upload.

    Raises ValueError for formats that cannot be read (legacy ``.doc`` included).
    """
    extension = Path(filename).suffix.lower()

    if extension in PLAIN_TEXT_EXTENSIONS:
        return _decode_plain(data)
    if extension == ".pdf":
        return _extract_pdf(data)
    if extension == ".docx":
        return _extract_docx(data)
    raise ValueError(f"Unsupported resume format: {extension or filename}")


def _decode_plain(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _extract_pdf(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(page.strip() for page in pages if page.strip())


def _extract_docx(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return "\n".join(paragraph.text for paragraph in document.paragraphs if paragraph.text.strip())
