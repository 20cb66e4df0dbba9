"""Content extraction from uploaded bytes.

Turns raw uploads into page-annotated text (``[Page N]`` blocks) or into
per-page JPEG images. PDF text comes from PyPDF2, page rendering from
PyMuPDF, DOCX paragraphs from python-docx. Formats without real pages
are split into pseudo-pages of a fixed word count.
"""

import asyncio
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import List

from .utils.errors import ExtractionFailed

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

TEXT_EXTENSIONS = (".pdf", ".docx", ".txt")


@dataclass
class PageImage:
    page_number: int
    data: bytes
    mime_type: str = "image/jpeg"


@dataclass
class ExtractedDocument:
    """Extraction output: marker-annotated text, page images, or both empty."""
    text: str = ""
    page_count: int = 0
    page_images: List[PageImage] = field(default_factory=list)


# ===== CLEANING AND PAGINATION =====
def clean_text(text: str) -> str:
    """
    Clean extracted page text by removing artifacts and normalizing whitespace.

    Removes NULL bytes, control characters (except \\n and \\t) and form
    feeds; normalizes CRLF to LF, collapses runs of blank lines and runs
    of spaces.

    Args:
        text: Raw extracted text

    Returns:
        Cleaned text
    """
    if not text:
        return text

    text = text.replace('\x00', '')
    text = text.replace('\r\n', '\n')
    text = text.replace('\f', '\n')
    text = re.sub(r'[\x01-\x08\x0B\x0C\x0D\x0E-\x1F\x7F]', '', text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    text = re.sub(r'[ \t]{2,}', ' ', text)
    return text.strip()


def format_pages(pages: List[str]) -> str:
    """Join page texts into one string with a ``[Page N]`` marker per page."""
    return "".join(f"[Page {number}]\n{page}\n\n" for number, page in enumerate(pages, start=1))


def paginate_words(text: str, words_per_page: int) -> List[str]:
    """Split running text into pseudo-pages of ``words_per_page`` words."""
    if words_per_page <= 0:
        raise ValueError("words_per_page must be positive")

    words = text.split()
    return [
        " ".join(words[start:start + words_per_page])
        for start in range(0, len(words), words_per_page)
    ]


# ===== FILE FORMAT EXTRACTORS =====
def extract_pdf_pages(data: bytes) -> List[str]:
    """
    Extract the text of every PDF page using PyPDF2.

    Pages without a text layer are kept as empty strings so page numbers
    stay aligned with the source document.

    Raises:
        ExtractionFailed: If the PDF is corrupted or unreadable
    """
    try:
        from PyPDF2 import PdfReader
    except ImportError as e:
        raise ImportError("PyPDF2 not installed. Install with: pip install PyPDF2") from e

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = []
        for page_num, page in enumerate(reader.pages, start=1):
            page_text = page.extract_text() or ""
            if not page_text.strip():
                logger.warning(f"[extraction] No text found on PDF page {page_num}")
            pages.append(clean_text(page_text))
    except Exception as e:
        logger.error(f"[extraction] Failed to read PDF: {e}")
        raise ExtractionFailed(f"Failed to read PDF: {e}") from e

    logger.info(f"[extraction] Extracted {len(pages)} pages from PDF")
    return pages


def extract_docx_text(data: bytes) -> str:
    """
    Extract paragraph text from a DOCX file using python-docx.

    Raises:
        ExtractionFailed: If the DOCX is corrupted or unreadable
    """
    try:
        from docx import Document
    except ImportError as e:
        raise ImportError("python-docx not installed. Install with: pip install python-docx") from e

    try:
        doc = Document(io.BytesIO(data))
    except Exception as e:
        logger.error(f"[extraction] Failed to read DOCX: {e}")
        raise ExtractionFailed(f"Failed to read DOCX: {e}") from e

    text = "\n".join(para.text for para in doc.paragraphs if para.text.strip())
    logger.info(f"[extraction] Extracted {len(text)} chars from DOCX")
    return text


def extract_txt_text(data: bytes) -> str:
    """Decode a plain text upload, UTF-8 first with a latin-1 fallback."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("[extraction] Used latin-1 encoding for TXT upload")
        return data.decode("latin-1")


def render_pdf_page_images(data: bytes, scale: float = 1.5, quality: int = 80) -> List[PageImage]:
    """
    Render every PDF page to a JPEG image using PyMuPDF.

    Raises:
        ExtractionFailed: If the PDF cannot be opened or rendered
    """
    try:
        import pymupdf
    except ImportError as e:
        raise ImportError("PyMuPDF not installed. Install with: pip install pymupdf") from e

    try:
        images = []
        with pymupdf.open(stream=data, filetype="pdf") as doc:
            matrix = pymupdf.Matrix(scale, scale)
            for page_num, page in enumerate(doc, start=1):
                pixmap = page.get_pixmap(matrix=matrix)
                images.append(PageImage(page_num, pixmap.tobytes("jpeg", jpg_quality=quality)))
    except Exception as e:
        logger.error(f"[extraction] Failed to render PDF pages: {e}")
        raise ExtractionFailed(f"Failed to render PDF pages: {e}") from e

    logger.info(f"[extraction] Rendered {len(images)} page images")
    return images


def _suffix(filename: str) -> str:
    return PurePath(filename).suffix.lower()


def _text_pages(filename: str, data: bytes, words_per_page: int) -> List[str]:
    suffix = _suffix(filename)

    if suffix == ".pdf":
        return extract_pdf_pages(data)
    if suffix == ".docx":
        return paginate_words(extract_docx_text(data), words_per_page)
    if suffix == ".txt":
        return paginate_words(clean_text(extract_txt_text(data)), words_per_page)
    raise ExtractionFailed(
        f"Unsupported file type: {filename}. Please upload a PDF, DOCX or TXT file."
    )


def _page_images(filename: str, data: bytes, scale: float, quality: int) -> List[PageImage]:
    suffix = _suffix(filename)

    if suffix == ".pdf":
        return render_pdf_page_images(data, scale=scale, quality=quality)
    if suffix in IMAGE_MIME_TYPES:
        if not data:
            raise ExtractionFailed(f"Image upload is empty: {filename}")
        return [PageImage(1, data, IMAGE_MIME_TYPES[suffix])]
    raise ExtractionFailed(f"Unsupported file type for asset extraction: {filename}")


async def extract_text(filename: str, data: bytes, words_per_page: int = 300) -> ExtractedDocument:
    """
    Extract page-annotated text from any supported text format.

    Auto-detects the type by extension and dispatches to the matching
    extractor in a worker thread.

    Raises:
        ExtractionFailed: If the type is unsupported or the file is unreadable
    """
    pages = await asyncio.to_thread(_text_pages, filename, data, words_per_page)
    return ExtractedDocument(text=format_pages(pages), page_count=len(pages))


async def extract_page_images(
    filename: str,
    data: bytes,
    scale: float = 1.5,
    quality: int = 80,
) -> ExtractedDocument:
    """
    Produce one image per page: rendered PDF pages, or the upload itself
    when it is already an image. Rendering runs in a worker thread.

    Raises:
        ExtractionFailed: If the type is unsupported or rendering fails
    """
    images = await asyncio.to_thread(_page_images, filename, data, scale, quality)
    return ExtractedDocument(page_count=len(images), page_images=images)


__all__ = [
    "PageImage",
    "ExtractedDocument",
    "clean_text",
    "format_pages",
    "paginate_words",
    "extract_pdf_pages",
    "extract_docx_text",
    "extract_txt_text",
    "render_pdf_page_images",
    "extract_text",
    "extract_page_images",
]
