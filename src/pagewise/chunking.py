"""Page-aligned chunking of extracted documents."""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .extraction import PageImage

logger = logging.getLogger(__name__)

PAGE_MARKER_RE = re.compile(r"\[Page (\d+)\]")
_PAGE_SPLIT_RE = re.compile(r"(?=\[Page \d+\])")


@dataclass
class Chunk:
    """One unit of inference work: a run of whole pages, or one page image."""
    index: int
    pages: Tuple[int, int]
    text: Optional[str] = None
    image: Optional[PageImage] = None


def split_pages(text: str) -> List[str]:
    """
    Split marker-annotated text into page blocks.

    Each block starts with its ``[Page N]`` marker. Text before the first
    marker is kept as a block of its own; empty strings are dropped.
    """
    if not text:
        return []
    return [block for block in _PAGE_SPLIT_RE.split(text) if block]


def _page_number(block: str, fallback: int) -> int:
    match = PAGE_MARKER_RE.match(block)
    return int(match.group(1)) if match else fallback


def chunk_pages(text: str, pages_per_chunk: int = 25) -> List[Chunk]:
    """
    Group page blocks into chunks of at most ``pages_per_chunk`` pages.

    Chunks never split a page and never overlap; concatenating their text
    in order gives back the input exactly.

    Args:
        text: Extracted text with ``[Page N]`` markers
        pages_per_chunk: Maximum number of whole pages per chunk

    Returns:
        Ordered chunks; empty when the text has no pages
    """
    if pages_per_chunk <= 0:
        raise ValueError("pages_per_chunk must be positive")

    blocks = split_pages(text)
    chunks = []

    for start in range(0, len(blocks), pages_per_chunk):
        group = blocks[start:start + pages_per_chunk]
        first = _page_number(group[0], start + 1)
        last = _page_number(group[-1], start + len(group))
        chunks.append(Chunk(index=len(chunks), pages=(first, last), text="".join(group)))

    logger.info(
        f"[chunking] Split {len(blocks)} pages into {len(chunks)} chunks "
        f"(pages_per_chunk={pages_per_chunk})"
    )
    return chunks


def chunk_page_images(images: Sequence[PageImage]) -> List[Chunk]:
    """One chunk per page image, in page order."""
    return [
        Chunk(index=index, pages=(image.page_number, image.page_number), image=image)
        for index, image in enumerate(images)
    ]


__all__ = ["Chunk", "split_pages", "chunk_pages", "chunk_page_images", "PAGE_MARKER_RE"]
