"""
Guideline PDF Chunker

Splits extracted guideline text into heading-delimited sections, cuts long
sections into overlapping windows that prefer sentence boundaries, prefixes
every window with its section heading, and merges undersized chunks.

A heading with no body lines is not dropped. It becomes a heading-only
chunk that the merge pass folds into the following text, so a chapter
heading directly above a section heading ends up in front of that
section's first chunk.

A page-per-chunk mode is kept for diagnostics.
"""

import re
import logging
from dataclasses import dataclass, replace
from typing import Optional

from .chunks import Chunk, GuidelineChunkMetadata
from .documents import PdfDocument
from .language_patterns import (
    GUIDELINE_SECTION_PATTERN,
    LABELS,
    SENTENCE_TERMINATOR,
)
from .merge import merge_small_chunks

logger = logging.getLogger(__name__)

_CHUNK_SUFFIX = re.compile(r"-chunk\d+$")


@dataclass
class GuidelineChunkerOptions:
    """Configuration for guideline chunking (sizes in characters)."""
    chunk_size: int = 1000
    chunk_overlap: int = 200
    section_pattern: re.Pattern = GUIDELINE_SECTION_PATTERN
    min_chunk_size: int = 100
    # Defaults to chunk_size
    max_chunk_size: Optional[int] = None

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {self.chunk_overlap}"
            )
        if isinstance(self.section_pattern, str):
            self.section_pattern = re.compile(self.section_pattern)

    @property
    def merge_max_size(self) -> int:
        return self.max_chunk_size or self.chunk_size


@dataclass
class Section:
    """A heading and the body lines that follow it."""
    title: Optional[str]
    content: str


def split_into_sections(text: str, section_pattern: re.Pattern) -> list[Section]:
    """Split text at lines whose trimmed form matches ``section_pattern``."""
    sections = []
    title: Optional[str] = None
    body: list[str] = []

    for line in text.split("\n"):
        stripped = line.strip()
        if stripped and section_pattern.match(stripped):
            if body or title:
                sections.append(Section(title=title, content="\n".join(body)))
            title = stripped
            body = []
        else:
            body.append(line)

    if body or title:
        sections.append(Section(title=title, content="\n".join(body)))

    return sections


def window_bounds(text: str, chunk_size: int, chunk_overlap: int) -> list[tuple[int, int]]:
    """
    Compute [start, end) bounds of overlapping windows over ``text``.

    A cut inside the text snaps back to just after the last sentence
    terminator of the window when that lies past half the window. Bounds
    always cover the text without gaps.
    """
    if len(text) <= chunk_size:
        return [(0, len(text))]

    bounds = []
    start = 0
    while True:
        end = start + chunk_size

        if end < len(text):
            last_stop = text.rfind(SENTENCE_TERMINATOR, start, end)
            if last_stop > start + chunk_size // 2:
                end = last_stop + 1
        else:
            end = len(text)

        bounds.append((start, end))
        if end >= len(text):
            break

        next_start = end - chunk_overlap
        start = next_start if next_start > start else end

    return bounds


def split_with_overlap(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Split text into overlapping windows (exact slices, not stripped)."""
    return [text[s:e] for s, e in window_bounds(text, chunk_size, chunk_overlap)]


class GuidelineChunker:
    """Section-aware sliding-window chunker for guideline PDFs."""

    def __init__(self, options: Optional[GuidelineChunkerOptions] = None):
        self.options = options or GuidelineChunkerOptions()

    def chunk(self, doc: PdfDocument) -> list[Chunk]:
        """
        Chunk one guideline document.

        Args:
            doc: Extracted PDF text

        Returns:
            Chunks with sequential chunk_index and matching "-chunk<k>" ids
        """
        opts = self.options
        chunks = []

        for section in split_into_sections(doc.text, opts.section_pattern):
            windows = split_with_overlap(section.content, opts.chunk_size, opts.chunk_overlap)
            bodies = [w.strip() for w in windows if w.strip()]

            # Heading without body: keep it so the merge pass can attach it
            if not bodies and section.title:
                bodies = [""]

            for body in bodies:
                if section.title:
                    content = f"{section.title}\n\n{body}" if body else section.title
                else:
                    content = body

                index = len(chunks)
                chunks.append(Chunk(
                    id=f"{doc.filename}-chunk{index}",
                    content=content,
                    metadata=GuidelineChunkMetadata(
                        filename=doc.filename,
                        title=doc.title,
                        section_title=section.title,
                        chunk_index=index,
                    ),
                ))

        merged = merge_small_chunks(
            chunks,
            min_size=opts.min_chunk_size,
            max_size=opts.merge_max_size,
            merge=_merge_guideline_chunks,
        )
        result = _renumber(merged)

        logger.info(f"Chunked guideline {doc.filename}: {len(result)} chunks")
        return result


def _merge_guideline_chunks(pending: Chunk, current: Chunk, content: str) -> Chunk:
    return replace(
        current,
        content=content,
        metadata=replace(
            current.metadata,
            section_title=pending.metadata.section_title or current.metadata.section_title,
        ),
    )


def _renumber(chunks: list[Chunk]) -> list[Chunk]:
    return [
        replace(
            chunk,
            id=_CHUNK_SUFFIX.sub(f"-chunk{index}", chunk.id),
            metadata=replace(chunk.metadata, chunk_index=index),
        )
        for index, chunk in enumerate(chunks)
    ]


def chunk_guideline(
    doc: PdfDocument,
    options: Optional[GuidelineChunkerOptions] = None,
) -> list[Chunk]:
    """Chunk a guideline document with the given options."""
    return GuidelineChunker(options).chunk(doc)


def chunk_guideline_by_page(doc: PdfDocument) -> list[Chunk]:
    """One chunk per non-blank page, text verbatim. For debugging extraction."""
    chunks = []
    for page in doc.pages:
        if not page.text.strip():
            continue
        chunks.append(Chunk(
            id=f"{doc.filename}-page{page.page_number}",
            content=page.text,
            metadata=GuidelineChunkMetadata(
                filename=doc.filename,
                title=doc.title,
                page_number=page.page_number,
                chunk_index=len(chunks),
            ),
        ))
    return chunks


def format_guideline_chunk(chunk: Chunk) -> str:
    """Render a guideline chunk with its document header for display."""
    name = chunk.metadata.title or chunk.metadata.filename
    return f"{LABELS['guideline_header'].format(name=name)}\n{chunk.content}"
