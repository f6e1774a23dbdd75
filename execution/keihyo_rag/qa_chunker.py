"""
Q&A Chunker

One chunk per question/answer pair by default. With ``combine_related``
the pairs of each category are packed into chunks up to ``max_chunk_size``.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

from .chunks import Chunk, QaChunkMetadata
from .documents import QaData, QaItem
from .language_patterns import (
    LABELS,
    QA_COMBINE_SEPARATOR,
    QA_DEFAULT_CATEGORY,
)

logger = logging.getLogger(__name__)


@dataclass
class QaChunkerOptions:
    """Configuration for Q&A chunking."""
    # Pack the Q&As of one category into shared chunks
    combine_related: bool = False
    max_chunk_size: int = 2000


def format_qa_content(item: QaItem) -> str:
    """Category line (if any), then question and answer, blank-line separated."""
    lines = []
    if item.category:
        lines.append(LABELS["qa_category"].format(category=item.category))
    lines.append(f"Q: {item.question}")
    lines.append(f"A: {item.answer}")
    return "\n\n".join(lines)


class QaChunker:
    """Turns the items of one Q&A page into chunks."""

    def __init__(self, options: Optional[QaChunkerOptions] = None):
        self.options = options or QaChunkerOptions()

    def chunk(self, qa_data: QaData) -> list[Chunk]:
        if not self.options.combine_related:
            chunks = [self._item_chunk(item, qa_data) for item in qa_data.items]
        else:
            chunks = self._combined_chunks(qa_data)

        logger.info(
            f"Chunked Q&A {qa_data.source}: {len(qa_data.items)} items -> {len(chunks)} chunks"
        )
        return chunks

    def _item_chunk(self, item: QaItem, qa_data: QaData) -> Chunk:
        return Chunk(
            id=item.id,
            content=format_qa_content(item),
            metadata=QaChunkMetadata(
                qa_source=qa_data.source,
                category=item.category,
                original_id=item.id,
                url=qa_data.url,
            ),
        )

    def _combined_chunks(self, qa_data: QaData) -> list[Chunk]:
        max_size = self.options.max_chunk_size

        # Group by category, first appearance order
        by_category: dict[str, list[QaItem]] = {}
        for item in qa_data.items:
            by_category.setdefault(item.category or QA_DEFAULT_CATEGORY, []).append(item)

        chunks = []
        for category, items in by_category.items():
            sequence = 1
            buffer = ""
            absorbed: list[QaItem] = []

            for item in items:
                formatted = format_qa_content(item)

                if buffer and len(buffer) + len(QA_COMBINE_SEPARATOR) + len(formatted) > max_size:
                    chunks.append(self._group_chunk(qa_data, category, sequence, buffer, absorbed))
                    sequence += 1
                    buffer = ""
                    absorbed = []

                buffer = f"{buffer}{QA_COMBINE_SEPARATOR}{formatted}" if buffer else formatted
                absorbed.append(item)

            if buffer:
                chunks.append(self._group_chunk(qa_data, category, sequence, buffer, absorbed))

        return chunks

    def _group_chunk(
        self,
        qa_data: QaData,
        category: str,
        sequence: int,
        content: str,
        items: list[QaItem],
    ) -> Chunk:
        return Chunk(
            id=f"{qa_data.source}-{_sanitize_category(category)}-{sequence}",
            content=content,
            metadata=QaChunkMetadata(
                qa_source=qa_data.source,
                category=category,
                original_id=",".join(i.id for i in items),
                url=qa_data.url,
            ),
        )


def _sanitize_category(category: str) -> str:
    return re.sub(r"\s+", "-", category)


def chunk_qa(qa_data: QaData, options: Optional[QaChunkerOptions] = None) -> list[Chunk]:
    """Chunk one Q&A page."""
    return QaChunker(options).chunk(qa_data)


def chunk_all_qa(
    qa_list: list[QaData],
    options: Optional[QaChunkerOptions] = None,
) -> list[Chunk]:
    """Chunk several Q&A pages, preserving page order."""
    chunker = QaChunker(options)
    chunks = []
    for qa_data in qa_list:
        chunks.extend(chunker.chunk(qa_data))
    return chunks


def format_qa_chunk(chunk: Chunk) -> str:
    """Render a Q&A chunk with its category header for display."""
    header = LABELS["qa_header"].format(category=chunk.metadata.category)
    return f"{header}\n{chunk.content}"
