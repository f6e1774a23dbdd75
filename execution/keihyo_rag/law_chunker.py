"""
Statute Chunker

Splits a statute into article- or paragraph-level chunks while keeping the
article heading with every chunk, then merges undersized neighbours.

- article mode: one chunk per 条 (article), paragraphs and items inline
- paragraph mode: one chunk per 項 (paragraph), headed by its article
"""

import logging
from dataclasses import dataclass, replace
from typing import Literal, Optional

from .chunks import Chunk, LawChunkMetadata
from .documents import LawArticle, LawData, LawParagraph
from .language_patterns import (
    ARTICLE_HEADING,
    ARTICLE_HEADING_WITH_TITLE,
    ITEM_LINE,
    LABELS,
    PARAGRAPH_PREFIX,
)
from .merge import merge_small_chunks

logger = logging.getLogger(__name__)


@dataclass
class LawChunkerOptions:
    """Configuration for statute chunking."""
    chunk_by: Literal["article", "paragraph"] = "article"
    # Chunks shorter than this are merged with the next chunk
    min_chunk_size: int = 100
    # Merges never produce a chunk longer than this
    max_chunk_size: int = 2000


class LawChunker:
    """Chunks a LawData record along its article/paragraph/item structure."""

    def __init__(self, options: Optional[LawChunkerOptions] = None):
        self.options = options or LawChunkerOptions()

    def chunk(self, law: LawData) -> list[Chunk]:
        """
        Chunk a statute into retrieval-ready pieces.

        Args:
            law: Structured statute

        Returns:
            Ordered chunks with LawChunkMetadata
        """
        if self.options.chunk_by == "paragraph":
            chunks = self._chunk_by_paragraph(law)
        else:
            chunks = self._chunk_by_article(law)

        merged = merge_small_chunks(
            chunks,
            min_size=self.options.min_chunk_size,
            max_size=self.options.max_chunk_size,
            merge=_merge_law_chunks,
        )
        merged = _dedupe_ids(merged)

        logger.info(
            f"Chunked {law.law_title}: {len(law.articles)} articles -> "
            f"{len(merged)} chunks (mode={self.options.chunk_by})"
        )
        return merged

    def _chunk_by_article(self, law: LawData) -> list[Chunk]:
        chunks = []

        for article in law.articles:
            lines = [_article_heading(article)]

            if article.content:
                lines.append(article.content)

            for paragraph in article.paragraphs:
                lines.extend(_paragraph_lines(paragraph))

            chunks.append(Chunk(
                id=f"{law.law_id}-art{article.article_number}",
                content="\n".join(lines),
                metadata=_metadata(law, article, chunk_type="article"),
            ))

        return chunks

    def _chunk_by_paragraph(self, law: LawData) -> list[Chunk]:
        chunks = []

        for article in law.articles:
            heading = _article_heading(article)

            # No paragraphs: fall back to one article-level chunk
            if not article.paragraphs:
                if article.content:
                    chunks.append(Chunk(
                        id=f"{law.law_id}-art{article.article_number}",
                        content=f"{heading}\n{article.content}",
                        metadata=_metadata(law, article, chunk_type="article"),
                    ))
                continue

            for paragraph in article.paragraphs:
                lines = [heading, *_paragraph_lines(paragraph)]
                chunks.append(Chunk(
                    id=(
                        f"{law.law_id}-art{article.article_number}"
                        f"-para{paragraph.paragraph_number}"
                    ),
                    content="\n".join(lines),
                    metadata=_metadata(
                        law, article,
                        chunk_type="paragraph",
                        paragraph_number=paragraph.paragraph_number,
                    ),
                ))

        return chunks


def _article_heading(article: LawArticle) -> str:
    if article.article_title:
        return ARTICLE_HEADING_WITH_TITLE.format(
            number=article.article_number, title=article.article_title
        )
    return ARTICLE_HEADING.format(number=article.article_number)


def _paragraph_lines(paragraph: LawParagraph) -> list[str]:
    # Paragraph 1 is unnumbered in statute text
    prefix = "" if paragraph.paragraph_number == 1 else PARAGRAPH_PREFIX.format(
        number=paragraph.paragraph_number
    )
    lines = [f"{prefix}{paragraph.content}"]
    for item in paragraph.items:
        lines.append(ITEM_LINE.format(number=item.item_number, content=item.content))
    return lines


def _metadata(
    law: LawData,
    article: LawArticle,
    chunk_type: str,
    paragraph_number: Optional[int] = None,
) -> LawChunkMetadata:
    return LawChunkMetadata(
        law_id=law.law_id,
        law_title=law.law_title,
        article_number=article.article_number,
        article_title=article.article_title,
        paragraph_number=paragraph_number,
        chunk_type=chunk_type,
    )


def _merge_law_chunks(pending: Chunk, current: Chunk, content: str) -> Chunk:
    """Combine two statute chunks; differing article numbers become a range."""
    first = pending.metadata.article_number
    last = current.metadata.article_number
    article_number = first if first == last else f"{first}-{last}"

    return Chunk(
        id=f"{current.metadata.law_id}-art{article_number}",
        content=content,
        metadata=replace(
            current.metadata,
            article_number=article_number,
            article_title=pending.metadata.article_title or current.metadata.article_title,
        ),
    )


def _dedupe_ids(chunks: list[Chunk]) -> list[Chunk]:
    """Suffix repeated ids (-2, -3, ...) so ids stay unique within a run."""
    seen: dict[str, int] = {}
    result = []
    for chunk in chunks:
        count = seen.get(chunk.id, 0) + 1
        seen[chunk.id] = count
        if count > 1:
            chunk = replace(chunk, id=f"{chunk.id}-{count}")
        result.append(chunk)
    return result


def chunk_law(law: LawData, options: Optional[LawChunkerOptions] = None) -> list[Chunk]:
    """Chunk a statute with the given options (article mode by default)."""
    return LawChunker(options).chunk(law)


def format_law_chunk(chunk: Chunk) -> str:
    """Render a statute chunk with its law title header for display."""
    header = LABELS["law_header"].format(law_title=chunk.metadata.law_title)
    return f"{header}\n{chunk.content}"
