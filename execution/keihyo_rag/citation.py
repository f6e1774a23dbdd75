"""
Reference Formatting and Citations

Renders retrieved documents as the reference block given to the risk
analysis prompt:

    [id] 【法令】第5条
    content...

and turns the document ids cited in an answer back into Citation records.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .language_patterns import LABELS, QA_COMBINE_SEPARATOR, SOURCE_LABELS
from .vector_store import SearchResult

logger = logging.getLogger(__name__)

CITATION_EXCERPT_CHARS = 200


@dataclass
class Citation:
    """A reference document cited by an answer."""
    source: str
    id: str
    content: str
    relevance_score: float
    article_number: Optional[str] = None

    def short_format(self) -> str:
        """Short inline citation, e.g. [【法令】第5条]."""
        label = SOURCE_LABELS.get(self.source, SOURCE_LABELS["qa"])
        if self.article_number:
            label += LABELS["article_ref"].format(number=self.article_number)
        return f"[{label}]"

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "id": self.id,
            "article_number": self.article_number,
            "content": self.content,
            "relevance_score": self.relevance_score,
        }


def _header(result: SearchResult) -> str:
    label = SOURCE_LABELS.get(result.source, SOURCE_LABELS["qa"])
    article = (
        LABELS["article_ref"].format(number=result.article_number)
        if result.article_number else ""
    )
    return f"[{result.id}] {label}{article}"


def format_results(results: list[SearchResult], max_content_chars: int = 500) -> str:
    """
    Render search results as a prompt-ready reference block.

    Args:
        results: Retrieved documents, already ranked
        max_content_chars: Longer contents are cut and suffixed with "..."

    Returns:
        Blocks separated by a horizontal rule, or a placeholder when empty
    """
    if not results:
        return LABELS["no_documents"]

    blocks = []
    for result in results:
        content = result.content
        if len(content) > max_content_chars:
            content = f"{content[:max_content_chars]}..."
        blocks.append(f"{_header(result)}\n{content}")

    return QA_COMBINE_SEPARATOR.join(blocks)


def build_citations(cited_ids: list[str], results: list[SearchResult]) -> list[Citation]:
    """Map cited document ids to citations, in citation order. Unknown ids are skipped."""
    by_id: dict[str, SearchResult] = {}
    for result in results:
        by_id.setdefault(result.id, result)

    citations = []
    for doc_id in cited_ids:
        result = by_id.get(doc_id)
        if result is None:
            logger.debug(f"Cited id {doc_id} not among retrieved documents")
            continue
        citations.append(Citation(
            source=result.source,
            id=result.id,
            article_number=result.article_number,
            content=result.content[:CITATION_EXCERPT_CHARS],
            relevance_score=result.score,
        ))
    return citations
