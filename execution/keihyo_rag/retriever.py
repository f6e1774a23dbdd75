"""
Multi-Source Retriever

Runs one vector search per source in parallel and merges the results into a
single list ordered by ascending distance. This is the retrieval entry point
used by the answering agent.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional, Sequence

from .vector_store import (
    DEFAULT_SOURCES,
    SearchResult,
    VectorStore,
    validate_query,
    validate_source,
)

logger = logging.getLogger(__name__)


@dataclass
class RetrievalConfig:
    """Configuration for multi-source retrieval."""
    # Results fetched from each source before merging
    limit_per_source: int = 5
    sources: tuple = DEFAULT_SOURCES
    # Cap on parallel searches (each holds a pooled connection)
    max_workers: int = 4


def rank_results(results: list[SearchResult], sources: Sequence[str]) -> list[SearchResult]:
    """
    Order merged results by distance.

    Equal distances are ordered by the position of their source in
    ``sources``, then by id, so the output does not depend on which
    sub-search finished first.
    """
    position = {}
    for i, source in enumerate(sources):
        position.setdefault(source, i)

    return sorted(
        results,
        key=lambda r: (r.score, position.get(r.source, len(position)), r.id),
    )


class MultiSourceRetriever:
    """Parallel per-source search over a shared VectorStore."""

    def __init__(self, store: VectorStore, config: Optional[RetrievalConfig] = None):
        self.store = store
        self.config = config or RetrievalConfig()

    def multi_search(
        self,
        query: str,
        limit_per_source: int = 3,
        sources: Sequence[str] = DEFAULT_SOURCES,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[SearchResult]:
        """
        Search every source and merge.

        Args:
            query: Non-blank query text
            limit_per_source: Maximum results from each source
            sources: Sources to search, each in the allow-list
            cancel_event: Passed through to every sub-search

        Returns:
            Concatenated results sorted by ascending distance

        Raises:
            ValidationError: blank query or unknown source (before any search)
            The first sub-search failure, after all sub-searches finish
        """
        validate_query(query)
        sources = list(sources)
        for source in sources:
            validate_source(source)

        if not sources:
            return []

        all_results: list[SearchResult] = []
        first_error: Optional[BaseException] = None

        logger.info(f"Running {len(sources)} source searches in parallel")
        with ThreadPoolExecutor(max_workers=min(len(sources), self.config.max_workers)) as executor:
            future_map = {
                executor.submit(
                    self.store.search,
                    query,
                    limit=limit_per_source,
                    source=source,
                    cancel_event=cancel_event,
                ): source
                for source in sources
            }
            for future in as_completed(future_map):
                source = future_map[future]
                try:
                    all_results.extend(future.result())
                except Exception as e:
                    logger.error(f"Search for source {source} failed: {e}")
                    if first_error is None:
                        first_error = e

        if first_error is not None:
            raise first_error

        ranked = rank_results(all_results, sources)
        logger.debug(f"multi_search merged {len(ranked)} results from {len(sources)} sources")
        return ranked

    def retrieve(
        self,
        text: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[SearchResult]:
        """Retrieve reference documents for a question. Blank text yields no results."""
        if not text or not text.strip():
            return []

        return self.multi_search(
            text,
            limit_per_source=self.config.limit_per_source,
            sources=self.config.sources,
            cancel_event=cancel_event,
        )
