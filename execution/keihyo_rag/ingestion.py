"""
Corpus Ingestion

Rebuilds the document store from the loaded statute, guideline PDFs and
Q&A pages:

1. Clear the table (optional)
2. Chunk each source family
3. Embed and store each family (each guideline document separately)
4. Report chunk counts, size statistics, failures and the final row count

A failure in one family or document is logged and recorded; the run goes on
with the rest. Cancellation stops the run.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .chunks import Chunk
from .documents import LawData, PdfDocument, QaData
from .exceptions import KeihyoRagError, OperationCancelledError
from .guideline_chunker import GuidelineChunkerOptions, chunk_guideline
from .law_chunker import LawChunkerOptions, chunk_law
from .qa_chunker import QaChunkerOptions, chunk_all_qa
from .vector_store import VectorStore

logger = logging.getLogger(__name__)

# Chunk sizes (characters) that embed well; outside this range is flagged
RECOMMENDED_MIN_CHARS = 100
RECOMMENDED_MAX_CHARS = 4000


@dataclass
class IngestionConfig:
    """Configuration for an ingestion run."""
    clear_table: bool = True
    law_options: LawChunkerOptions = field(default_factory=LawChunkerOptions)
    guideline_options: GuidelineChunkerOptions = field(default_factory=GuidelineChunkerOptions)
    qa_options: QaChunkerOptions = field(default_factory=QaChunkerOptions)


@dataclass
class ChunkStats:
    """Length statistics of one family's chunks."""
    count: int = 0
    min_length: int = 0
    max_length: int = 0
    avg_length: int = 0
    too_small: int = 0
    too_large: int = 0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "min_length": self.min_length,
            "max_length": self.max_length,
            "avg_length": self.avg_length,
            "too_small": self.too_small,
            "too_large": self.too_large,
        }


def calc_chunk_stats(chunks: Sequence[Chunk]) -> ChunkStats:
    """Count and min/max/average content length, plus out-of-range counts."""
    lengths = [len(c.content) for c in chunks]
    if not lengths:
        return ChunkStats()

    n = len(lengths)
    total = sum(lengths)
    return ChunkStats(
        count=n,
        min_length=min(lengths),
        max_length=max(lengths),
        # Rounded half up
        avg_length=(2 * total + n) // (2 * n),
        too_small=sum(1 for l in lengths if l < RECOMMENDED_MIN_CHARS),
        too_large=sum(1 for l in lengths if l > RECOMMENDED_MAX_CHARS),
    )


@dataclass
class IngestionError:
    """A family or document that could not be ingested."""
    source: str
    name: str
    error: str


@dataclass
class IngestionReport:
    """Outcome of an ingestion run."""
    chunk_counts: dict = field(default_factory=dict)
    stats: dict = field(default_factory=dict)
    errors: list = field(default_factory=list)
    document_count: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "chunk_counts": dict(self.chunk_counts),
            "stats": {k: v.to_dict() for k, v in self.stats.items()},
            "errors": [vars(e) for e in self.errors],
            "document_count": self.document_count,
        }


def _ingest_family(
    store: VectorStore,
    report: IngestionReport,
    source: str,
    name: str,
    produce: Callable[[], list[Chunk]],
    produced: list[Chunk],
    cancel_event: Optional[threading.Event],
) -> None:
    try:
        chunks = produce()
        produced.extend(chunks)
        store.add_documents(chunks, cancel_event=cancel_event)
    except OperationCancelledError:
        raise
    except KeihyoRagError as e:
        logger.warning(f"Ingestion of {source} ({name}) failed: {e}")
        report.errors.append(IngestionError(source=source, name=name, error=str(e)))
        return

    report.chunk_counts[source] = report.chunk_counts.get(source, 0) + len(chunks)
    logger.info(f"Stored {len(chunks)} {source} chunks from {name}")


def ingest_corpus(
    store: VectorStore,
    law: Optional[LawData] = None,
    guidelines: Sequence[PdfDocument] = (),
    qa_sources: Sequence[QaData] = (),
    config: Optional[IngestionConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> IngestionReport:
    """
    Chunk and store a corpus.

    Args:
        store: Connected (or connectable) document store
        law: Statute to ingest, if any
        guidelines: Guideline PDFs, stored one document at a time
        qa_sources: Q&A pages, stored together
        config: Chunker options and table handling
        cancel_event: Stops the run before the next I/O step when set

    Returns:
        IngestionReport with per-source counts, stats and errors
    """
    config = config or IngestionConfig()
    report = IngestionReport()

    if config.clear_table:
        store.clear_table(cancel_event=cancel_event)

    produced: dict[str, list[Chunk]] = {"law": [], "guideline": [], "qa": []}

    if law is not None:
        _ingest_family(
            store, report, "law", law.law_title,
            lambda: chunk_law(law, config.law_options),
            produced["law"], cancel_event,
        )

    for doc in guidelines:
        _ingest_family(
            store, report, "guideline", doc.filename,
            lambda doc=doc: chunk_guideline(doc, config.guideline_options),
            produced["guideline"], cancel_event,
        )

    if qa_sources:
        _ingest_family(
            store, report, "qa", ",".join(q.source for q in qa_sources),
            lambda: chunk_all_qa(list(qa_sources), config.qa_options),
            produced["qa"], cancel_event,
        )

    for source, chunks in produced.items():
        if chunks:
            report.stats[source] = calc_chunk_stats(chunks)

    report.document_count = store.count_documents(cancel_event=cancel_event)
    logger.info(
        f"Ingestion complete: {report.document_count} documents stored, "
        f"{len(report.errors)} errors"
    )
    return report
