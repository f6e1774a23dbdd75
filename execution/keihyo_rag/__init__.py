"""
Keihyo RAG - Retrieval Core for 景品表示法 (Act against Unjustifiable
Premiums and Misleading Representations) Compliance Checks

This module provides:
- Structure-aware chunking of the statute, guideline PDFs and Q&A pages
- Embedding via OpenAI or Voyage AI
- A pgvector document store with source-filtered search
- Parallel multi-source retrieval and reference formatting for the agent
"""

from .law_chunker import LawChunker, chunk_law
from .guideline_chunker import GuidelineChunker, chunk_guideline, chunk_guideline_by_page
from .qa_chunker import QaChunker, chunk_qa, chunk_all_qa
from .embeddings import get_embedding_service
from .vector_store import VectorStore, SearchResult
from .retriever import MultiSourceRetriever
from .citation import format_results, build_citations
from .ingestion import ingest_corpus

__all__ = [
    "LawChunker",
    "chunk_law",
    "GuidelineChunker",
    "chunk_guideline",
    "chunk_guideline_by_page",
    "QaChunker",
    "chunk_qa",
    "chunk_all_qa",
    "get_embedding_service",
    "VectorStore",
    "SearchResult",
    "MultiSourceRetriever",
    "format_results",
    "build_citations",
    "ingest_corpus",
]

__version__ = "0.1.0"
