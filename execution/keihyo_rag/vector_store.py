"""
Document Store with PostgreSQL + pgvector

Stores embedded chunks in a single table and answers nearest-neighbour
queries by cosine distance. Chunk metadata is flattened into a few
filterable columns (source, article_number, category, filename) plus the
full metadata as a JSON string.

The connection pool is created once by connect() and reused until close().
"""

import os
import re
import json
import logging
import threading
from typing import Callable, Optional, Sequence
from dataclasses import dataclass, field

from .chunks import (
    TYPED_METADATA_SOURCES,
    VALID_SOURCES,
    Chunk,
    GuidelineChunkMetadata,
    LawChunkMetadata,
    QaChunkMetadata,
    metadata_from_dict,
)
from .embeddings import BaseEmbeddingService, get_embedding_service
from .exceptions import (
    DecodeError,
    EmbeddingError,
    KeihyoRagError,
    OperationCancelledError,
    ValidationError,
    VectorStoreError,
)

try:
    import psycopg2
    import psycopg2.extras
    import psycopg2.pool
except ImportError:
    psycopg2 = None  # Will be caught at connect() time

logger = logging.getLogger(__name__)

DEFAULT_SOURCES = ("law", "guideline", "qa")

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class VectorStoreConfig:
    """Configuration for the document store."""
    connection_string: Optional[str] = None
    table_name: str = "documents"
    # Connection pooling settings
    pool_min_connections: int = 1
    pool_max_connections: int = 10
    # Worker threads for multi_search fan-out
    max_parallel_searches: int = 4

    def __post_init__(self):
        # Interpolated into SQL, so restrict to a plain identifier
        if not _TABLE_NAME.match(self.table_name):
            raise ValueError(f"Invalid table name: {self.table_name!r}")
        # Each parallel search holds one pooled connection
        if self.max_parallel_searches > self.pool_max_connections:
            raise ValueError(
                f"max_parallel_searches ({self.max_parallel_searches}) exceeds "
                f"pool_max_connections ({self.pool_max_connections})"
            )


@dataclass
class StoredDocument:
    """Physical row. Flattened columns use "" for not applicable."""
    id: str
    content: str
    vector: list[float]
    source: str
    article_number: str = ""
    category: str = ""
    filename: str = ""
    metadata: str = "{}"

    def to_row(self) -> tuple:
        return (
            self.id,
            self.content,
            self.vector,
            self.source,
            self.article_number,
            self.category,
            self.filename,
            self.metadata,
        )


@dataclass
class SearchResult:
    """A single search result. ``score`` is a distance: lower is closer."""
    id: str
    content: str
    source: str
    score: float
    metadata: dict = field(default_factory=dict)
    article_number: Optional[str] = None
    category: Optional[str] = None
    filename: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "source": self.source,
            "article_number": self.article_number,
            "category": self.category,
            "filename": self.filename,
            "metadata": self.metadata,
            "score": self.score,
        }


def validate_source(source: str) -> str:
    """Check a source filter against the allow-list."""
    if source not in VALID_SOURCES:
        raise ValidationError(
            f"Invalid source: {source!r}. Valid sources: {', '.join(VALID_SOURCES)}"
        )
    return source


def validate_query(query: str) -> str:
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Query must be a non-empty string")
    return query


def to_stored_document(chunk: Chunk, vector: list[float]) -> StoredDocument:
    """Flatten a chunk and its embedding into a storage row."""
    meta = chunk.metadata
    return StoredDocument(
        id=chunk.id,
        content=chunk.content,
        vector=list(vector),
        source=meta.source,
        article_number=meta.article_number if isinstance(meta, LawChunkMetadata) else "",
        category=meta.category if isinstance(meta, QaChunkMetadata) else "",
        filename=meta.filename if isinstance(meta, GuidelineChunkMetadata) else "",
        metadata=json.dumps(meta.to_dict(), ensure_ascii=False),
    )


def _required_string(row: dict, key: str) -> str:
    value = row.get(key)
    if not isinstance(value, str):
        raise DecodeError(
            f"Row field {key!r} must be a string, got {type(value).__name__}"
        )
    return value


def _optional_column(row: dict, key: str) -> Optional[str]:
    value = row.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise DecodeError(
            f"Row field {key!r} must be a string, got {type(value).__name__}"
        )
    return value


def parse_search_result(row: dict) -> SearchResult:
    """
    Decode a raw result row, rejecting anything malformed.

    Raises:
        DecodeError: missing or mistyped field, unknown source, bad metadata
            JSON, or metadata that does not match the row's source variant
    """
    doc_id = _required_string(row, "id")
    content = _required_string(row, "content")
    source = _required_string(row, "source")
    raw_metadata = _required_string(row, "metadata")

    distance = row.get("_distance")
    if isinstance(distance, bool) or not isinstance(distance, (int, float)):
        raise DecodeError(
            f"Row field '_distance' must be a number, got {type(distance).__name__}"
        )

    if source not in VALID_SOURCES:
        raise DecodeError(f"Row {doc_id} has unknown source: {source!r}")

    try:
        metadata = json.loads(raw_metadata)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Row {doc_id} has invalid metadata JSON: {e}") from e
    if not isinstance(metadata, dict):
        raise DecodeError(f"Row {doc_id} metadata is not a JSON object")
    if metadata.get("source") != source:
        raise DecodeError(
            f"Row {doc_id} metadata source {metadata.get('source')!r} "
            f"does not match column source {source!r}"
        )
    if source in TYPED_METADATA_SOURCES:
        try:
            metadata_from_dict(metadata)
        except (KeyError, ValueError, TypeError) as e:
            raise DecodeError(f"Row {doc_id} has malformed {source} metadata: {e!r}") from e

    return SearchResult(
        id=doc_id,
        content=content,
        source=source,
        score=float(distance),
        metadata=metadata,
        article_number=_optional_column(row, "article_number"),
        category=_optional_column(row, "category"),
        filename=_optional_column(row, "filename"),
    )


def _check_cancelled(cancel_event: Optional[threading.Event], operation: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(operation)


class VectorStore:
    """
    PostgreSQL document store with pgvector.

    Features:
    - Cosine distance search, optionally filtered by source
    - Batch insert with a single embedding call
    - Table created on first insert, dimension taken from the first vector
    - Typed errors naming the failing operation
    """

    def __init__(
        self,
        embedding_service: Optional[BaseEmbeddingService] = None,
        config: Optional[VectorStoreConfig] = None,
    ):
        """
        Initialize document store.

        Args:
            embedding_service: Shared embedding gateway. Built from env vars if not provided.
            config: Optional configuration. Uses env vars if not provided.
        """
        self.config = config or VectorStoreConfig()
        self.embedding_service = embedding_service or get_embedding_service()
        self._pool = None
        self._connect_lock = threading.Lock()
        self._connection_string = (
            self.config.connection_string or
            os.getenv("POSTGRES_URL") or
            os.getenv("DATABASE_URL") or
            "postgresql://localhost:5432/keihyo_rag"
        )

    @property
    def table_name(self) -> str:
        return self.config.table_name

    def connect(self) -> None:
        """Create the connection pool and ensure the pgvector extension."""
        with self._connect_lock:
            if self._pool is not None:
                return
            try:
                if psycopg2 is None:
                    raise ImportError(
                        "psycopg2 not installed. Run: pip install psycopg2-binary"
                    )
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self.config.pool_min_connections,
                    maxconn=self.config.pool_max_connections,
                    dsn=self._connection_string,
                    cursor_factory=psycopg2.extras.RealDictCursor,
                )
                conn = pool.getconn()
                try:
                    with conn.cursor() as cur:
                        cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    conn.commit()
                finally:
                    pool.putconn(conn)
            except Exception as e:
                logger.error(f"Database connection failed: {e}")
                raise VectorStoreError(f"Database connection failed: {e}", "connect", e) from e

            self._pool = pool
            logger.info(
                f"Connection pool initialized (min={self.config.pool_min_connections}, "
                f"max={self.config.pool_max_connections})"
            )

    def close(self) -> None:
        """Close all pooled connections."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except (psycopg2.InterfaceError, psycopg2.OperationalError):
            pass

    def _run(self, operation: str, fn: Callable):
        """Run fn(conn) on a pooled connection, wrapping failures as VectorStoreError."""
        if self._pool is None:
            self.connect()

        try:
            conn = self._pool.getconn()
        except Exception as e:
            logger.error(f"Could not get a pooled connection for {operation}: {e}")
            raise VectorStoreError(f"Could not get a connection: {e}", "connect", e) from e

        try:
            return fn(conn)
        except KeihyoRagError:
            self._safe_rollback(conn)
            raise
        except Exception as e:
            self._safe_rollback(conn)
            logger.error(f"{operation} failed on {self.table_name}: {e}")
            raise VectorStoreError(f"{operation} failed: {e}", operation, e) from e
        finally:
            self._pool.putconn(conn)

    def list_tables(self) -> list[str]:
        """Names of the tables in the current schema."""
        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT table_name FROM information_schema.tables "
                    "WHERE table_schema = current_schema()"
                )
                return [row["table_name"] for row in cur.fetchall()]

        return self._run("list_tables", _op)

    def table_exists(self) -> bool:
        return self.table_name in self.list_tables()

    def _create_table(self, dimensions: int) -> None:
        table = self.table_name

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    embedding VECTOR({int(dimensions)}) NOT NULL,
                    source TEXT NOT NULL,
                    article_number TEXT NOT NULL DEFAULT '',
                    category TEXT NOT NULL DEFAULT '',
                    filename TEXT NOT NULL DEFAULT '',
                    metadata TEXT NOT NULL
                )
                """)
                cur.execute(f"CREATE INDEX IF NOT EXISTS {table}_source_idx ON {table} (source)")
            conn.commit()
            logger.info(f"Created table {table} (dimensions={dimensions})")

        self._run("create_table", _op)

    def add_documents(
        self,
        chunks: Sequence[Chunk],
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """
        Embed and append chunks in one batch.

        Args:
            chunks: Chunks to store; an empty sequence is a no-op
            cancel_event: Optional event checked before each I/O step
        """
        if not chunks:
            return

        _check_cancelled(cancel_event, "list_tables")
        tables = self.list_tables()

        _check_cancelled(cancel_event, "embed_documents")
        try:
            vectors = self.embedding_service.embed_documents([c.content for c in chunks])
        except EmbeddingError as e:
            raise VectorStoreError(f"Embedding failed: {e}", "embed_documents", e) from e

        documents = [to_stored_document(c, v) for c, v in zip(chunks, vectors)]

        if self.table_name not in tables:
            _check_cancelled(cancel_event, "create_table")
            self._create_table(len(documents[0].vector))

        _check_cancelled(cancel_event, "add_documents")
        sql = f"""
        INSERT INTO {self.table_name}
            (id, content, embedding, source, article_number, category, filename, metadata)
        VALUES %s
        """

        def _op(conn):
            with conn.cursor() as cur:
                psycopg2.extras.execute_values(
                    cur,
                    sql,
                    [d.to_row() for d in documents],
                    template="(%s, %s, %s::vector, %s, %s, %s, %s, %s)",
                    page_size=1000,
                )
            conn.commit()

        self._run("add_documents", _op)
        logger.info(f"Inserted {len(documents)} documents into {self.table_name}")

    def search(
        self,
        query: str,
        limit: int = 5,
        source: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[SearchResult]:
        """
        Nearest-neighbour search by cosine distance.

        Args:
            query: Non-blank query text
            limit: Maximum number of results
            source: Optional source filter (law, guideline, qa, violation)
            cancel_event: Optional event checked before each I/O step

        Returns:
            Results sorted by ascending distance
        """
        validate_query(query)
        if source is not None:
            validate_source(source)
        if limit < 1:
            raise ValidationError(f"limit must be positive, got {limit}")

        _check_cancelled(cancel_event, "open_table")
        if not self.table_exists():
            raise VectorStoreError(f"Table {self.table_name} does not exist", "open_table")

        _check_cancelled(cancel_event, "embed_query")
        try:
            query_vector = self.embedding_service.embed_query(query)
        except EmbeddingError as e:
            raise VectorStoreError(f"Query embedding failed: {e}", "embed_query", e) from e

        where_clause = "WHERE source = %s" if source is not None else ""
        params = [query_vector] + ([source] if source is not None else []) + [limit]
        sql = f"""
        SELECT
            id, content, source, article_number, category, filename, metadata,
            embedding <=> %s::vector AS _distance
        FROM {self.table_name}
        {where_clause}
        ORDER BY _distance
        LIMIT %s
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall()

        _check_cancelled(cancel_event, "search")
        rows = self._run("search", _op)

        results = [parse_search_result(dict(row)) for row in rows]
        logger.debug(f"search(source={source}) returned {len(results)} results")
        return results

    def multi_search(
        self,
        query: str,
        limit_per_source: int = 3,
        sources: Sequence[str] = DEFAULT_SOURCES,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[SearchResult]:
        """Search each source in parallel and merge by ascending distance."""
        from .retriever import MultiSourceRetriever, RetrievalConfig

        retriever = MultiSourceRetriever(
            self,
            RetrievalConfig(max_workers=self.config.max_parallel_searches),
        )
        return retriever.multi_search(
            query,
            limit_per_source=limit_per_source,
            sources=sources,
            cancel_event=cancel_event,
        )

    def clear_table(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Drop the table. Safe to call when it does not exist."""
        _check_cancelled(cancel_event, "clear_table")

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(f"DROP TABLE IF EXISTS {self.table_name}")
            conn.commit()

        self._run("clear_table", _op)
        logger.info(f"Dropped table {self.table_name}")

    def count_documents(self, cancel_event: Optional[threading.Event] = None) -> int:
        """Number of stored rows, 0 when the table does not exist."""
        _check_cancelled(cancel_event, "count_documents")

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass(%s) AS regclass", (self.table_name,))
                if cur.fetchone()["regclass"] is None:
                    return 0
                cur.execute(f"SELECT COUNT(*) AS count FROM {self.table_name}")
                return int(cur.fetchone()["count"])

        return self._run("count_documents", _op)
