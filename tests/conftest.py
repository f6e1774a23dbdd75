"""
Shared fixtures and test utilities for Keihyo RAG tests.

Provides mock services, sample corpus records, and reusable fixtures so that
all tests can run without API keys, databases, or external network access.
"""

import sys
import hashlib
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

LAW_ID = "337AC0000000134"
LAW_TITLE = "不当景品類及び不当表示防止法"

ARTICLE_1_TEXT = (
    "この法律は、商品及び役務の取引に関連する不当な景品類及び表示による顧客の誘引を防止するため、"
    "一般消費者による自主的かつ合理的な選択を阻害するおそれのある行為の制限及び禁止について定める"
    "ことにより、一般消費者の利益を保護することを目的とする。"
)

ARTICLE_5_TEXT = (
    "事業者は、自己の供給する商品又は役務の取引について、次の各号のいずれかに該当する表示をしてはならない。"
)

ARTICLE_5_ITEMS = [
    (
        "一",
        "商品又は役務の品質、規格その他の内容について、一般消費者に対し、実際のものよりも著しく優良"
        "であると示し、又は事実に相違して当該事業者と同種若しくは類似の商品若しくは役務を供給している"
        "他の事業者に係るものよりも著しく優良であると示す表示であつて、不当に顧客を誘引し、一般消費者"
        "による自主的かつ合理的な選択を阻害するおそれがあると認められるもの",
    ),
    (
        "二",
        "商品又は役務の価格その他の取引条件について、実際のもの又は当該事業者と同種若しくは類似の商品"
        "若しくは役務を供給している他の事業者に係るものよりも取引の相手方に著しく有利であると一般消費者"
        "に誤認される表示であつて、不当に顧客を誘引し、一般消費者による自主的かつ合理的な選択を阻害する"
        "おそれがあると認められるもの",
    ),
]

GUIDELINE_TEXT = (
    "第一章　総論\n"
    + "本指針は、不当な表示の考え方を明らかにするものである。" * 4 + "\n"
    "第二章　不実証広告規制\n"
    + "合理的な根拠を示す資料の提出を求めることができる。" * 5 + "\n"
    "1. 対象となる表示\n"
    + "効果、性能に関する表示が対象となる。" * 3
)


# ---------------------------------------------------------------------------
# Fixtures: input corpus records
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_law():
    """A two-article excerpt of the statute."""
    from execution.keihyo_rag.documents import LawArticle, LawData, LawItem, LawParagraph
    return LawData(
        law_id=LAW_ID,
        law_title=LAW_TITLE,
        law_number="昭和三十七年法律第百三十四号",
        articles=[
            LawArticle(
                article_number="1",
                article_title="目的",
                paragraphs=[LawParagraph(paragraph_number=1, content=ARTICLE_1_TEXT)],
            ),
            LawArticle(
                article_number="5",
                article_title="不当な表示の禁止",
                paragraphs=[
                    LawParagraph(
                        paragraph_number=1,
                        content=ARTICLE_5_TEXT,
                        items=[LawItem(item_number=n, content=c) for n, c in ARTICLE_5_ITEMS],
                    ),
                ],
            ),
        ],
    )


@pytest.fixture
def sample_pdf():
    """A small guideline document with two chapter headings."""
    from execution.keihyo_rag.documents import PdfDocument, PdfPage
    return PdfDocument(
        filename="futeki_hyoji_guideline",
        title="不実証広告ガイドライン",
        text=GUIDELINE_TEXT,
        pages=[
            PdfPage(page_number=1, text=GUIDELINE_TEXT[:120]),
            PdfPage(page_number=2, text="   "),
            PdfPage(page_number=3, text=GUIDELINE_TEXT[120:]),
        ],
    )


@pytest.fixture
def sample_qa():
    """Q&A page with two categories."""
    from execution.keihyo_rag.documents import QaData, QaItem
    return QaData(
        source="representation",
        url="https://www.caa.go.jp/policies/policy/representation/fair_labeling/faq/",
        title="表示に関するQ&A",
        items=[
            QaItem(
                id="rep-q1",
                category="有利誤認",
                question="二重価格表示はどのような場合に問題となりますか。",
                answer="比較対照価格が実際の販売実績のない価格である場合などに問題となります。",
            ),
            QaItem(
                id="rep-q2",
                category="優良誤認",
                question="「No.1」表示をする際の注意点は何ですか。",
                answer="客観的な調査に基づき、調査対象や期間を明瞭に表示する必要があります。",
            ),
            QaItem(
                id="rep-q3",
                category="有利誤認",
                question="期間限定セールの表示で注意すべき点はありますか。",
                answer="実際には期間経過後も同じ価格で販売する場合、有利誤認となるおそれがあります。",
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=8):
        self._dimensions = dimensions
        self.document_calls = []
        self.query_calls = []

    def embed_documents(self, texts):
        self.document_calls.append(list(texts))
        return [self._deterministic_embedding(t) for t in texts]

    def embed_query(self, query):
        self.query_calls.append(query)
        return self._deterministic_embedding(query)

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i) % 1000) / 1000.0 for i in range(self._dimensions)]

    @property
    def dimensions(self):
        return self._dimensions


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService(dimensions=8)


# ---------------------------------------------------------------------------
# Fake database (MagicMock pool -> connection -> cursor)
# ---------------------------------------------------------------------------

class FakeDatabase:
    """MagicMock pool whose connections all share one cursor."""

    def __init__(self):
        self.cursor = MagicMock()
        self.conn = MagicMock()
        self.conn.cursor.return_value.__enter__.return_value = self.cursor
        self.conn.cursor.return_value.__exit__.return_value = False
        self.pool = MagicMock()
        self.pool.getconn.return_value = self.conn

    def executed_sql(self):
        return [c.args[0] for c in self.cursor.execute.call_args_list]


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def store(mock_embedding_service, fake_db):
    """VectorStore wired to the fake pool (connect() is never needed)."""
    from execution.keihyo_rag.vector_store import VectorStore
    vs = VectorStore(embedding_service=mock_embedding_service)
    vs._pool = fake_db.pool
    return vs


# ---------------------------------------------------------------------------
# Mock vector store (no database needed)
# ---------------------------------------------------------------------------

class MockVectorStore:
    """In-memory mock of VectorStore for testing without PostgreSQL."""

    def __init__(self, scores=None, fail_sources=(), fail_add_sources=()):
        self._chunks = {}
        self.scores = scores or {}
        self.fail_sources = set(fail_sources)
        self.fail_add_sources = set(fail_add_sources)
        self.cleared = 0
        self.search_calls = []

    def add_documents(self, chunks, cancel_event=None):
        from execution.keihyo_rag.exceptions import VectorStoreError
        if not chunks:
            return
        if chunks[0].source in self.fail_add_sources:
            raise VectorStoreError("insert rejected", "add_documents")
        for chunk in chunks:
            self._chunks[chunk.id] = chunk

    def search(self, query, limit=5, source=None, cancel_event=None):
        from execution.keihyo_rag.exceptions import VectorStoreError
        from execution.keihyo_rag.vector_store import SearchResult
        self.search_calls.append((query, limit, source))
        if source in self.fail_sources:
            raise VectorStoreError(f"search failed for {source}", "search")

        results = [
            SearchResult(
                id=chunk.id,
                content=chunk.content,
                source=chunk.source,
                score=self.scores.get(chunk.id, 0.5),
                metadata=chunk.metadata.to_dict(),
                article_number=getattr(chunk.metadata, "article_number", None),
            )
            for chunk in self._chunks.values()
            if source is None or chunk.source == source
        ]
        results.sort(key=lambda r: r.score)
        return results[:limit]

    def clear_table(self, cancel_event=None):
        self.cleared += 1
        self._chunks.clear()

    def count_documents(self, cancel_event=None):
        return len(self._chunks)

    def close(self):
        pass


@pytest.fixture
def mock_vector_store():
    return MockVectorStore()


# ---------------------------------------------------------------------------
# Search results for citation / retriever tests
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_search_results():
    """Return a list of SearchResult objects for testing."""
    from execution.keihyo_rag.vector_store import SearchResult
    return [
        SearchResult(
            id=f"{LAW_ID}-art5",
            content="第5条（不当な表示の禁止）\n" + ARTICLE_5_TEXT,
            source="law",
            score=0.21,
            metadata={"source": "law", "lawId": LAW_ID, "articleNumber": "5"},
            article_number="5",
        ),
        SearchResult(
            id="futeki_hyoji_guideline-chunk1",
            content="第二章　不実証広告規制\n\n合理的な根拠を示す資料の提出を求めることができる。",
            source="guideline",
            score=0.34,
            metadata={"source": "guideline", "filename": "futeki_hyoji_guideline", "chunkIndex": 1},
            filename="futeki_hyoji_guideline",
        ),
        SearchResult(
            id="rep-q1",
            content="【有利誤認】\n\nQ: 二重価格表示はどのような場合に問題となりますか。",
            source="qa",
            score=0.4,
            metadata={"source": "qa", "category": "有利誤認"},
            category="有利誤認",
        ),
    ]
