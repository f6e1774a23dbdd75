"""
Tests for execution/keihyo_rag/qa_chunker.py

Covers: per-item chunks, category-combined chunks and their size limit,
        id construction, multi-page chunking, and display formatting.
"""

import pytest


def _qa(*items, source="premium"):
    from execution.keihyo_rag.documents import QaData, QaItem
    return QaData(
        source=source,
        url="https://example.jp/qa",
        items=[QaItem(id=i, category=c, question=q, answer=a) for i, c, q, a in items],
    )


class TestFormatQaContent:

    def test_with_category(self):
        from execution.keihyo_rag.documents import QaItem
        from execution.keihyo_rag.qa_chunker import format_qa_content
        item = QaItem(id="1", category="総付景品", question="上限は？", answer="200円です。")
        assert format_qa_content(item) == "【総付景品】\n\nQ: 上限は？\n\nA: 200円です。"

    def test_without_category(self):
        from execution.keihyo_rag.documents import QaItem
        from execution.keihyo_rag.qa_chunker import format_qa_content
        item = QaItem(id="1", category="", question="a", answer="b")
        assert format_qa_content(item) == "Q: a\n\nA: b"


class TestDefaultMode:

    def test_one_chunk_per_item(self, sample_qa):
        from execution.keihyo_rag.qa_chunker import chunk_qa
        chunks = chunk_qa(sample_qa)
        assert [c.id for c in chunks] == ["rep-q1", "rep-q2", "rep-q3"]
        assert chunks[0].metadata.original_id == "rep-q1"
        assert chunks[0].metadata.qa_source == "representation"
        assert chunks[0].metadata.url == sample_qa.url
        assert chunks[0].content.startswith("【有利誤認】\n\nQ: 二重価格表示")

    def test_no_items(self):
        from execution.keihyo_rag.qa_chunker import chunk_qa
        assert chunk_qa(_qa()) == []


class TestCombineMode:

    def test_grouped_by_category_in_first_appearance_order(self, sample_qa):
        from execution.keihyo_rag.qa_chunker import QaChunkerOptions, chunk_qa
        chunks = chunk_qa(sample_qa, QaChunkerOptions(combine_related=True))
        assert [c.id for c in chunks] == [
            "representation-有利誤認-1",
            "representation-優良誤認-1",
        ]
        assert chunks[0].metadata.original_id == "rep-q1,rep-q3"
        assert "\n\n---\n\n" in chunks[0].content

    def test_separator_counts_toward_max(self):
        from execution.keihyo_rag.qa_chunker import QaChunkerOptions, chunk_qa
        qa = _qa(("a1", "", "a", "b"), ("a2", "", "c", "d"))
        # Each item renders to 10 characters; together with the separator, 27
        fits = chunk_qa(qa, QaChunkerOptions(combine_related=True, max_chunk_size=27))
        split = chunk_qa(qa, QaChunkerOptions(combine_related=True, max_chunk_size=26))
        assert len(fits) == 1
        assert [c.id for c in split] == ["premium-一般-1", "premium-一般-2"]
        assert split[1].metadata.original_id == "a2"

    def test_empty_category_defaults(self):
        from execution.keihyo_rag.qa_chunker import QaChunkerOptions, chunk_qa
        chunks = chunk_qa(_qa(("x", "", "q", "a")), QaChunkerOptions(combine_related=True))
        assert chunks[0].metadata.category == "一般"

    def test_oversized_item_kept_whole(self):
        from execution.keihyo_rag.qa_chunker import QaChunkerOptions, chunk_qa
        qa = _qa(("big", "c", "q", "あ" * 500))
        chunks = chunk_qa(qa, QaChunkerOptions(combine_related=True, max_chunk_size=100))
        assert len(chunks) == 1
        assert chunks[0].content.endswith("あ" * 500)

    def test_whitespace_in_category_id(self):
        from execution.keihyo_rag.qa_chunker import QaChunkerOptions, chunk_qa
        chunks = chunk_qa(_qa(("x", "景品  規制", "q", "a")), QaChunkerOptions(combine_related=True))
        assert chunks[0].id == "premium-景品-規制-1"
        assert chunks[0].metadata.category == "景品  規制"


class TestChunkAllQa:

    def test_concatenates_in_order(self, sample_qa):
        from execution.keihyo_rag.qa_chunker import chunk_all_qa
        other = _qa(("p1", "総付景品", "q", "a"))
        chunks = chunk_all_qa([sample_qa, other])
        assert [c.id for c in chunks] == ["rep-q1", "rep-q2", "rep-q3", "p1"]


@pytest.mark.parametrize("category", ["有利誤認", "一般"])
def test_format_qa_chunk(category):
    from execution.keihyo_rag.qa_chunker import chunk_qa, format_qa_chunk
    chunk = chunk_qa(_qa(("x", category, "q", "a")))[0]
    assert format_qa_chunk(chunk).startswith(f"【景品表示法Q&A - {category}】\n")
