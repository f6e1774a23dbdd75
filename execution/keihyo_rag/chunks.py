"""
Chunk records shared by the chunkers and the document store.

A Chunk is a bounded unit of text plus provenance metadata. The metadata
record is a tagged union: each family's record carries a literal ``source``
discriminant, and the store dispatches on it when flattening or decoding.
"""

from dataclasses import dataclass
from typing import Literal, Optional, Union, get_args

SourceType = Literal["law", "guideline", "qa", "violation"]

# Allow-list for the source column (checked before any filter is built)
VALID_SOURCES = get_args(SourceType)

ChunkType = Literal["article", "paragraph", "item"]


def _compact(data: dict) -> dict:
    """Drop absent optional fields so they never serialize as null."""
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class LawChunkMetadata:
    """Provenance of a statute chunk. ``article_number`` may be a range like "5-6"."""
    law_id: str
    law_title: str
    article_number: str
    chunk_type: ChunkType = "article"
    article_title: Optional[str] = None
    paragraph_number: Optional[int] = None
    item_number: Optional[str] = None
    source: Literal["law"] = "law"

    def to_dict(self) -> dict:
        return _compact({
            "source": self.source,
            "lawId": self.law_id,
            "lawTitle": self.law_title,
            "articleNumber": self.article_number,
            "articleTitle": self.article_title,
            "paragraphNumber": self.paragraph_number,
            "itemNumber": self.item_number,
            "chunkType": self.chunk_type,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "LawChunkMetadata":
        return cls(
            law_id=data["lawId"],
            law_title=data["lawTitle"],
            article_number=str(data["articleNumber"]),
            chunk_type=data.get("chunkType", "article"),
            article_title=data.get("articleTitle"),
            paragraph_number=data.get("paragraphNumber"),
            item_number=data.get("itemNumber"),
        )


@dataclass
class GuidelineChunkMetadata:
    """Provenance of a guideline PDF chunk."""
    filename: str
    chunk_index: int
    title: Optional[str] = None
    page_number: Optional[int] = None
    section_title: Optional[str] = None
    source: Literal["guideline"] = "guideline"

    def to_dict(self) -> dict:
        return _compact({
            "source": self.source,
            "filename": self.filename,
            "title": self.title,
            "pageNumber": self.page_number,
            "sectionTitle": self.section_title,
            "chunkIndex": self.chunk_index,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "GuidelineChunkMetadata":
        return cls(
            filename=data["filename"],
            chunk_index=int(data["chunkIndex"]),
            title=data.get("title"),
            page_number=data.get("pageNumber"),
            section_title=data.get("sectionTitle"),
        )


@dataclass
class QaChunkMetadata:
    """Provenance of a Q&A chunk. ``original_id`` is comma-joined when combined."""
    qa_source: str
    category: str
    original_id: str
    url: str
    source: Literal["qa"] = "qa"

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "qaSource": self.qa_source,
            "category": self.category,
            "originalId": self.original_id,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QaChunkMetadata":
        return cls(
            qa_source=data["qaSource"],
            category=data["category"],
            original_id=data["originalId"],
            url=data["url"],
        )


ChunkMetadata = Union[LawChunkMetadata, GuidelineChunkMetadata, QaChunkMetadata]

_METADATA_TYPES = {
    "law": LawChunkMetadata,
    "guideline": GuidelineChunkMetadata,
    "qa": QaChunkMetadata,
}

# Sources with a typed metadata record; "violation" metadata stays opaque
TYPED_METADATA_SOURCES = tuple(_METADATA_TYPES)


def metadata_from_dict(data: dict) -> ChunkMetadata:
    """
    Rebuild a typed metadata record from its serialized dict.

    Raises:
        ValueError: unknown ``source`` discriminant
        KeyError: a required field of the variant is missing
    """
    source = data.get("source")
    metadata_cls = _METADATA_TYPES.get(source)
    if metadata_cls is None:
        raise ValueError(f"No chunk metadata variant for source: {source!r}")
    return metadata_cls.from_dict(data)


@dataclass
class Chunk:
    """A chunk of text with family-specific metadata for retrieval."""
    id: str
    content: str
    metadata: ChunkMetadata

    @property
    def source(self) -> str:
        return self.metadata.source

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata.to_dict(),
        }
