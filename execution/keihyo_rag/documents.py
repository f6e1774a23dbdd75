"""
Source document records consumed by the chunkers.

Three document families feed the index:
- Statute text (LawData): articles -> paragraphs -> numbered items
- Guideline PDFs (PdfDocument): extracted full text plus per-page text
- Q&A pages (QaData): question/answer pairs tagged with a category

Loaders (e-Gov API, PDF extraction, HTML scraping) live outside this package
and hand over these records with text already decoded.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, get_args

QaSource = Literal["representation", "premium", "guideline", "purchase"]
QA_SOURCES = get_args(QaSource)


@dataclass
class LawItem:
    """A numbered item (号) inside a paragraph."""
    item_number: str
    content: str

    def to_dict(self) -> dict:
        return {"itemNumber": self.item_number, "content": self.content}


@dataclass
class LawParagraph:
    """A paragraph (項) of an article."""
    paragraph_number: int
    content: str
    items: list[LawItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "paragraphNumber": self.paragraph_number,
            "content": self.content,
            "items": [i.to_dict() for i in self.items],
        }


@dataclass
class LawArticle:
    """An article (条). ``content`` holds the body when there are no paragraphs."""
    article_number: str
    content: str = ""
    article_title: Optional[str] = None
    paragraphs: list[LawParagraph] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "articleNumber": self.article_number,
            "articleTitle": self.article_title,
            "content": self.content,
            "paragraphs": [p.to_dict() for p in self.paragraphs],
        }


@dataclass
class LawData:
    """A whole statute as structured articles."""
    law_id: str
    law_title: str
    law_number: str = ""
    articles: list[LawArticle] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "lawId": self.law_id,
            "lawNumber": self.law_number,
            "lawTitle": self.law_title,
            "articles": [a.to_dict() for a in self.articles],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LawData":
        """Rebuild from the camelCase payload written by ``to_dict``."""
        articles = []
        for a in data.get("articles", []):
            paragraphs = [
                LawParagraph(
                    paragraph_number=int(p["paragraphNumber"]),
                    content=p.get("content", ""),
                    items=[
                        LawItem(item_number=str(i["itemNumber"]), content=i.get("content", ""))
                        for i in p.get("items", [])
                    ],
                )
                for p in a.get("paragraphs", [])
            ]
            articles.append(LawArticle(
                article_number=str(a["articleNumber"]),
                article_title=a.get("articleTitle"),
                content=a.get("content", ""),
                paragraphs=paragraphs,
            ))
        return cls(
            law_id=data["lawId"],
            law_title=data["lawTitle"],
            law_number=data.get("lawNumber", ""),
            articles=articles,
        )


@dataclass
class PdfPage:
    page_number: int
    text: str


@dataclass
class PdfDocument:
    """Text extracted from one guideline PDF."""
    filename: str
    text: str
    title: Optional[str] = None
    pages: list[PdfPage] = field(default_factory=list)
    num_pages: int = 0

    def __post_init__(self):
        if not self.num_pages:
            self.num_pages = len(self.pages)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "title": self.title,
            "numPages": self.num_pages,
            "text": self.text,
            "pages": [{"pageNumber": p.page_number, "text": p.text} for p in self.pages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PdfDocument":
        return cls(
            filename=data["filename"],
            text=data.get("text", ""),
            title=data.get("title"),
            pages=[
                PdfPage(page_number=int(p["pageNumber"]), text=p.get("text", ""))
                for p in data.get("pages", [])
            ],
            num_pages=int(data.get("numPages", 0)),
        )


@dataclass
class QaItem:
    id: str
    category: str
    question: str
    answer: str


@dataclass
class QaData:
    """All Q&A items scraped from one Consumer Affairs Agency page."""
    source: QaSource
    url: str
    title: str = ""
    items: list[QaItem] = field(default_factory=list)

    def __post_init__(self):
        if self.source not in QA_SOURCES:
            raise ValueError(
                f"Invalid Q&A source: {self.source}. Must be one of: {', '.join(QA_SOURCES)}"
            )

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "title": self.title,
            "url": self.url,
            "items": [
                {"id": i.id, "category": i.category, "question": i.question, "answer": i.answer}
                for i in self.items
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QaData":
        return cls(
            source=data["source"],
            url=data.get("url", ""),
            title=data.get("title", ""),
            items=[
                QaItem(
                    id=str(i["id"]),
                    category=i.get("category", ""),
                    question=i.get("question", ""),
                    answer=i.get("answer", ""),
                )
                for i in data.get("items", [])
            ],
        )
