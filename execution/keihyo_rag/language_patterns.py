"""
Pattern and Label Definitions for the Keihyo RAG corpus

All regex patterns, separators and display labels used by the chunkers and
the result formatter. Modules import from here instead of defining them
inline.
"""

import re

FULLWIDTH_SPACE = "　"

# =============================================================================
# Statute Formatting (e-Gov article / paragraph / item layout)
# =============================================================================

ARTICLE_HEADING = "第{number}条"
ARTICLE_HEADING_WITH_TITLE = "第{number}条（{title}）"
PARAGRAPH_PREFIX = "{number}" + FULLWIDTH_SPACE
ITEM_LINE = FULLWIDTH_SPACE + "{number}" + FULLWIDTH_SPACE + "{content}"

# =============================================================================
# Guideline Section Detection
# =============================================================================

# Line-start headings only:
# - 第N章/節/款/項 with kanji numerals, 第N条/章/節 with digits (第5条の2)
# - bracketed headings 【...】
# Numbered lists ("1." / "(1)") are not headings.
GUIDELINE_SECTION_PATTERN = re.compile(
    r"^(?:第[一二三四五六七八九十百]+[章節款項]|第\d+[条章節]の?\d*|【[^】]+】)"
)

SENTENCE_TERMINATOR = "。"

# =============================================================================
# Chunk Separators
# =============================================================================

MERGE_SEPARATOR = "\n\n"
QA_COMBINE_SEPARATOR = "\n\n---\n\n"
QA_DEFAULT_CATEGORY = "一般"

# =============================================================================
# Display Labels
# =============================================================================

LABELS = {
    "law_header": "【{law_title}】",
    "guideline_header": "【ガイドライン: {name}】",
    "qa_header": "【景品表示法Q&A - {category}】",
    "qa_category": "【{category}】",
    "article_ref": "第{number}条",
    "no_documents": "（参照文書なし）",
}

SOURCE_LABELS = {
    "law": "【法令】",
    "guideline": "【ガイドライン】",
    "qa": "【Q&A】",
    "violation": "【違反事例】",
}
