"""
Small-chunk merge pass shared by the law and guideline chunkers.

Folds undersized chunks into the following chunk (blank-line separated)
without ever producing a chunk longer than ``max_size``. Trailing small
chunks are kept. The family-specific ``merge`` callback decides how the
metadata and id of two merged chunks combine.
"""

import logging
from typing import Callable, Optional

from .chunks import Chunk
from .language_patterns import MERGE_SEPARATOR

logger = logging.getLogger(__name__)

# merge(pending, current, merged_content) -> merged chunk
MergeFn = Callable[[Chunk, Chunk, str], Chunk]


def merge_small_chunks(
    chunks: list[Chunk],
    min_size: int,
    max_size: int,
    merge: MergeFn,
) -> list[Chunk]:
    """
    Merge chunks shorter than ``min_size`` into their successors.

    Args:
        chunks: Ordered chunks of one document
        min_size: Chunks shorter than this are held for merging
        max_size: A merge that would exceed this is not performed
        merge: Builds the merged chunk from (pending, current, content)

    Returns:
        New ordered list; input chunks are not modified
    """
    if not chunks:
        return []

    result: list[Chunk] = []
    pending: Optional[Chunk] = None

    for chunk in chunks:
        if pending is not None:
            merged_content = f"{pending.content}{MERGE_SEPARATOR}{chunk.content}"

            if len(merged_content) <= max_size:
                merged = merge(pending, chunk, merged_content)
                if len(merged.content) < min_size:
                    pending = merged
                else:
                    result.append(merged)
                    pending = None
                continue

            # Too large together: keep the small one as-is
            result.append(pending)
            pending = None

        if len(chunk.content) < min_size:
            pending = chunk
        else:
            result.append(chunk)

    if pending is not None:
        result.append(pending)

    if len(result) != len(chunks):
        logger.debug(f"Merged {len(chunks)} chunks into {len(result)}")
    return result
