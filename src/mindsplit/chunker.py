"""
Text chunking for MindSplit.

Splits raw notes into ordered, content-addressed chunks. Three boundary
methods are supported:
1. paragraph: blank line or bullet marker starts a new chunk
2. bullet: any bullet or numbered-list marker starts a new chunk
3. sentence: a new chunk starts once the current one ends with . ! or ?

Chunking is a pure function of (text, method).
"""

import logging
import re
from typing import Iterable, List, Optional

from .config import CHUNK_METHODS, DEFAULT_CHUNK_METHOD
from .exceptions import ValidationError
from .models import Chunk
from .seeded_random import deterministic_id

logger = logging.getLogger(__name__)

BULLET_PATTERN = re.compile(r'^[-*•]\s')
NUMBERED_PATTERN = re.compile(r'^\d+\.\s')
SENTENCE_END_PATTERN = re.compile(r'[.!?]\s*$')


class TextChunker:
    """
    Groups lines of text into chunks.

    Args:
        method: Boundary method ('paragraph', 'bullet' or 'sentence')
    """

    def __init__(self, method: str = DEFAULT_CHUNK_METHOD):
        if method not in CHUNK_METHODS:
            raise ValidationError(
                f"Unsupported chunk method: {method}. "
                f"Choose one of {', '.join(CHUNK_METHODS)}"
            )
        self.method = method

    def is_boundary(self, line: str, current: str) -> bool:
        """
        Decide whether line starts a new chunk.

        Args:
            line: Trimmed line about to be consumed
            current: Text accumulated so far for the open chunk
        """
        if not current:
            return True

        if self.method == 'paragraph':
            return line == '' or bool(BULLET_PATTERN.match(line))

        if self.method == 'bullet':
            return bool(BULLET_PATTERN.match(line) or NUMBERED_PATTERN.match(line))

        # sentence
        return bool(SENTENCE_END_PATTERN.search(current))

    def split(self, text: str) -> List[Chunk]:
        """
        Split text into chunks with content-derived ids.

        Args:
            text: Raw input

        Returns:
            Chunks in original order, source_index starting at 0
        """
        stripped = text.strip()
        if not stripped:
            return []

        chunks: List[Chunk] = []
        current = ''

        for raw_line in stripped.split('\n'):
            line = raw_line.strip()

            if self.is_boundary(line, current):
                if current.strip():
                    chunks.append(_make_chunk(current, len(chunks)))
                current = line
            else:
                current += ('\n' if current else '') + line

        # Flush the open chunk
        if current.strip():
            chunks.append(_make_chunk(current, len(chunks)))

        logger.debug(f"Parsed {len(chunks)} chunks using '{self.method}' boundaries")
        return chunks


def _make_chunk(text: str, source_index: int) -> Chunk:
    content = text.strip()
    return Chunk(
        id=deterministic_id(content, 'chunk'),
        text=content,
        source_index=source_index
    )


# Convenience functions for direct use

def parse_to_chunks(text: str, method: str = DEFAULT_CHUNK_METHOD) -> List[Chunk]:
    """
    Parse text into chunks.

    Args:
        text: Raw input text
        method: 'paragraph', 'bullet' or 'sentence'

    Returns:
        Ordered list of Chunk objects (empty for whitespace-only input)
    """
    return TextChunker(method).split(text)


def chunks_to_text(chunks: Iterable[Chunk]) -> str:
    """Join chunk texts in source order, separated by blank lines."""
    ordered = sorted(chunks, key=lambda c: c.source_index)
    return '\n\n'.join(chunk.text for chunk in ordered)


def get_chunk_by_id(chunks: Iterable[Chunk], chunk_id: str) -> Optional[Chunk]:
    """Find a chunk by id, or None."""
    for chunk in chunks:
        if chunk.id == chunk_id:
            return chunk
    return None
