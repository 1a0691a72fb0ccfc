from __future__ import annotations

import logging
from typing import List

from .errors import InvalidConfiguration
from .models import TextChunk

_log = logging.getLogger(__name__)

# Share of the emitted chunk's words reused at the start of the next chunk
# in word-aware mode.
WORD_OVERLAP_DIVISOR = 4


class TextChunker:
    """
    Split document text into overlapping segments.

    Two strategies are available: a fixed character window (`chunk`) and a
    word-aware splitter that never breaks words (`chunk_by_words`). The
    indexing pipeline uses the word-aware variant.
    """

    def __init__(self, chunk_size: int, overlap: int, logger: logging.Logger | None = None) -> None:
        if chunk_size <= 0:
            raise InvalidConfiguration(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise InvalidConfiguration(f"overlap must be non-negative, got {overlap}")
        if overlap >= chunk_size:
            raise InvalidConfiguration(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.overlap = overlap
        self._log = logger or _log

    def chunk(self, text: str) -> List[TextChunk]:
        """Slide a `chunk_size` character window over the text, stepping by `chunk_size - overlap`."""
        if not text or not text.strip():
            self._log.warning("Empty text passed to chunker")
            return []

        chunks: list[TextChunk] = []
        step = self.chunk_size - self.overlap
        position = 0
        index = 0

        while position < len(text):
            end = min(position + self.chunk_size, len(text))
            window = text[position:end]
            if window.strip():
                chunks.append(
                    TextChunk(
                        content=window.strip(),
                        index=index,
                        start_offset=position,
                        end_offset=end,
                    )
                )
                index += 1
            position += step

        self._log.debug(
            "Split text into %d chunks (size=%d, overlap=%d)", len(chunks), self.chunk_size, self.overlap
        )
        return chunks

    def chunk_by_words(self, text: str) -> List[TextChunk]:
        """
        Accumulate whitespace-delimited words up to `chunk_size` characters.

        When `overlap` is positive, each new chunk starts with the trailing
        quarter of the previous chunk's words (at least one). Offsets are
        approximate because overlapping words are counted twice.
        """
        words = text.split() if text else []
        if not words:
            self._log.warning("Empty text passed to chunker")
            return []

        chunks: list[TextChunk] = []
        current: list[str] = []
        start = 0

        for word in words:
            current_len = len(" ".join(current))
            if current and current_len + len(word) + 1 > self.chunk_size:
                chunk_text = " ".join(current)
                chunks.append(
                    TextChunk(
                        content=chunk_text,
                        index=len(chunks),
                        start_offset=start,
                        end_offset=start + len(chunk_text),
                    )
                )

                overlap_words: list[str] = []
                if self.overlap > 0 and len(current) > 1:
                    overlap_count = max(1, len(current) // WORD_OVERLAP_DIVISOR)
                    overlap_words = current[-overlap_count:]
                overlap_text = " ".join(overlap_words)

                start += len(chunk_text) - len(overlap_text)
                current = list(overlap_words)

            current.append(word)

        if current:
            chunk_text = " ".join(current)
            chunks.append(
                TextChunk(
                    content=chunk_text,
                    index=len(chunks),
                    start_offset=start,
                    end_offset=start + len(chunk_text),
                )
            )

        self._log.debug(
            "Split text into %d word chunks (size=%d, overlap=%d)",
            len(chunks),
            self.chunk_size,
            self.overlap,
        )
        return chunks


__all__ = ["TextChunker", "WORD_OVERLAP_DIVISOR"]
