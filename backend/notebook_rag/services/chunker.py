"""
Character-window chunker for extracted document text, built on
RecursiveCharacterTextSplitter.

Chunks are verbatim slices of the input (separators are kept and whitespace is
not stripped), so any excerpt taken from a chunk is also a substring of the
document text. Without overlap the chunks concatenate back to the exact input.
"""
from dataclasses import dataclass
from typing import List

from langchain_text_splitters import RecursiveCharacterTextSplitter

# Split preferences, strongest first. The separator stays at the end of the chunk.
SEPARATORS = ["\n\n", "\n", ". ", "? ", "! ", " ", ""]


@dataclass(frozen=True)
class TextChunk:
    index: int
    text: str
    start: int
    end: int

    @property
    def char_length(self) -> int:
        return len(self.text)


def build_splitter(max_chunk_chars: int, overlap_chars: int = 0) -> RecursiveCharacterTextSplitter:
    return RecursiveCharacterTextSplitter(
        chunk_size=max_chunk_chars,
        chunk_overlap=overlap_chars,
        separators=SEPARATORS,
        is_separator_regex=False,
        keep_separator="end",
        strip_whitespace=False,
        add_start_index=True,
        length_function=len,
    )


def chunk_text(text: str, max_chunk_chars: int, overlap_chars: int = 0) -> List[TextChunk]:
    if max_chunk_chars <= 0:
        raise ValueError("max_chunk_chars must be positive")
    if overlap_chars < 0 or overlap_chars >= max_chunk_chars:
        raise ValueError("overlap_chars must be >= 0 and smaller than max_chunk_chars")

    if not text or not text.strip():
        return []

    documents = build_splitter(max_chunk_chars, overlap_chars).create_documents([text])

    chunks: List[TextChunk] = []
    for doc in documents:
        start = doc.metadata["start_index"]
        chunks.append(TextChunk(index=len(chunks), text=doc.page_content, start=start,
                                end=start + len(doc.page_content)))
    return chunks
