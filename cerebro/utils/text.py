
from typing import List

from ..errors import InvalidConfiguration
from ..models import Chunk

def split_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 200) -> List[Chunk]:
    """Cut text into fixed-size character windows that overlap by chunk_overlap.

    Windows start every chunk_size - chunk_overlap characters; the last one
    may be shorter and always ends at len(text). Returned chunks have no embedding and no owner yet.
    """
    if chunk_size <= 0:
        raise InvalidConfiguration(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise InvalidConfiguration(
            f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} for chunk_size {chunk_size}"
        )

    stride = chunk_size - chunk_overlap
    chunks: List[Chunk] = []
    position = 0
    while position < len(text):
        end = min(position + chunk_size, len(text))
        chunks.append(Chunk(
            index=len(chunks),
            content=text[position:end],
            start_offset=position,
            end_offset=end,
        ))
        if end == len(text):
            # a further window would lie entirely inside this one
            break
        position += stride
    return chunks

def word_count(text: str) -> int:
    return len(text.split())
