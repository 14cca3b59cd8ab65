from typing import Iterable, List

from ..schemas import Citation

PREVIEW_CHARS = 200


def build_citations(hits: Iterable) -> List[Citation]:
    """One citation per search hit, best match first."""
    return [
        Citation(content=hit.chunk.content, document_id=hit.document_id, score=float(hit.score))
        for hit in hits
    ]


def _preview(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= PREVIEW_CHARS:
        return text
    return text[:PREVIEW_CHARS].rstrip() + "..."


def assemble_answer(query: str, citations: List[Citation]) -> str:
    """Placeholder answer: the query echoed back with the retrieved context.

    No text is generated; a language model would consume the same citations.
    """
    lines = [f'This is a mock response to your query: "{query}"']
    if not citations:
        lines.append("No relevant passages were found in your documents.")
        return "\n".join(lines)
    lines.append("")
    lines.append("Relevant passages:")
    for idx, cite in enumerate(citations, start=1):
        lines.append(f"[{idx}] {_preview(cite.content)}")
    return "\n".join(lines)
