"""Markdown cleaning and heading-aware chunking of scraped documents."""

from __future__ import annotations

import re
from dataclasses import dataclass

from timber_kb.config import ChunkingConfig

_SECTION_SPLIT = re.compile(r"(?=^#{2,3}\s)", flags=re.MULTILINE)
_HEADING = re.compile(r"^#{2,3}\s+(.+)$", flags=re.MULTILINE)
_PARAGRAPH_SPLIT = re.compile(r"\n\n+")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

# (pattern, flags) pairs applied in order by `clean_markdown`.
_CLEANUP_RULES: tuple[tuple[str, int], ...] = (
    (r"!\[Image \d+:[^\]]*\]\([^)]+\)", 0),
    (r"!\[[^\]]*\]\([^)]+\)", 0),
    (r"\[Skip to.*?\]", re.IGNORECASE),
    (r"\[Menu\]|\[Search\]|\[Home\]", re.IGNORECASE),
    (r"^\s*[*-]\s*\[[^\]]{1,40}\]\([^)]+\)\s*$", re.MULTILINE),
    (r"^Top menu\s*-+[\s\S]*?(?=\n#{2}|\n\n\n)", re.MULTILINE),
    (r"^Footer\s*-+[\s\S]*$", re.MULTILINE),
    (r"^Stay up-to-date[\s\S]*$", re.MULTILINE),
    (r"^Subscribe to our newsletter[\s\S]*$", re.MULTILINE),
    (r"cookie|privacy policy|terms of use|copyright \d{4}", re.IGNORECASE),
    (r"FWPA Footer menu[\s\S]*$", re.IGNORECASE),
    (r"\[Contact us\.\]\([^)]+\)[\s\S]*$", re.IGNORECASE),
    (r"(\*\s*){3,}", 0),
    (r"\[\]\([^)]+\)", 0),
)


@dataclass(slots=True)
class TextChunk:
    content: str
    index: int
    heading: str = ""


def clean_markdown(markdown: str) -> str:
    """Strip images, navigation and boilerplate from scraped markdown."""
    cleaned = markdown
    for pattern, flags in _CLEANUP_RULES:
        cleaned = re.sub(pattern, "", cleaned, flags=flags)
    cleaned = re.sub(r"-{3,}", "---", cleaned)
    cleaned = re.sub(r"\n{4,}", "\n\n\n", cleaned)
    return cleaned.strip()


class MarkdownChunker:
    """Splits cleaned markdown into retrieval-sized chunks.

    Sections start at `##`/`###` headings. A section that already fits and is
    substantial becomes one chunk; otherwise paragraphs are packed up to
    `max_chunk_chars`, and a paragraph that is itself too long is packed
    sentence by sentence. Fragments shorter than `min_chunk_chars` are
    dropped, so indices stay contiguous over the chunks actually emitted.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(self, markdown: str) -> list[TextChunk]:
        chunks: list[TextChunk] = []
        for section in _SECTION_SPLIT.split(markdown):
            heading_match = _HEADING.search(section)
            heading = heading_match.group(1).strip() if heading_match else ""
            for content in self._section_chunks(section):
                chunks.append(TextChunk(content=content, index=len(chunks), heading=heading))
        return chunks

    def _section_chunks(self, section: str) -> list[str]:
        max_chars = self.config.max_chunk_chars
        stripped = section.strip()
        if len(section) <= max_chars and len(stripped) > self.config.min_chunk_chars:
            return [stripped]

        out: list[str] = []
        current = ""
        for paragraph in _PARAGRAPH_SPLIT.split(section):
            paragraph = paragraph.strip()
            if len(paragraph) < self.config.min_paragraph_chars:
                continue

            if len(current) + len(paragraph) <= max_chars:
                current = f"{current}\n\n{paragraph}" if current else paragraph
                continue

            self._emit(out, current)
            if len(paragraph) > max_chars:
                current = self._pack_sentences(paragraph, out)
            else:
                current = paragraph

        self._emit(out, current)
        return out

    def _pack_sentences(self, paragraph: str, out: list[str]) -> str:
        current = ""
        for sentence in _SENTENCE_SPLIT.split(paragraph):
            if len(current) + len(sentence) <= self.config.max_chunk_chars:
                current = f"{current} {sentence}" if current else sentence
            else:
                self._emit(out, current)
                current = sentence
        return current

    def _emit(self, out: list[str], content: str) -> None:
        if len(content) > self.config.min_chunk_chars:
            out.append(content)
