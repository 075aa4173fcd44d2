"""Chunker - splits documents into bounded retrieval units."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..models.document import (
    Chunk,
    ChunkMetadata,
    ContentType,
    Document,
    QualityScore,
    content_hash,
)
from ..protocols.tokenizer import TokenizerProtocol

logger = logging.getLogger(__name__)

_MD_HEADER = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE = re.compile(r"^\s*(```|~~~)")
_RST_UNDERLINE = re.compile(r"^([=\-~^*+#])\1{2,}\s*$")
_RST_LEVELS = {"=": 1, "-": 2, "~": 3}
_HEURISTIC_HEADER = re.compile(r"^[A-Z][A-Za-z0-9 '&/\-]*$")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_WORD = re.compile(r"\S+")
_EXAMPLE_TITLE = re.compile(r"\b(example|tutorial|sample|walkthrough)s?\b", re.I)

MIN_SENTENCES = 3


@dataclass(frozen=True)
class SizeProfile:
    """Token bounds for one content type."""
    target: int
    max: int
    min: int
    overlap: int


CHUNK_PROFILES: dict[ContentType, SizeProfile] = {
    ContentType.TECHNICAL: SizeProfile(target=512, max=768, min=100, overlap=0),
    ContentType.EXAMPLE: SizeProfile(target=800, max=1200, min=100, overlap=50),
    ContentType.CONCEPTUAL: SizeProfile(target=800, max=1000, min=100, overlap=100),
    ContentType.META: SizeProfile(target=1000, max=1500, min=100, overlap=0),
}


@dataclass
class ChunkOptions:
    """Caller overrides. Unset sizes come from the content-type profile."""
    target_size: Optional[int] = None
    max_size: Optional[int] = None
    min_size: Optional[int] = None
    overlap: Optional[int] = None
    preserve_code: bool = True

    def resolve(self, content_type: ContentType) -> SizeProfile:
        profile = CHUNK_PROFILES[content_type]
        target = self.target_size if self.target_size is not None else profile.target
        max_size = self.max_size if self.max_size is not None else max(profile.max, target)
        min_size = self.min_size if self.min_size is not None else profile.min
        overlap = self.overlap if self.overlap is not None else profile.overlap

        if not 0 < target <= max_size:
            raise ValueError(f"Invalid chunk sizes: target={target}, max={max_size}")
        return SizeProfile(
            target=target,
            max=max_size,
            min=min(min_size, target),
            overlap=max(0, min(overlap, target // 2)),
        )


@dataclass
class Section:
    """Header-delimited part of a document."""
    title: str = ""
    level: int = 0
    lines: list[str] = field(default_factory=list)
    has_code: bool = False

    @property
    def text(self) -> str:
        return "\n".join(self.lines).strip()


@dataclass
class _Piece:
    text: str
    title: str = ""
    level: int = 0
    is_code: bool = False


@dataclass
class _Unit:
    text: str
    paragraph_start: bool = False


def parse_sections(text: str) -> list[Section]:
    """Split text into sections at markdown, RST and heuristic headers.

    Lines inside fenced code blocks are never treated as headers.
    """
    lines = text.splitlines()
    sections: list[Section] = []
    current = Section()
    fence: Optional[str] = None
    skip_next = False

    for i, line in enumerate(lines):
        if skip_next:
            skip_next = False
            continue

        fence_match = _FENCE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker == fence:
                fence = None
            current.lines.append(line)
            current.has_code = True
            continue

        if fence is not None:
            current.lines.append(line)
            continue

        header = _detect_header(lines, i)
        if header is None:
            current.lines.append(line)
            continue

        title, level, underlined = header
        if current.text:
            sections.append(current)
        current = Section(title=title, level=level, lines=[line])
        if underlined:
            current.lines.append(lines[i + 1])
            skip_next = True

    if current.text:
        sections.append(current)

    return sections


def _detect_header(lines: list[str], i: int) -> Optional[tuple[str, int, bool]]:
    line = lines[i]
    stripped = line.strip()
    if not stripped:
        return None

    match = _MD_HEADER.match(line)
    if match:
        return match.group(2).strip(), len(match.group(1)), False

    next_line = lines[i + 1] if i + 1 < len(lines) else ""
    underline = _RST_UNDERLINE.match(next_line)
    if underline and len(next_line.strip()) >= len(stripped) and not _RST_UNDERLINE.match(line):
        return stripped, _RST_LEVELS.get(underline.group(1), 4), True

    prev_blank = i == 0 or not lines[i - 1].strip()
    next_blank = not next_line.strip()
    if (
        prev_blank
        and next_blank
        and line == line.lstrip()
        and _HEURISTIC_HEADER.match(stripped)
        and len(stripped.split()) <= 10
        and i + 1 < len(lines)
    ):
        return stripped, 2, False

    return None


def split_code_segments(text: str) -> list[tuple[str, bool]]:
    """Split text into ordered (segment, is_code) pairs at code fences."""
    segments: list[tuple[str, bool]] = []
    buffer: list[str] = []
    fence: Optional[str] = None

    for line in text.splitlines():
        match = _FENCE.match(line)
        if fence is None and match:
            if "\n".join(buffer).strip():
                segments.append(("\n".join(buffer).strip(), False))
            buffer = [line]
            fence = match.group(1)
        elif fence is not None and match and match.group(1) == fence:
            buffer.append(line)
            segments.append(("\n".join(buffer), True))
            buffer = []
            fence = None
        else:
            buffer.append(line)

    if "\n".join(buffer).strip():
        # An unterminated fence runs to the end of the section.
        segments.append(("\n".join(buffer).strip("\n"), fence is not None))

    return segments


def split_sentences(text: str) -> list[_Unit]:
    """Paragraphs, then sentences within each paragraph."""
    units: list[_Unit] = []
    for paragraph in _PARAGRAPH_BREAK.split(text):
        sentences = [s.strip() for s in _SENTENCE_END.split(paragraph.strip()) if s.strip()]
        for j, sentence in enumerate(sentences):
            units.append(_Unit(sentence, paragraph_start=j == 0))
    return units


def strip_overlap(
    previous: str, current: str, min_words: int = 3, max_words: int = 300
) -> str:
    """Drop the longest prefix of `current` that repeats the end of `previous`.

    Matching is done on whitespace-delimited words. Prefixes shorter than
    `min_words` are kept, so a shared leading "The" is not treated as overlap.
    """
    words = list(_WORD.finditer(current))
    tail = _WORD.findall(previous)[-max_words:]
    limit = min(len(words), len(tail))

    for n in range(limit, min_words - 1, -1):
        if tail[-n:] == [m.group() for m in words[:n]]:
            return current[words[n - 1].end():].lstrip()
    return current


def _join(units: list[_Unit]) -> str:
    parts = []
    for i, unit in enumerate(units):
        if i > 0:
            parts.append("\n\n" if unit.paragraph_start else " ")
        parts.append(unit.text)
    return "".join(parts)


class Chunker:
    """Adaptive, code-aware document chunker.

    Deterministic: identical documents and options yield identical chunks.
    """

    def __init__(self, tokenizer: TokenizerProtocol, hard_limit: int = 8000):
        """Initialize chunker.

        Args:
            tokenizer: Token counter matching the embedding model.
            hard_limit: Embedding provider's maximum tokens per input.
        """
        self._tokenizer = tokenizer
        self._hard_limit = hard_limit

    def count(self, text: str) -> int:
        return self._tokenizer.count(text)

    def chunk(
        self,
        document: Document,
        options: Optional[ChunkOptions] = None,
        quality: Optional[QualityScore] = None,
    ) -> list[Chunk]:
        """Split a document into chunks.

        Args:
            document: Source document.
            options: Size overrides and code handling.
            quality: Classification from the quality scorer; picks the size
                profile and is copied into chunk metadata.

        Returns:
            Ordered chunks. Empty only for blank documents.
        """
        options = options or ChunkOptions()
        quality = quality or QualityScore(
            score=0.5, content_type=ContentType.CONCEPTUAL, boost_factor=1.0
        )
        sizes = options.resolve(quality.content_type)

        text = document.content.strip()
        if not text:
            return []

        if len(split_sentences(text)) < MIN_SENTENCES and self.count(text) <= sizes.max:
            pieces = [_Piece(text=text, title=document.metadata.title, level=0)]
        else:
            try:
                pieces = self._chunk_sections(text, sizes, options.preserve_code)
            except Exception as e:
                logger.warning(
                    f"Structured chunking failed for {document.id}, "
                    f"falling back to sentence chunking: {e}"
                )
                pieces = [
                    _Piece(text=t) for t in self._accumulate(split_sentences(text), sizes)
                ]
            pieces = self._merge_small(pieces, sizes)

        pieces = self._enforce_hard_limit(pieces, sizes)

        chunks = []
        for index, piece in enumerate(pieces):
            has_code = piece.is_code or "```" in piece.text or "~~~" in piece.text
            chunks.append(
                Chunk(
                    content=piece.text,
                    metadata=ChunkMetadata(
                        document_id=document.id,
                        chunk_index=index,
                        token_count=self.count(piece.text),
                        has_code=has_code,
                        content_type=self._chunk_type(quality.content_type, piece, has_code),
                        content_hash=content_hash(piece.text),
                        section_title=piece.title,
                        section_level=piece.level,
                        quality_score=quality.score,
                        boost_factor=quality.boost_factor,
                        document=document.metadata,
                    ),
                )
            )

        logger.debug(
            f"Chunked {document.id}: {len(chunks)} chunks "
            f"({quality.content_type.value}, target={sizes.target})"
        )
        return chunks

    def _chunk_sections(
        self, text: str, sizes: SizeProfile, preserve_code: bool
    ) -> list[_Piece]:
        pieces: list[_Piece] = []

        for section in parse_sections(text):
            section_text = section.text
            if self.count(section_text) <= sizes.target:
                pieces.append(_Piece(section_text, section.title, section.level))
                continue

            if preserve_code and section.has_code:
                for segment, is_code in split_code_segments(section_text):
                    if is_code:
                        for part in self._split_code(segment, sizes):
                            pieces.append(
                                _Piece(part, section.title, section.level, is_code=True)
                            )
                    else:
                        for part in self._accumulate(split_sentences(segment), sizes):
                            pieces.append(_Piece(part, section.title, section.level))
            else:
                for part in self._accumulate(split_sentences(section_text), sizes):
                    pieces.append(_Piece(part, section.title, section.level))

        return pieces

    def _accumulate(self, units: list[_Unit], sizes: SizeProfile) -> list[str]:
        """Greedy sentence accumulation up to the target size."""
        chunks: list[str] = []
        current: list[_Unit] = []

        for unit in units:
            if self.count(unit.text) > sizes.max:
                if current:
                    chunks.append(_join(current))
                    current = []
                chunks.extend(self._split_words(unit.text, sizes.target, sizes.max))
                continue

            if current and self.count(_join(current + [unit])) > sizes.target:
                chunks.append(_join(current))
                current = self._overlap_tail(current, unit, sizes)

            current.append(unit)

        if current:
            chunks.append(_join(current))

        return chunks

    def _overlap_tail(
        self, previous: list[_Unit], next_unit: _Unit, sizes: SizeProfile
    ) -> list[_Unit]:
        if sizes.overlap <= 0:
            return []

        tail: list[_Unit] = []
        for unit in reversed(previous):
            candidate = [unit] + tail
            if self.count(_join(candidate)) > sizes.overlap:
                break
            tail = candidate

        # Never carry a whole previous chunk forward.
        if len(tail) == len(previous):
            return []
        if tail and self.count(_join(tail + [next_unit])) > sizes.max:
            return []
        return tail

    def _split_code(self, code: str, sizes: SizeProfile) -> list[str]:
        """Keep a code block whole when it fits, else split on lines."""
        if self.count(code) <= sizes.max:
            return [code]

        parts: list[str] = []
        current: list[str] = []
        for line in code.splitlines():
            if self.count(line) > sizes.max:
                if current:
                    parts.append("\n".join(current))
                    current = []
                parts.extend(self._split_words(line, sizes.target, sizes.max))
                continue

            if current and self.count("\n".join(current + [line])) > sizes.max:
                parts.append("\n".join(current))
                current = []
            current.append(line)

        if current:
            parts.append("\n".join(current))

        return parts

    def _split_words(self, text: str, size: int, limit: int) -> list[str]:
        """Force-split text on word boundaries into pieces of about size tokens."""
        words = text.split()
        if not words:
            return []

        parts: list[str] = []
        current: list[str] = []
        current_tokens = 0
        for word in words:
            tokens = self.count(word)
            if current and current_tokens + tokens > size:
                parts.append(" ".join(current))
                current = []
                current_tokens = 0
            current.append(word)
            current_tokens += tokens
        if current:
            parts.append(" ".join(current))

        result: list[str] = []
        for part in parts:
            part_words = part.split()
            if self.count(part) > limit and len(part_words) > 1:
                half = len(part_words) // 2
                result.extend(self._split_words(" ".join(part_words[:half]), size, limit))
                result.extend(self._split_words(" ".join(part_words[half:]), size, limit))
            else:
                result.append(part)
        return result

    def _merge_small(self, pieces: list[_Piece], sizes: SizeProfile) -> list[_Piece]:
        """Merge undersized pieces into the previous piece when it fits."""
        merged: list[_Piece] = []

        for piece in pieces:
            if merged:
                previous = merged[-1]
                if self.count(previous.text) < sizes.min or self.count(piece.text) < sizes.min:
                    addition = strip_overlap(previous.text, piece.text)
                    combined = f"{previous.text}\n\n{addition}" if addition else previous.text
                    if self.count(combined) <= sizes.max:
                        merged[-1] = _Piece(
                            text=combined,
                            title=previous.title or piece.title,
                            level=previous.level if previous.title else piece.level,
                            is_code=previous.is_code or piece.is_code,
                        )
                        continue
            merged.append(piece)

        return merged

    def _enforce_hard_limit(self, pieces: list[_Piece], sizes: SizeProfile) -> list[_Piece]:
        result: list[_Piece] = []
        for piece in pieces:
            if self.count(piece.text) <= self._hard_limit:
                result.append(piece)
                continue

            logger.warning(
                f"Chunk exceeds embedding limit ({self._hard_limit} tokens), force-splitting"
            )
            size = min(sizes.target, self._hard_limit)
            for part in self._split_words(piece.text, size, self._hard_limit):
                result.append(_Piece(part, piece.title, piece.level, piece.is_code))
        return result

    @staticmethod
    def _chunk_type(
        document_type: ContentType, piece: _Piece, has_code: bool
    ) -> ContentType:
        if document_type is ContentType.META:
            return document_type
        if _EXAMPLE_TITLE.search(piece.title):
            return ContentType.EXAMPLE
        if has_code:
            return ContentType.TECHNICAL
        return document_type
