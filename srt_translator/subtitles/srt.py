"""
SRT reader and writer.

parse_srt turns raw SubRip text into CaptionLine records; render_srt writes
them back, preferring translated text.
"""

import re
from typing import Iterable, List

from srt_translator.ai.exceptions import TranslationError
from srt_translator.logger import get_logger
from srt_translator.subtitles.models import CaptionLine

logger = get_logger(__name__)

TIMECODE_RE = re.compile(
    r"(\d{2}:\d{2}:\d{2}[,.]\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2}[,.]\d{3})"
)
BLOCK_SEPARATOR_RE = re.compile(r"\n\s*\n")


class ParseError(TranslationError):
    """No well-formed subtitle record could be read."""

    def __init__(self, message: str, code: str = "parse_error", details: dict = None):
        super().__init__(message, code=code, details=details)


class EmptyDocumentError(ParseError):
    """The document has no content at all."""

    def __init__(self, message: str = "Uploaded file is empty.", code: str = "empty_document", details: dict = None):
        super().__init__(message, code=code, details=details)


def _normalize_timecode(value: str) -> str:
    return value.replace('.', ',')


def parse_srt(data: str) -> List[CaptionLine]:
    """
    Parse SubRip text.

    A block needs an integer index, a timecode line and at least one text
    line; malformed blocks are skipped. Sequence ids are unique: a block
    repeating an earlier id is dropped with a warning.

    Raises:
        EmptyDocumentError: data is empty or whitespace
        ParseError: no block was well-formed
    """
    if not data or not data.strip():
        raise EmptyDocumentError()

    normalized = data.replace('\r\n', '\n').replace('\r', '\n').lstrip('\ufeff')
    items: List[CaptionLine] = []
    seen_ids = set()

    for block in BLOCK_SEPARATOR_RE.split(normalized):
        lines = block.strip().split('\n')
        if len(lines) < 3:
            continue

        try:
            sequence_id = int(lines[0].strip())
        except ValueError:
            continue

        time_match = TIMECODE_RE.search(lines[1])
        if not time_match:
            continue

        if sequence_id in seen_ids:
            logger.warning(f"Skipping subtitle block with duplicate id {sequence_id}")
            continue
        seen_ids.add(sequence_id)

        items.append(CaptionLine(
            sequence_id=sequence_id,
            start_time=_normalize_timecode(time_match.group(1)),
            end_time=_normalize_timecode(time_match.group(2)),
            source_text='\n'.join(lines[2:]),
        ))

    if not items:
        raise ParseError("Parsed SRT has 0 subtitles.")

    return items


def render_srt(items: Iterable[CaptionLine]) -> str:
    """Render lines back to SubRip text, translated text first."""
    return '\n\n'.join(
        f"{item.sequence_id}\n{item.start_time} --> {item.end_time}\n{item.display_text}"
        for item in items
    )


def output_filename(display_name: str, suffix: str = "translated") -> str:
    """Download name for a translated document, e.g. ``movie_zh.srt``."""
    safe_suffix = re.sub(r"[^\w-]+", "_", suffix).strip('_') or "translated"
    return f"{display_name}_{safe_suffix}.srt"
