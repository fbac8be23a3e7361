"""
Subtitles module - SRT documents

This module provides:
- CaptionLine / SourceDocument value types
- parse_srt / render_srt reader and writer
"""

from srt_translator.subtitles.models import CaptionLine, SourceDocument
from srt_translator.subtitles.srt import (
    EmptyDocumentError,
    ParseError,
    output_filename,
    parse_srt,
    render_srt,
)

__all__ = [
    'CaptionLine',
    'SourceDocument',
    'EmptyDocumentError',
    'ParseError',
    'output_filename',
    'parse_srt',
    'render_srt',
]
