"""
Translation module - Batch translation of caption lines

This module provides:
- BatchProgress: Progress tracking dataclass
- Batching and response parsing utilities

The batch pipeline itself lives in srt_translator.translation.pipeline.
"""

from srt_translator.translation.progress import BatchProgress
from srt_translator.translation.utils import (
    chunk_lines,
    match_json_array,
    match_json_object,
    safe_parse_json_array,
    safe_parse_json_object,
    parse_translations_response,
)
