"""
Translation Utility Functions

Contains helper functions for:
- Splitting caption lines into fixed-size batches
- Parsing model responses into string arrays (with fallbacks)
"""

import json
from typing import Any, Dict, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def chunk_lines(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """
    Split items into contiguous batches of at most batch_size.

    Args:
        items: Ordered items (caption lines)
        batch_size: Maximum items per batch, must be >= 1

    Returns:
        List of batches preserving the original order
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def match_json_array(text: str) -> Optional[str]:
    """
    Extract JSON array from mixed text using bracket matching.

    Brackets inside string literals are ignored.

    Args:
        text: Text potentially containing JSON array

    Returns:
        Extracted JSON array string, or None if not found
    """
    if not text:
        return None

    depth = 0
    start = -1
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue

        if in_string:
            if char == '\\':
                escape_next = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            # Only track strings once inside an array
            if depth:
                in_string = True
        elif char == '[':
            if depth == 0:
                start = i
            depth += 1
        elif char == ']' and depth:
            depth -= 1
            if depth == 0 and start >= 0:
                return text[start:i + 1]

    return None


def match_json_object(text: str) -> Optional[str]:
    """
    Extract JSON object from mixed text using bracket matching.

    Args:
        text: Text potentially containing JSON object

    Returns:
        Extracted JSON object string, or None if not found
    """
    if not text:
        return None

    stack = []
    start = -1
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue

        if char == '\\':
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if char == '{':
            if not stack:
                start = i
            stack.append('{')
        elif char == '}':
            if stack:
                stack.pop()
                if not stack and start >= 0:
                    return text[start:i + 1]

    return None


def _strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```)."""
    lines = text.split('\n')
    if lines and lines[0].startswith('```'):
        lines = lines[1:]
    if lines and lines[-1].strip() == '```':
        lines = lines[:-1]
    return '\n'.join(lines).strip()


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def safe_parse_json_array(text: str) -> Optional[List[Any]]:
    """
    Safely parse JSON array from potentially malformed text.

    Tries multiple strategies:
    1. Direct parse
    2. Remove markdown code blocks and parse
    3. Extract with bracket matching and parse

    Args:
        text: Text to parse

    Returns:
        Parsed list or None on failure
    """
    if not text:
        return None

    text = text.strip()

    result = _loads(text)
    if isinstance(result, list):
        return result

    if text.startswith('```'):
        result = _loads(_strip_code_fence(text))
        if isinstance(result, list):
            return result

    extracted = match_json_array(text)
    if extracted:
        result = _loads(extracted)
        if isinstance(result, list):
            return result

    return None


def safe_parse_json_object(text: str) -> Optional[Dict]:
    """
    Safely parse JSON object from potentially malformed text.

    Args:
        text: Text to parse

    Returns:
        Parsed dict or None on failure
    """
    if not text:
        return None

    text = text.strip()

    result = _loads(text)
    if isinstance(result, dict):
        return result

    if text.startswith('```'):
        result = _loads(_strip_code_fence(text))
        if isinstance(result, dict):
            return result

    extracted = match_json_object(text)
    if extracted:
        result = _loads(extracted)
        if isinstance(result, dict):
            return result

    return None


def parse_translations_response(text: str) -> Optional[List[Any]]:
    """
    Parse translation response with multiple fallback strategies.
    Handles both array format and object with translations key.

    Length is not checked here; the batch pipeline reconciles counts.

    Args:
        text: Response text from AI

    Returns:
        List of translated items or None on failure
    """
    if not text:
        return None

    result = safe_parse_json_array(text)
    if result is not None:
        return result

    obj = safe_parse_json_object(text)
    if obj is not None and 'translations' in obj:
        translations = obj['translations']
        if isinstance(translations, list):
            if translations and isinstance(translations[0], dict):
                return [t.get('text', '') for t in translations]
            return translations

    return None
