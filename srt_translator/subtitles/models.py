"""
Subtitle Data Classes

Value types for one caption line and for the document a job reads.
Both are frozen: updates go through dataclasses.replace.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class CaptionLine:
    """One subtitle record."""
    sequence_id: int
    start_time: str
    end_time: str
    source_text: str
    translated_text: Optional[str] = None

    @property
    def display_text(self) -> str:
        """Translated text when present, otherwise the source text."""
        return self.translated_text if self.translated_text is not None else self.source_text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.sequence_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "source_text": self.source_text,
            "translated_text": self.translated_text,
        }


@dataclass(frozen=True)
class SourceDocument:
    """Handle to a document waiting to be parsed: in-memory content or a file path."""
    name: str
    content: Optional[Union[bytes, str]] = None
    path: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SourceDocument":
        path = Path(path)
        return cls(name=path.name, path=path)

    @property
    def display_name(self) -> str:
        """File name without the .srt extension."""
        name = self.name
        if name.lower().endswith('.srt'):
            name = name[:-4]
        return name

    async def read_text(self) -> str:
        """Return the document text, reading files off the event loop."""
        if self.content is not None:
            raw = self.content
        elif self.path is not None:
            raw = await asyncio.to_thread(self.path.read_bytes)
        else:
            raise ValueError(f"Document {self.name!r} has neither content nor path")

        if isinstance(raw, bytes):
            # utf-8-sig drops the BOM many subtitle editors write
            return raw.decode('utf-8-sig', errors='replace')
        return raw
