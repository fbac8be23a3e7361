"""
Batch Progress Data Class

Contains the BatchProgress dataclass reported by the batch pipeline.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BatchProgress:
    """Progress information for one job's running translation."""
    job_id: str
    current_batch: int               # 1-indexed
    total_batches: int
    batch_lines_count: int
    processed_lines: int
    total_lines: int
    first_line_id: int = 0
    last_line_id: int = 0
    phase: str = "translating"       # "translating", "retrying", "batch_done", "completed", "failed", "stopped"
    message: Optional[str] = None

    @property
    def percent(self) -> float:
        if self.total_lines == 0:
            return 100.0
        return 100.0 * self.processed_lines / self.total_lines

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["percent"] = round(self.percent, 2)
        return payload
