"""
Pydantic schemas for request results and run summaries
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RequestResult(BaseModel):
    """
    Outcome of one HTTP call after retries.

    Either success with raw_body/parsed_content, or failure with error set.
    """

    success: bool
    status_code: Optional[int] = None
    raw_body: Optional[str] = None
    parsed_content: Any = None
    error: Optional[str] = None
    attempts: int = 1


class UpsertResult(BaseModel):
    """Row-level write statistics for one batch"""

    written: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class EndpointOutcome(BaseModel):
    """What happened to one endpoint call (or one day of an incremental import)"""

    endpoint: str
    success: bool
    status_code: Optional[int] = None
    import_date: Optional[date] = None
    items_received: int = 0
    items_written: int = 0
    items_failed: int = 0
    error: Optional[str] = None

    @property
    def has_errors(self) -> bool:
        return not self.success or self.items_failed > 0


class ImportSummary(BaseModel):
    """Totals emitted when an incremental import reaches DONE"""

    endpoint: str
    start_date: date
    end_date: date
    dry_run: bool = False
    total_records_written: int = 0
    total_days_with_errors: int = 0
    days: List[EndpointOutcome] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.total_days_with_errors == 0
