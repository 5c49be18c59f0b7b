"""
Turn WPMS response payloads into a uniform list of rows.

WPMS answers in one of three shapes:
  - JSON array:            [{"Oprt": "OP1"}, {"Oprt": "OP2"}]
  - numbered-key object:   {"1": {"Oprt": "OP1"}, "2": {"Oprt": "OP2"}}
  - single object:         {"Oprt": "OP1"}

The numbered-key check runs before the single-object fallback, otherwise a
numbered-key object would be read as one wide record.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def is_numbered_key_object(payload: Dict[str, Any]) -> bool:
    """True when every key is a string of ASCII digits ("1", "2", ...)"""
    return bool(payload) and all(isinstance(k, str) and k.isascii() and k.isdigit() for k in payload)


def _rows_from_items(items, shape: str, log: logging.Logger) -> List[Row]:
    rows = []
    skipped = 0
    for item in items:
        if isinstance(item, dict):
            rows.append(item)
        else:
            skipped += 1
    if skipped:
        log.warning(f"Skipped {skipped} non-object element(s) in {shape} response")
    return rows


def normalize_response(payload: Any, log: Optional[logging.Logger] = None) -> List[Row]:
    """
    Normalize a parsed JSON payload into rows.

    Args:
        payload: Parsed JSON (list, dict, scalar or None)
        log: Logger for skipped elements

    Returns:
        Rows in response order; numbered-key objects are ordered by key number.
        None, empty objects and bare scalars yield no rows.
    """
    log = log or logger

    if payload is None:
        return []

    if isinstance(payload, list):
        return _rows_from_items(payload, "array", log)

    if isinstance(payload, dict):
        if is_numbered_key_object(payload):
            ordered = [payload[k] for k in sorted(payload, key=int)]
            return _rows_from_items(ordered, "numbered-key", log)
        if not payload:
            return []
        return [payload]

    log.warning(f"Unexpected {type(payload).__name__} response payload; no rows produced")
    return []
