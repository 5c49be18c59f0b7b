"""
Dynamic parameter placeholders.

A parameter value (or any string leaf inside a ``{val1, sig1}`` condition) of
the form ``DYNAMIC:<Keyword>`` is replaced with a concrete value at run time.

Keywords:
    PreviousMondayDate: Monday of the ISO week before the current one, yyyyMMdd
"""

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DYNAMIC_PREFIX = "DYNAMIC:"
DATE_FORMAT = "%Y%m%d"


def previous_monday(today: date) -> date:
    """Monday of the ISO week immediately preceding the week containing ``today``"""
    return today - timedelta(days=today.weekday() + 7)


def _previous_monday_date(today: date, override_date: Optional[date]) -> str:
    if override_date is not None:
        return override_date.strftime(DATE_FORMAT)
    return previous_monday(today).strftime(DATE_FORMAT)


KEYWORDS: Dict[str, Callable[[date, Optional[date]], str]] = {
    "PreviousMondayDate": _previous_monday_date,
}


def is_placeholder(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(DYNAMIC_PREFIX)


def resolve_parameter(
    value: Any,
    today: Optional[date] = None,
    override_date: Optional[date] = None,
    log: Optional[logging.Logger] = None,
) -> Any:
    """
    Replace DYNAMIC: placeholders in a parameter value.

    Args:
        value: A string, a condition mapping, or any other JSON value
        today: Reference date for relative keywords (defaults to date.today())
        override_date: Literal date used instead of the computed one
            (incremental imports iterate explicit dates)
        log: Logger for unresolved placeholders

    Returns:
        The value with every recognized placeholder replaced. Unknown keywords
        are left as the literal ``DYNAMIC:...`` string.
    """
    log = log or logger

    if isinstance(value, dict):
        return {
            key: resolve_parameter(item, today, override_date, log)
            for key, item in value.items()
        }

    if not is_placeholder(value):
        return value

    keyword = value[len(DYNAMIC_PREFIX):].strip()
    handler = KEYWORDS.get(keyword)
    if handler is None:
        log.warning(f"Unresolved dynamic parameter {value!r}; sending it literally")
        return value

    return handler(today or date.today(), override_date)


def resolve_parameters(
    parameters: Dict[str, Any],
    today: Optional[date] = None,
    override_date: Optional[date] = None,
    log: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """Resolve every parameter of an endpoint"""
    return {
        name: resolve_parameter(value, today, override_date, log)
        for name, value in parameters.items()
    }


def find_unknown_placeholders(parameters: Dict[str, Any]) -> List[str]:
    """List DYNAMIC: placeholders whose keyword is not recognized"""
    unknown = []

    def walk(value):
        if isinstance(value, dict):
            for item in value.values():
                walk(item)
        elif is_placeholder(value):
            if value[len(DYNAMIC_PREFIX):].strip() not in KEYWORDS:
                unknown.append(value)

    walk(parameters)
    return unknown
