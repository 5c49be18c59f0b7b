"""
Schema-driven type coercion for WPMS field values.

WPMS sends almost everything as strings ("10", "20250610", "12.500"). Each
value is converted according to the SQL type of its destination column.
Coercion never raises: malformed values become None (SQL NULL) so that one
bad field does not abort a batch.
"""

import json
import logging
import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from core.exceptions import CoercionError
from models.table_factory import (
    BOOLEAN_TYPES, DATE_TYPES, DATETIME_TYPES, DECIMAL_TYPES, FLOAT_TYPES,
    INTEGER_TYPES, type_family
)
from schemas.config import ColumnDef

logger = logging.getLogger(__name__)

WPMS_DATE_FORMAT = "%Y%m%d"
WPMS_DATETIME_FORMAT = "%Y%m%d%H%M%S"
MAX_INTEGER_DIGITS = 18


class FieldTypeCoercer:
    """
    Convert raw JSON scalars to typed column values.

    Attributes:
        failures: Number of non-empty values that could not be converted
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self.logger = log or logger
        self.failures = 0

    def coerce(self, raw: Any, column: ColumnDef) -> Any:
        """
        Coerce a raw value for a column.

        Returns:
            Typed value, or None for null/empty/unparsable input
        """
        if raw is None:
            return None
        if isinstance(raw, str) and not raw.strip():
            return None

        family = type_family(column.sql_type)

        if family in DATE_TYPES:
            value = self._to_date(raw)
        elif family in DATETIME_TYPES:
            value = self._to_datetime(raw)
        elif family in INTEGER_TYPES:
            value = self._to_int(raw)
        elif family in DECIMAL_TYPES:
            value = self._to_decimal(raw)
        elif family in FLOAT_TYPES:
            value = self._to_float(raw)
        elif family in BOOLEAN_TYPES:
            value = self._to_bool(raw)
        else:
            return self._to_string(raw)

        if value is None:
            self.failures += 1
            error = CoercionError(
                f"Cannot convert {raw!r} to {column.sql_type}; using NULL",
                context={"column": column.name, "sql_type": column.sql_type}
            )
            self.logger.debug(str(error))
        return value

    # ------------------------------------------------------------------
    # Converters
    # ------------------------------------------------------------------

    @staticmethod
    def _to_date(raw: Any) -> Optional[date]:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if isinstance(raw, bool):
            return None
        text = str(raw).strip()
        if len(text) != 8 or not text.isdigit():
            return None
        try:
            return datetime.strptime(text, WPMS_DATE_FORMAT).date()
        except ValueError:
            return None

    @classmethod
    def _to_datetime(cls, raw: Any) -> Optional[datetime]:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, date):
            return datetime(raw.year, raw.month, raw.day)
        if isinstance(raw, bool):
            return None
        text = str(raw).strip()
        if text.isdigit():
            if len(text) == 8:
                parsed = cls._to_date(text)
                return datetime(parsed.year, parsed.month, parsed.day) if parsed else None
            try:
                return datetime.strptime(text, WPMS_DATETIME_FORMAT)
            except ValueError:
                return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None

    @staticmethod
    def _to_int(raw: Any) -> Optional[int]:
        if isinstance(raw, bool):
            return int(raw)
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float):
            return int(raw) if raw.is_integer() else None
        text = str(raw).strip()
        try:
            return int(text)
        except ValueError:
            pass
        # "10.0" / "1E2" still name an integer
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
        # 1E19 and up never fits BIGINT
        if not number.is_finite() or number.adjusted() > MAX_INTEGER_DIGITS:
            return None
        if number == number.to_integral_value():
            return int(number)
        return None

    @staticmethod
    def _to_decimal(raw: Any) -> Optional[Decimal]:
        if isinstance(raw, bool):
            return None
        try:
            number = Decimal(str(raw).strip())
        except InvalidOperation:
            return None
        return number if number.is_finite() else None

    @staticmethod
    def _to_float(raw: Any) -> Optional[float]:
        if isinstance(raw, bool):
            return None
        try:
            number = float(str(raw).strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None

    @staticmethod
    def _to_bool(raw: Any) -> Optional[bool]:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true"):
            return True
        if text in ("0", "false"):
            return False
        return None

    @staticmethod
    def _to_string(raw: Any) -> str:
        if isinstance(raw, str):
            return raw
        if isinstance(raw, (dict, list)):
            return json.dumps(raw, separators=(",", ":"), ensure_ascii=False)
        if isinstance(raw, bool):
            return "true" if raw else "false"
        return str(raw)
