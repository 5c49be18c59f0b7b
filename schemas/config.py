"""
Pydantic schemas for the endpoint catalogue and run configuration.

The catalogue is written by WPMS operators in camelCase JSON; models accept
both the camelCase aliases and the snake_case field names.
"""

import re
from enum import Enum
from typing import Optional, List, Dict, Union

from pydantic import BaseModel, Field, validator, model_validator

from ingestion.transformers.parameters import find_unknown_placeholders


class HttpMethod(str, Enum):
    """HTTP methods an endpoint may declare (data endpoints are always GET in practice)"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class ColumnDef(BaseModel):
    """One destination column: name, SQL type, key membership and default."""

    name: str = Field(..., min_length=1, alias="Name")
    sql_type: str = Field(..., min_length=1, alias="Type")
    is_primary_key: bool = Field(False, alias="IsPrimaryKey")
    default_expression: Optional[str] = Field(None, alias="Default")

    @validator("sql_type")
    def normalize_sql_type(cls, v):
        """Upper-case and collapse whitespace so 'decimal (18, 3)' == 'DECIMAL(18,3)'"""
        return re.sub(r"\s+", "", v).upper()

    class Config:
        populate_by_name = True


class ParameterCondition(BaseModel):
    """
    WPMS parameter signature, e.g. ``{"val1": "1303394", "sig1": ">="}``.

    Extra comparator slots (val2/sig2, ...) are kept as-is.
    """

    val1: str
    sig1: Optional[str] = None

    @validator("val1", pre=True)
    def stringify_value(cls, v):
        """Article codes etc. are sometimes written as JSON numbers"""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    class Config:
        extra = "allow"


class IncrementalSettings(BaseModel):
    """Day-by-day import settings for a time-series endpoint"""

    date_column: str = Field("Date", alias="dateColumn")
    date_parameter: Optional[str] = Field(None, alias="dateParameter")

    class Config:
        populate_by_name = True


class EndpointConfig(BaseModel):
    """
    A configured WPMS endpoint and how its rows map onto a destination table.

    Invariants (checked on load):
    - every fieldMappings target has a ColumnDef
    - every primary-key column is mapped, or is the incremental date column
    - an endpoint with a targetTable declares at least one primary-key column
    - every DYNAMIC: placeholder names a known keyword
    """

    name: str = Field(..., min_length=1)
    uri: str = Field(..., min_length=1)
    http_method: HttpMethod = Field(HttpMethod.GET, alias="httpMethod")
    parameters: Dict[str, Union[ParameterCondition, str]] = Field(default_factory=dict)
    target_table: Optional[str] = Field(None, alias="targetTable")
    field_mappings: Dict[str, str] = Field(default_factory=dict, alias="fieldMappings")
    table_schema: List[ColumnDef] = Field(default_factory=list, alias="tableSchema")
    incremental: Optional[IncrementalSettings] = None

    @validator("http_method", pre=True)
    def upper_method(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @validator("target_table")
    def check_target_table(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                return None
            if len(v.split(".")) > 2:
                raise ValueError(f"targetTable must be 'schema.table' or 'table', got {v!r}")
        return v

    @model_validator(mode="after")
    def check_schema(self):
        columns = {c.name for c in self.table_schema}

        unknown_targets = sorted(set(self.field_mappings.values()) - columns)
        if unknown_targets:
            raise ValueError(
                f"Endpoint {self.name!r}: fieldMappings target(s) {unknown_targets} "
                f"have no tableSchema column"
            )

        if self.target_table:
            if not self.primary_key:
                raise ValueError(
                    f"Endpoint {self.name!r}: tableSchema declares no primary-key column"
                )

            supplied = set(self.field_mappings.values())
            if self.incremental:
                supplied.add(self.incremental.date_column)
            missing = [pk for pk in self.primary_key if pk not in supplied]
            if missing:
                raise ValueError(
                    f"Endpoint {self.name!r}: primary-key column(s) {missing} "
                    f"are not populated by fieldMappings"
                )

        if self.incremental and self.incremental.date_column not in columns:
            raise ValueError(
                f"Endpoint {self.name!r}: incremental dateColumn "
                f"{self.incremental.date_column!r} is not in tableSchema"
            )

        unknown = find_unknown_placeholders(self.raw_parameters())
        if unknown:
            raise ValueError(
                f"Endpoint {self.name!r}: unknown dynamic placeholder(s) {unknown}"
            )

        return self

    @property
    def primary_key(self) -> List[str]:
        """Ordered composite primary key"""
        return [c.name for c in self.table_schema if c.is_primary_key]

    def raw_parameters(self) -> Dict[str, Union[Dict[str, str], str]]:
        """Parameters as plain JSON-ready values (conditions without unset slots)"""
        return {
            name: value.model_dump(exclude_none=True) if isinstance(value, ParameterCondition) else value
            for name, value in self.parameters.items()
        }

    class Config:
        populate_by_name = True
        use_enum_values = True


class Credentials(BaseModel):
    """WPMS login credentials; the password is plaintext at the point of use"""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, repr=False)


class SyncConfig(BaseModel):
    """Everything one run needs: where to call, as whom, what, and where to write"""

    server: str = Field(..., min_length=1)
    credentials: Credentials
    endpoints: List[EndpointConfig] = Field(..., min_length=1)
    sql_connection_string: Optional[str] = Field(None, alias="sqlConnectionString")
    login_uri: str = Field("/api/login", alias="loginUri")
    skip_hash: bool = Field(False, alias="skipHash")

    @validator("server")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @validator("endpoints")
    def unique_names(cls, v):
        names = [e.name for e in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate endpoint name(s): {duplicates}")
        return v

    @property
    def login_url(self) -> str:
        return self.url_for(self.login_uri)

    def url_for(self, uri: str) -> str:
        """Join the server base URL with an endpoint path"""
        if uri.startswith(("http://", "https://")):
            return uri
        return f"{self.server}/{uri.lstrip('/')}"

    def get_endpoint(self, name: str) -> Optional[EndpointConfig]:
        for endpoint in self.endpoints:
            if endpoint.name == name:
                return endpoint
        return None

    class Config:
        populate_by_name = True
