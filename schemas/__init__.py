"""
Pydantic schemas for configuration and run results.

Schemas:
    config: Endpoint catalogue (EndpointConfig, ColumnDef, ParameterCondition) and SyncConfig
    results: RequestResult, UpsertResult, EndpointOutcome, ImportSummary

Usage:
    from schemas.config import SyncConfig, EndpointConfig
    from schemas.results import EndpointOutcome, ImportSummary

Validation:
    EndpointConfig checks its schema invariants when loaded: mapped columns
    exist, primary-key columns are populated, DYNAMIC: keywords are known.
"""

__all__ = [
    "ColumnDef",
    "ParameterCondition",
    "IncrementalSettings",
    "EndpointConfig",
    "Credentials",
    "SyncConfig",
    "RequestResult",
    "UpsertResult",
    "EndpointOutcome",
    "ImportSummary",
]
