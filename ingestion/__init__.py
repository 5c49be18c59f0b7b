"""
WPMS ingestion pipeline.

Modules:
    auth: Login handshake (nonce + double MD5 challenge -> bearer token)
    http_client: Request executor with fixed-delay retry and structured results
    runner: Single-shot driver over the configured endpoints
    incremental: Day-by-day import driver with automatic resume point

Subpackages:
    transformers: Response normalization, parameter placeholders, type coercion
    loaders: Schema-driven upsert writer

Architecture:
    Each run authenticates once, then processes endpoints strictly in order:

    1. Resolve DYNAMIC: parameter placeholders
    2. Call the endpoint (retrying network errors and 5xx)
    3. Normalize the payload (array / numbered-key object / single object)
    4. Coerce each mapped field to its column type
    5. Merge rows into the destination table, creating it on first use

    Endpoint, day and row failures are recorded in the outcomes and the run
    continues; configuration and authentication failures stop it.

Usage:
    from ingestion.runner import SyncRunner
    from ingestion.incremental import IncrementalImportDriver

Example:
    runner = SyncRunner(config, engine=engine)
    outcomes = await runner.run()

    driver = IncrementalImportDriver(runner, config.get_endpoint("productivity"))
    summary = await driver.run()
    print(f"Wrote {summary.total_records_written} records")
"""

__all__ = [
    "Authenticator",
    "HttpRequestExecutor",
    "SyncRunner",
    "IncrementalImportDriver",
    "UpsertWriter",
    "FieldTypeCoercer",
    "normalize_response",
    "resolve_parameters",
]
