"""
Load strategy dispatch.

Each strategy is an ordered, immutable statement plan executed in a single
transaction:

- merge:   create staging -> COPY into staging -> delete matching keys
           -> insert from staging -> drop staging  (upsert)
- replace: truncate target -> COPY into target     (full replacement)
- append:  create staging -> COPY into staging -> anti-join insert
           -> drop staging                          (insert new keys only)
"""

import time
import uuid
from typing import Callable, Dict, Optional, Tuple

from stage_loader.io.loader import statements as sql
from stage_loader.io.loader.models import (
    ConfigurationError,
    LoadResult,
    LoadStrategy,
    Statement,
    TableManifest,
)
from stage_loader.io.loader.observations import (
    IMPORT_DURATION,
    IMPORTS,
    ObservationSink,
    default_observations,
    timed,
)
from stage_loader.io.loader.transaction import Connector, execute, run_in_transaction
from stage_loader.io.storage.credentials import CredentialSet
from stage_loader.utils.logging import get_logger

logger = get_logger(__name__)

StatementPlan = Tuple[Statement, ...]


def merge_statements(
    table_manifest: TableManifest, manifest_url: str, credentials: CredentialSet
) -> StatementPlan:
    table = table_manifest.table
    staging = sql.staging_table_name(table)
    return (
        sql.create_staging_table(table, staging),
        sql.copy_from_storage(
            staging,
            manifest_url,
            credentials,
            table_manifest.columns,
            table_manifest.options,
        ),
        sql.delete_target(table, staging, table_manifest.pk_columns),
        sql.insert_from_staging(table, staging, table_manifest),
        sql.drop_table(staging),
    )


def replace_statements(
    table_manifest: TableManifest, manifest_url: str, credentials: CredentialSet
) -> StatementPlan:
    table = table_manifest.table
    return (
        sql.truncate_table(table),
        sql.copy_from_storage(
            table,
            manifest_url,
            credentials,
            table_manifest.columns,
            table_manifest.options,
        ),
    )


def append_statements(
    table_manifest: TableManifest, manifest_url: str, credentials: CredentialSet
) -> StatementPlan:
    table = table_manifest.table
    staging = sql.staging_table_name(table)
    return (
        sql.create_staging_table(table, staging),
        sql.copy_from_storage(
            staging,
            manifest_url,
            credentials,
            table_manifest.columns,
            table_manifest.options,
        ),
        sql.append_from_staging(table, staging, table_manifest.pk_columns),
        sql.drop_table(staging),
    )


PlanBuilder = Callable[[TableManifest, str, CredentialSet], StatementPlan]

STRATEGY_PLANS: Dict[LoadStrategy, PlanBuilder] = {
    LoadStrategy.MERGE: merge_statements,
    LoadStrategy.REPLACE: replace_statements,
    LoadStrategy.APPEND: append_statements,
}


def build_statements(
    table_manifest: TableManifest, manifest_url: str, credentials: CredentialSet
) -> StatementPlan:
    """
    Build the statement plan for the table's strategy without executing it.

    Raises:
        ConfigurationError: Unknown strategy or missing key columns
    """
    try:
        strategy = LoadStrategy(table_manifest.strategy)
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown load strategy {table_manifest.strategy!r} "
            f"for table {table_manifest.table}"
        ) from exc
    return STRATEGY_PLANS[strategy](table_manifest, manifest_url, credentials)


def _resolve_connection_url(table_manifest: TableManifest) -> str:
    if table_manifest.connection_url:
        return table_manifest.connection_url

    from stage_loader.config import get_settings

    return get_settings().get_warehouse_connection_string()


def _run_plan(
    table_manifest: TableManifest,
    strategy: LoadStrategy,
    manifest_url: str,
    plan: StatementPlan,
    connector: Optional[Connector],
    observations: Optional[ObservationSink],
) -> LoadResult:
    observations = observations or default_observations()
    connection_url = _resolve_connection_url(table_manifest)
    execution_id = uuid.uuid4().hex

    observations.mark(IMPORTS)
    log = logger.bind(
        table=table_manifest.table,
        strategy=strategy.value,
        execution_id=execution_id,
    )
    log.info("warehouse.load.started", statements=len(plan))

    start_time = time.perf_counter()
    try:
        with timed(observations, IMPORT_DURATION):
            run_in_transaction(
                connection_url,
                lambda conn: execute(conn, plan),
                connector=connector,
                observations=observations,
            )
    except Exception as exc:
        duration_ms = (time.perf_counter() - start_time) * 1000
        log.error("warehouse.load.failed", duration_ms=duration_ms, error=str(exc))
        raise

    duration_ms = (time.perf_counter() - start_time) * 1000
    log.info("warehouse.load.completed", duration_ms=duration_ms)
    return LoadResult(
        table=table_manifest.table,
        strategy=strategy.value,
        statement_count=len(plan),
        duration_ms=duration_ms,
        execution_id=execution_id,
        manifest_url=manifest_url,
    )


def load_table(
    credentials: CredentialSet,
    manifest_url: str,
    table_manifest: TableManifest,
    *,
    connector: Optional[Connector] = None,
    observations: Optional[ObservationSink] = None,
) -> LoadResult:
    """
    Load the files referenced by ``manifest_url`` into ``table_manifest.table``.

    The statement plan is built before any connection is opened, so
    configuration errors never leave partial work behind. One "imports"
    observation is recorded per attempted load.

    Raises:
        ConfigurationError: Invalid strategy or key configuration
        StatementError: A statement failed; the load was rolled back
        CommitError: The final commit failed
    """
    plan = build_statements(table_manifest, manifest_url, credentials)
    return _run_plan(
        table_manifest,
        LoadStrategy(table_manifest.strategy),
        manifest_url,
        plan,
        connector,
        observations,
    )


def merge_table(
    credentials: CredentialSet,
    manifest_url: str,
    table_manifest: TableManifest,
    *,
    connector: Optional[Connector] = None,
    observations: Optional[ObservationSink] = None,
) -> LoadResult:
    """Upsert staged rows into the target, replacing rows with matching keys."""
    plan = merge_statements(table_manifest, manifest_url, credentials)
    return _run_plan(
        table_manifest, LoadStrategy.MERGE, manifest_url, plan, connector, observations
    )


def replace_table(
    credentials: CredentialSet,
    manifest_url: str,
    table_manifest: TableManifest,
    *,
    connector: Optional[Connector] = None,
    observations: Optional[ObservationSink] = None,
) -> LoadResult:
    """Truncate the target and COPY the staged files straight into it."""
    plan = replace_statements(table_manifest, manifest_url, credentials)
    return _run_plan(
        table_manifest, LoadStrategy.REPLACE, manifest_url, plan, connector, observations
    )


def append_table(
    credentials: CredentialSet,
    manifest_url: str,
    table_manifest: TableManifest,
    *,
    connector: Optional[Connector] = None,
    observations: Optional[ObservationSink] = None,
) -> LoadResult:
    """Insert staged rows whose key is not already in the target."""
    plan = append_statements(table_manifest, manifest_url, credentials)
    return _run_plan(
        table_manifest, LoadStrategy.APPEND, manifest_url, plan, connector, observations
    )
