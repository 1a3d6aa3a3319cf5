"""
SQL statement synthesis for staged loads.

Every builder is a pure function returning a :class:`Statement`; nothing here
touches a connection. Table and column identifiers are interpolated as given:
callers must only pass trusted, pre-validated identifiers.
"""

from typing import Sequence

from stage_loader.io.loader.models import (
    ConfigurationError,
    StagingSelect,
    Statement,
    TableManifest,
)
from stage_loader.io.storage.credentials import CredentialSet, format_credentials

STAGING_TABLE_PLACEHOLDER = "{{table}}"


def staging_table_name(table: str) -> str:
    return f"{table}_staging"


def create_staging_table(target_table: str, staging_table: str) -> Statement:
    return Statement(
        "create_staging",
        f"CREATE TEMPORARY TABLE {staging_table} (LIKE {target_table} INCLUDING DEFAULTS)",
    )


def copy_from_storage(
    table: str,
    manifest_url: str,
    credentials: CredentialSet,
    columns: Sequence[str],
    options: Sequence[str],
) -> Statement:
    """
    Build a manifest-driven COPY into ``table``.

    Options are emitted space-separated in the given order.
    """
    return Statement(
        "copy",
        "COPY {table} ({columns}) FROM '{url}' CREDENTIALS '{creds}' {options} manifest".format(
            table=table,
            columns=",".join(columns),
            url=manifest_url,
            creds=format_credentials(credentials),
            options=" ".join(options),
        ),
    )


def truncate_table(table: str) -> Statement:
    return Statement("truncate", f"truncate table {table}")


def delete_in_query(target_table: str, staging_table: str, key: str) -> str:
    return f"DELETE FROM {target_table} WHERE {key} IN (SELECT {key} FROM {staging_table})"


def delete_join_query(target_table: str, staging_table: str, keys: Sequence[str]) -> str:
    where = " AND ".join(f"{target_table}.{pk}={staging_table}.{pk}" for pk in keys)
    return f"DELETE FROM {target_table} USING {staging_table} WHERE {where}"


def delete_target_query(target_table: str, staging_table: str, keys: Sequence[str]) -> str:
    """
    Pick the delete form by key arity.

    A single key uses an ``IN (SELECT ...)`` subquery, which the warehouse runs
    significantly faster; composite keys need the ``USING`` join form.

    Raises:
        ConfigurationError: If ``keys`` is empty
    """
    if not keys:
        raise ConfigurationError(
            f"Cannot delete from {target_table}: no key columns configured"
        )
    if len(keys) == 1:
        return delete_in_query(target_table, staging_table, keys[0])
    return delete_join_query(target_table, staging_table, keys)


def delete_target(target_table: str, staging_table: str, keys: Sequence[str]) -> Statement:
    """Delete rows of ``target_table`` whose keys are about to be replaced from staging."""
    return Statement("delete", delete_target_query(target_table, staging_table, keys))


def staging_select_statement(table_manifest: TableManifest, staging_table: str) -> str:
    """
    Render the SELECT feeding the insert from staging.

    A template has every ``{{table}}`` occurrence replaced literally.
    """
    staging_select = table_manifest.staging_select
    if staging_select is StagingSelect.DISTINCT:
        return f"SELECT DISTINCT * FROM {staging_table}"
    if isinstance(staging_select, str):
        return staging_select.replace(STAGING_TABLE_PLACEHOLDER, staging_table)
    return f"SELECT * FROM {staging_table}"


def insert_from_staging(
    target_table: str, staging_table: str, table_manifest: TableManifest
) -> Statement:
    select = staging_select_statement(table_manifest, staging_table)
    return Statement("insert", f"INSERT INTO {target_table} {select}")


def append_from_staging(
    target_table: str, staging_table: str, keys: Sequence[str]
) -> Statement:
    """
    Insert only the staging rows whose key is absent from the target (anti-join).

    Raises:
        ConfigurationError: If ``keys`` is empty
    """
    if not keys:
        raise ConfigurationError(
            f"Cannot append into {target_table}: no key columns configured"
        )
    join_columns = " AND ".join(f"s.{k} = t.{k}" for k in keys)
    null_checks = " AND ".join(f"t.{k} IS NULL" for k in keys)
    return Statement(
        "append",
        f"INSERT INTO {target_table} SELECT s.* FROM {staging_table} s "
        f"LEFT JOIN {target_table} t ON {join_columns} WHERE {null_checks}",
    )


def drop_table(table: str) -> Statement:
    return Statement("drop", f"DROP TABLE {table}")
