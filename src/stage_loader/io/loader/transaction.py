"""
Transaction lifecycle for a single load.

One connection per load, autocommit off, exactly one of commit/rollback, and
the connection closed on every exit path. The connection is handed to the
unit of work explicitly; nothing is bound to module or thread state.
"""

from typing import Any, Callable, Iterable, Optional, TypeVar

import psycopg2

from stage_loader.io.loader.models import CommitError, StatementError, Statement
from stage_loader.io.loader.observations import (
    COMMITS,
    ROLLBACKS,
    ObservationSink,
    default_observations,
)
from stage_loader.io.storage.credentials import censor
from stage_loader.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Connector = Callable[[str], Any]


def connect(connection_url: str, connect_timeout: Optional[int] = None) -> Any:
    """Open a warehouse connection with autocommit disabled."""
    if connect_timeout:
        conn = psycopg2.connect(connection_url, connect_timeout=connect_timeout)
    else:
        conn = psycopg2.connect(connection_url)
    conn.autocommit = False
    return conn


def _close_quietly(conn: Any) -> None:
    try:
        if not conn.closed:
            conn.close()
    except Exception as exc:
        logger.warning("warehouse.connection.close_failed", error=str(exc))


def run_in_transaction(
    connection_url: str,
    work: Callable[[Any], T],
    *,
    connector: Optional[Connector] = None,
    observations: Optional[ObservationSink] = None,
) -> T:
    """
    Run ``work(conn)`` inside one warehouse transaction.

    On success the transaction is committed. Any exception raised by ``work``
    rolls the transaction back and is re-raised unchanged; a failed rollback
    is logged but never replaces it. A failed commit raises
    :class:`CommitError`.

    Args:
        connection_url: Warehouse DSN
        work: Callable receiving the open connection
        connector: Connection factory, defaults to :func:`connect`
        observations: Sink receiving the commit/rollback marks

    Returns:
        Whatever ``work`` returns
    """
    connector = connector or connect
    observations = observations or default_observations()

    conn = connector(connection_url)
    try:
        # Custom connectors included: autocommit is off before any statement
        conn.autocommit = False
        try:
            result = work(conn)
        except BaseException as exc:
            logger.error("warehouse.transaction.rollback", error=censor(str(exc)))
            try:
                conn.rollback()
            except Exception as rollback_exc:
                logger.error(
                    "warehouse.transaction.rollback_failed",
                    error=censor(str(rollback_exc)),
                )
            observations.mark(ROLLBACKS)
            raise

        logger.debug("warehouse.transaction.commit")
        try:
            conn.commit()
        except Exception as exc:
            logger.error("warehouse.transaction.commit_failed", error=censor(str(exc)))
            raise CommitError(f"Commit failed: {censor(str(exc))}") from exc
        observations.mark(COMMITS)
        logger.info("warehouse.transaction.committed")
        return result
    finally:
        _close_quietly(conn)


def execute(conn: Any, statements: Iterable[Statement]) -> int:
    """
    Execute ``statements`` in order on ``conn``.

    The first failing statement aborts the rest; the caller's transaction is
    expected to roll back the partial work.

    Returns:
        Number of statements executed

    Raises:
        StatementError: Chained to the driver error of the failing statement
    """
    executed = 0
    with conn.cursor() as cursor:
        for statement in statements:
            censored = censor(statement.sql)
            logger.debug(
                "warehouse.statement.executing", kind=statement.kind, sql=censored
            )
            try:
                cursor.execute(statement.sql)
            except Exception as exc:
                logger.error(
                    "warehouse.statement.failed",
                    kind=statement.kind,
                    sql=censored,
                    error=censor(str(exc)),
                )
                raise StatementError(
                    f"Error executing {statement.kind} statement: {censored}: "
                    f"{censor(str(exc))}",
                    kind=statement.kind,
                    statement=censored,
                ) from exc
            executed += 1
    return executed
