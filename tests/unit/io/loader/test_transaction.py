"""
Unit tests for the transaction runner and statement execution.

The connection is a MagicMock produced by the FakeWarehouse fixture, so every
commit/rollback/close call can be asserted without a live warehouse.
"""

from unittest.mock import MagicMock, patch

import pytest

from stage_loader.io.loader.models import CommitError, Statement, StatementError
from stage_loader.io.loader.observations import COMMITS, ROLLBACKS
from stage_loader.io.loader.transaction import connect, execute, run_in_transaction

DSN = "postgresql://loader@warehouse/db"


@pytest.mark.unit
class TestRunInTransaction:
    def test_commits_and_closes_on_success(self, warehouse, observations):
        result = run_in_transaction(
            DSN, lambda conn: "done", connector=warehouse, observations=observations
        )

        conn = warehouse.connection
        assert result == "done"
        assert conn.autocommit is False
        conn.commit.assert_called_once_with()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once_with()
        assert observations.count(COMMITS) == 1
        assert observations.count(ROLLBACKS) == 0

    def test_work_receives_the_connection(self, warehouse, observations):
        seen = []
        run_in_transaction(DSN, seen.append, connector=warehouse, observations=observations)
        assert seen == [warehouse.connection]
        assert warehouse.connection.dsn == DSN

    def test_rolls_back_and_reraises_same_exception(self, warehouse, observations):
        failure = ValueError("boom")

        def work(conn):
            raise failure

        with pytest.raises(ValueError) as excinfo:
            run_in_transaction(DSN, work, connector=warehouse, observations=observations)

        conn = warehouse.connection
        assert excinfo.value is failure
        conn.rollback.assert_called_once_with()
        conn.commit.assert_not_called()
        conn.close.assert_called_once_with()
        assert observations.count(ROLLBACKS) == 1
        assert observations.count(COMMITS) == 0

    def test_rollback_failure_does_not_mask_work_failure(self, warehouse, observations):
        failure = StatementError("copy failed", kind="copy")

        def connector(url):
            conn = warehouse(url)
            conn.rollback.side_effect = RuntimeError("connection lost")
            return conn

        def work(conn):
            raise failure

        with pytest.raises(StatementError) as excinfo:
            run_in_transaction(DSN, work, connector=connector, observations=observations)

        assert excinfo.value is failure
        warehouse.connection.close.assert_called_once_with()
        assert observations.count(ROLLBACKS) == 1

    def test_close_failure_does_not_mask_work_failure(self, warehouse, observations):
        failure = StatementError("insert failed", kind="insert")

        def connector(url):
            conn = warehouse(url)
            conn.close.side_effect = RuntimeError("already gone")
            return conn

        def work(conn):
            raise failure

        with pytest.raises(StatementError) as excinfo:
            run_in_transaction(DSN, work, connector=connector, observations=observations)
        assert excinfo.value is failure

    def test_commit_failure_raises_commit_error(self, warehouse, observations):
        def connector(url):
            conn = warehouse(url)
            conn.commit.side_effect = RuntimeError("serialization failure")
            return conn

        with pytest.raises(CommitError, match="serialization failure") as excinfo:
            run_in_transaction(
                DSN, lambda conn: None, connector=connector, observations=observations
            )

        conn = warehouse.connection
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        conn.rollback.assert_not_called()
        conn.close.assert_called_once_with()
        assert observations.count(COMMITS) == 0
        assert observations.count(ROLLBACKS) == 0

    def test_already_closed_connection_is_not_closed_again(self, warehouse, observations):
        def work(conn):
            conn.closed = 1

        run_in_transaction(DSN, work, connector=warehouse, observations=observations)
        warehouse.connection.close.assert_not_called()


@pytest.mark.unit
class TestExecute:
    def test_runs_statements_in_order(self, warehouse):
        conn = warehouse(DSN)
        count = execute(conn, [Statement("a", "SELECT 1"), Statement("b", "SELECT 2")])

        assert count == 2
        assert warehouse.executed == ["SELECT 1", "SELECT 2"]

    def test_failure_aborts_remaining_statements(self, warehouse):
        warehouse.fail_on = "SELECT 2"
        conn = warehouse(DSN)
        statements = [
            Statement("a", "SELECT 1"),
            Statement("b", "SELECT 2"),
            Statement("c", "SELECT 3"),
        ]

        with pytest.raises(StatementError) as excinfo:
            execute(conn, statements)

        assert warehouse.executed == ["SELECT 1"]
        assert excinfo.value.kind == "b"
        assert excinfo.value.__cause__ is warehouse.error

    def test_statement_error_text_is_censored(self, warehouse):
        warehouse.fail_on = "COPY"
        conn = warehouse(DSN)
        statement = Statement(
            "copy",
            "COPY t () FROM 's3://b/m' CREDENTIALS "
            "'aws_access_key_id=AKIA;aws_secret_access_key=SECRET' manifest",
        )

        with pytest.raises(StatementError) as excinfo:
            execute(conn, [statement])

        assert "SECRET" not in str(excinfo.value)
        assert "SECRET" not in excinfo.value.statement
        assert "aws_secret_access_key=***" in excinfo.value.statement

    def test_executed_sql_is_not_censored(self, warehouse):
        conn = warehouse(DSN)
        sql = "COPY t () FROM 's3://b/m' CREDENTIALS 'aws_access_key_id=AKIA;aws_secret_access_key=SECRET' manifest"
        execute(conn, [Statement("copy", sql)])
        assert warehouse.executed == [sql]


@pytest.mark.unit
def test_connect_disables_autocommit():
    fake_conn = MagicMock()
    with patch("stage_loader.io.loader.transaction.psycopg2.connect", return_value=fake_conn) as mock_connect:
        conn = connect(DSN, connect_timeout=5)

    mock_connect.assert_called_once_with(DSN, connect_timeout=5)
    assert conn is fake_conn
    assert conn.autocommit is False
