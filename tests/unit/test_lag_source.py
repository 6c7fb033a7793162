"""
Unit tests for PgReplicaLag (psycopg mocked).
"""

from unittest.mock import MagicMock, patch

import psycopg
import pytest

from lag_limiter.errors import LagQueryError, MissingArgument
from lag_limiter.lag_source import REPLICA_LAG_SQL, PgReplicaLag
from lag_limiter.limiter import Replica


def mock_connection(*rows):
    conn = MagicMock()
    conn.closed = False
    cursor = MagicMock()
    cursor.fetchone.side_effect = list(rows)
    conn.cursor.return_value.__enter__.return_value = cursor
    return conn, cursor


@patch("lag_limiter.lag_source.psycopg.connect")
def test_returns_lag_seconds(mock_connect):
    conn, cursor = mock_connection((3,))
    mock_connect.return_value = conn

    lag = PgReplicaLag(connect_timeout=5)(Replica("r1", "postgresql://r1/db"))

    assert lag == 3
    cursor.execute.assert_called_once_with(REPLICA_LAG_SQL)
    args, kwargs = mock_connect.call_args
    assert args == ("postgresql://r1/db",)
    assert kwargs["autocommit"] is True
    assert kwargs["connect_timeout"] == 5


@patch("lag_limiter.lag_source.psycopg.connect")
def test_null_lag_is_unknown(mock_connect):
    """Not in recovery / nothing replayed -> None."""
    conn, _ = mock_connection((None,))
    mock_connect.return_value = conn
    assert PgReplicaLag()(Replica("r1", "postgresql://r1/db")) is None


@patch("lag_limiter.lag_source.psycopg.connect")
def test_connection_reused_per_replica(mock_connect):
    c1, _ = mock_connection((1,), (0,))
    c2, _ = mock_connection((7,))
    mock_connect.side_effect = [c1, c2]
    get_lag = PgReplicaLag()
    r1 = Replica("r1", "postgresql://r1/db")
    r2 = Replica("r2", "postgresql://r2/db")

    assert [get_lag(r1), get_lag(r2), get_lag(r1)] == [1, 7, 0]
    assert mock_connect.call_count == 2

    get_lag.close()
    c1.close.assert_called_once()
    c2.close.assert_called_once()


@patch("lag_limiter.lag_source.psycopg.connect")
def test_db_error_mapped_and_connection_dropped(mock_connect):
    conn, cursor = mock_connection()
    cursor.execute.side_effect = psycopg.OperationalError("server closed the connection")
    fresh, _ = mock_connection((0,))
    mock_connect.side_effect = [conn, fresh]
    get_lag = PgReplicaLag()
    r1 = Replica("r1", "postgresql://r1/db")

    with pytest.raises(LagQueryError, match="unreachable"):
        get_lag(r1)
    conn.close.assert_called_once()

    assert get_lag(r1) == 0
    assert mock_connect.call_count == 2


@patch("lag_limiter.lag_source.psycopg.connect")
def test_connect_failure_mapped(mock_connect):
    mock_connect.side_effect = psycopg.OperationalError("could not connect")
    with pytest.raises(LagQueryError):
        PgReplicaLag()(Replica("r1", "postgresql://r1/db"))


def test_replica_without_dsn():
    with pytest.raises(MissingArgument):
        PgReplicaLag()(Replica("r1"))


@patch("lag_limiter.lag_source.psycopg.connect")
def test_context_manager_closes(mock_connect):
    conn, _ = mock_connection((0,))
    mock_connect.return_value = conn
    with PgReplicaLag() as get_lag:
        get_lag(Replica("r1", "postgresql://r1/db"))
    conn.close.assert_called_once()


def test_query_reports_zero_when_replay_caught_up():
    """Fully replayed standby counts as 0 lag, not the age of its last replayed commit."""
    assert "pg_last_wal_receive_lsn() = pg_last_wal_replay_lsn() THEN 0" in REPLICA_LAG_SQL
    assert REPLICA_LAG_SQL.index("pg_last_wal_replay_lsn()") < REPLICA_LAG_SQL.index(
        "pg_last_xact_replay_timestamp()"
    )


@patch("lag_limiter.lag_source.psycopg.connect")
def test_idle_standby_lag_is_zero(mock_connect):
    conn, cursor = mock_connection((0,))
    mock_connect.return_value = conn
    assert PgReplicaLag()(Replica("r1", "postgresql://r1/db")) == 0
    assert "pg_last_wal_receive_lsn()" in cursor.execute.call_args[0][0]
