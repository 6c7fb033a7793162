"""
PostgreSQL replica lag source.

Lag is the age of the last replayed transaction on a hot standby, in whole
seconds, or 0 once the standby has replayed all WAL it has received.
NULL (primary, or nothing replayed yet) is reported as None, which the
barrier treats as "not caught up".
"""

from __future__ import annotations

from typing import Optional

import psycopg
from loguru import logger

from .errors import MissingArgument, map_db_error
from .limiter.types import Replica

REPLICA_LAG_SQL = """
SELECT CASE
         WHEN NOT pg_is_in_recovery() THEN NULL
         WHEN pg_last_wal_receive_lsn() = pg_last_wal_replay_lsn() THEN 0
         ELSE floor(extract(epoch FROM now() - pg_last_xact_replay_timestamp()))::int
       END
"""


class PgReplicaLag:
    """LagSource for PostgreSQL streaming replicas.

    Opens one autocommit connection per replica on first use and reuses it.

    Example:
        with PgReplicaLag(connect_timeout=5) as get_lag:
            get_lag(Replica("standby-1", "postgresql://..."))
    """

    def __init__(self, connect_timeout: float = 10.0, app_name: Optional[str] = "lag_limiter"):
        self._connect_timeout = connect_timeout
        self._app_name = app_name
        self._conns: dict[str, psycopg.Connection] = {}

    def __call__(self, replica: Replica) -> Optional[int]:
        if not replica.dsn:
            raise MissingArgument(f"dsn for replica {replica}")
        try:
            conn = self._conn(replica)
            with conn.cursor() as cur:
                cur.execute(REPLICA_LAG_SQL)
                row = cur.fetchone()
        except psycopg.Error as e:
            self._discard(replica)
            raise map_db_error(e) from e
        lag = row[0] if row else None
        logger.debug(f"Replica {replica} lag: {lag}")
        return lag

    def close(self) -> None:
        for name in list(self._conns):
            self._conns.pop(name).close()

    def __enter__(self) -> "PgReplicaLag":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _conn(self, replica: Replica) -> psycopg.Connection:
        conn = self._conns.get(replica.name)
        if conn is None or conn.closed:
            kwargs = {"autocommit": True, "connect_timeout": int(self._connect_timeout)}
            if self._app_name:
                kwargs["application_name"] = self._app_name
            conn = psycopg.connect(replica.dsn, **kwargs)
            self._conns[replica.name] = conn
        return conn

    def _discard(self, replica: Replica) -> None:
        conn = self._conns.pop(replica.name, None)
        if conn is not None:
            try:
                conn.close()
            except psycopg.Error as exc:
                logger.debug(f"Closing broken connection to {replica} failed: {exc}")
